"""
Command line front end: reverse engineer a sequence diagram from a Python function.

Examples:
  # Mermaid diagram of a method, printed to stdout
  pysequence-reverse app/orders.py --function OrderService.place

  # PlantUML diagram of the function at line 42, saved with a PNG preview
  pysequence-reverse app/orders.py --line 42 --format plantuml --save --preview
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from core.exceptions import EntryResolutionError, SequenceDiagramError
from core.provider_factory import create_python_provider
from core.settings import Settings, find_project_root
from services.document_service import DocumentService
from services.sequence_service import SequenceDiagramService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pysequence-reverse",
        description="Generate a sequence diagram from the call hierarchy of a Python function",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )

    parser.add_argument("path", type=Path, help="Python file containing the entry function")

    entry_group = parser.add_mutually_exclusive_group(required=True)
    entry_group.add_argument("-f", "--function", help="Entry function, e.g. 'main' or 'Class.method'")
    entry_group.add_argument("-l", "--line", type=int, help="1-based line inside the entry function")
    parser.add_argument("-c", "--column", type=int, help="1-based column on --line")

    parser.add_argument("--root", type=Path, help="Project root to index (default: detected from PATH)")
    parser.add_argument("--format", choices=["mermaid", "plantuml"], help="Diagram format")
    parser.add_argument("--max-depth", type=int, help="Maximum call depth (1-32)")
    parser.add_argument("-o", "--output", type=Path, help="Write the diagram to this file")
    parser.add_argument("--save", action="store_true", help="Save under the default file name")
    parser.add_argument("--preview", action="store_true", help="Render a PNG preview (PlantUML only)")
    parser.add_argument("--omit-details", action="store_true", help="Show call names without arguments")
    parser.add_argument("--omit-numbers", action="store_true", help="Drop sequence numbers from messages")
    parser.add_argument("--signatures", action="store_true", help="Show declared parameters instead of arguments")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log the traversal")

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.format:
        overrides["diagram_format"] = args.format
    if args.max_depth is not None:
        overrides["max_call_depth"] = args.max_depth
    if args.omit_details:
        overrides["omit_message_details"] = True
    if args.omit_numbers:
        overrides["omit_sequence_numbers"] = True
    if args.signatures:
        overrides["show_signatures_instead_parameters"] = True
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return Settings(**overrides)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    path = args.path.resolve()
    root = (args.root or find_project_root(path)).resolve()

    provider = create_python_provider(str(root), settings)
    service = SequenceDiagramService(provider, settings)

    entry = await service.resolve_entry(str(path), function=args.function, line=args.line, column=args.column)
    model = await service.generate(entry)
    contents = service.render(model)

    if not (args.output or args.save or settings.save_automatically):
        sys.stdout.write(contents)
        return 0

    documents = DocumentService(settings)
    target = documents.save(model, contents, directory=str(root), path=str(args.output) if args.output else None)
    print(f"✓ Diagram saved: {target}")

    if args.preview or (settings.open_automatically and settings.diagram_format == "plantuml"):
        image_path = documents.render_preview(contents, target)
        print(f"✓ Preview rendered: {image_path}")

    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.column is not None and args.line is None:
        parser.error("--column requires --line")

    try:
        settings = _settings_from_args(args)
    except ValidationError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(run(args, settings))
    except EntryResolutionError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    except SequenceDiagramError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
