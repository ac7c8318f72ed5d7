import sys
import json
import logging
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from core.exceptions import EntryResolutionError, SequenceDiagramError
from core.provider_factory import create_python_provider
from core.settings import Settings, find_project_root
from services.document_service import DocumentService
from services.sequence_service import SequenceDiagramService

# --- 🛡️ PROTOCOL PROTECTION & LOGGING SETUP 🛡️ ---

# stdout belongs to the MCP protocol, log to stderr only
logging.basicConfig(
    level=logging.INFO,
    stream=sys.stderr,
    format='%(message)s'
)

for lib in ["httpx", "httpcore", "asyncio"]:
    logging.getLogger(lib).setLevel(logging.WARNING)

# 1. Initialize MCP Server
mcp = FastMCP("PySequenceReverse")

# --- 🛡️ SANDBOX CONFIGURATION 🛡️ ---

# Start from the working directory the server was launched in
SANDBOX_ROOT = find_project_root(Path.cwd())

logging.info(f"🌍 Project Root Detected at: {SANDBOX_ROOT}")

BLOCKED_PATHS = {
    SANDBOX_ROOT / ".venv",
    SANDBOX_ROOT / "venv",
    SANDBOX_ROOT / ".git",
    SANDBOX_ROOT / ".env",
    SANDBOX_ROOT / "__pycache__",
}


def _validate_path(user_path: str, operation: str = "read") -> tuple[bool, Path, str]:
    """
    Validates that a user-provided path is within the sandbox.

    Returns:
        (is_valid, resolved_path, error_message)
    """
    requested = Path(user_path)
    if not requested.is_absolute():
        requested = SANDBOX_ROOT / requested
    requested = requested.resolve()
    sandbox_root = SANDBOX_ROOT.resolve()

    if not requested.is_relative_to(sandbox_root):
        return False, requested, f"❌ Access Denied: Path '{user_path}' is outside project directory"

    if requested in BLOCKED_PATHS or any(requested.is_relative_to(bp) for bp in BLOCKED_PATHS if bp.exists()):
        return False, requested, f"❌ Access Denied: Cannot access '{requested.name}' (protected directory)"

    if not requested.exists():
        return False, requested, f"❌ Path not found: '{user_path}'"

    if operation == "read":
        if requested.is_dir():
            return False, requested, f"❌ '{user_path}' is a directory, expected a Python file"
        if requested.suffix != ".py":
            return False, requested, f"❌ '{user_path}' is not a Python file"

    logging.debug(f"✓ Path validation passed: {requested}")
    return True, requested, ""


def _settings(diagram_format: Optional[str] = None, max_depth: Optional[int] = None) -> Settings:
    overrides = {}
    if diagram_format:
        overrides["diagram_format"] = diagram_format
    if max_depth is not None:
        overrides["max_call_depth"] = max_depth
    return Settings(**overrides)


# --- TOOLS ---

@mcp.tool()
async def generate_sequence_diagram(
    path: str,
    function: Optional[str] = None,
    line: Optional[int] = None,
    column: Optional[int] = None,
    diagram_format: Optional[str] = None,
    max_depth: Optional[int] = None,
    save: bool = False
) -> str:
    """
    Reverse engineers a sequence diagram from the calls made by a Python function.

    Args:
        path: Python file containing the entry function.
        function: Entry function, e.g. 'main' or 'OrderService.place'.
        line: 1-based line inside the entry function (when no function name is given).
        column: 1-based column on that line.
        diagram_format: 'mermaid' (default) or 'plantuml'.
        max_depth: How deep to follow nested calls (1-32).
        save: Also write the diagram next to the project files.

    🛡️ Sandboxed: Can only analyze files within the project.
    """
    is_valid, resolved_path, error_msg = _validate_path(path, operation="read")
    if not is_valid:
        logging.warning(f"🚫 Sandbox violation attempt: {error_msg}")
        return error_msg

    try:
        settings = _settings(diagram_format, max_depth)
    except ValidationError as e:
        return f"❌ Invalid parameters: {e}"

    try:
        provider = create_python_provider(str(SANDBOX_ROOT), settings)
        service = SequenceDiagramService(provider, settings)

        entry = await service.resolve_entry(str(resolved_path), function=function, line=line, column=column)
        model = await service.generate(entry)
        contents = service.render(model)

        if save or settings.save_automatically:
            target = DocumentService(settings).save(model, contents, directory=str(SANDBOX_ROOT))
            logging.info(f"✓ Saved sequence diagram: {target}")
            comment = "%%" if settings.diagram_format == "mermaid" else "'"
            contents += f"{comment} saved to {target.relative_to(SANDBOX_ROOT).as_posix()}\n"

        logging.info(f"✓ Sequence diagram of {entry.qualified_name}: {len(model.calls())} calls")
        return contents

    except EntryResolutionError as e:
        return f"❌ {e}"
    except SequenceDiagramError as e:
        logging.error(f"❌ Sequence diagram generation failed: {e}")
        return f"❌ Error: {e}"


@mcp.tool()
async def list_entry_points(path: str = ".") -> str:
    """
    Lists functions worth starting a sequence diagram from, as JSON.

    Args:
        path: A Python file, or a directory to list all entry points of.

    🛡️ Sandboxed: Can only list files within the project.
    """
    is_valid, resolved_path, error_msg = _validate_path(path, operation="list")
    if not is_valid:
        logging.warning(f"🚫 Sandbox violation attempt: {error_msg}")
        return json.dumps({'error': error_msg})

    try:
        settings = Settings()
        provider = create_python_provider(str(SANDBOX_ROOT), settings)
        service = SequenceDiagramService(provider, settings)

        if resolved_path.is_file():
            items = await service.list_entry_points(str(resolved_path))
        else:
            items = [
                item for item in await service.list_entry_points()
                if Path(item.uri).is_relative_to(resolved_path)
            ]

        entry_points = [
            {
                'function': item.qualified_name,
                'file': Path(item.uri).relative_to(SANDBOX_ROOT).as_posix(),
                'line': item.selection_range.start.line + 1,
            }
            for item in items
        ]

        return json.dumps({
            'total_entry_points': len(entry_points),
            'entry_points': entry_points[:50]
        }, indent=2)

    except SequenceDiagramError as e:
        return json.dumps({'error': str(e)})


# --- ENTRY POINT ---

def main():
    logging.info("🚀 MCP Server 'PySequenceReverse' starting...")
    logging.info(f"📍 Sandbox Root: {SANDBOX_ROOT}")
    logging.info(f"🚫 Protected Paths: {len(BLOCKED_PATHS)}")
    logging.info("📊 Available tools:")
    logging.info("   • Sequence Diagrams   → generate_sequence_diagram()")
    logging.info("   • Entry Points        → list_entry_points()")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logging.info("🛑 Server stopped manually.")
    except Exception as e:
        logging.critical(f"❌ Fatal server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
