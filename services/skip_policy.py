"""
Skip Policy
Decides which calls are left out of the diagram, based on configuration.
"""

from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import PurePath
from typing import Iterable, Optional, Tuple

from core.hierarchy_types import CALLABLE_KINDS, SymbolKind
from core.settings import Settings


@dataclass(frozen=True)
class SkipCheckResult:
    """Whether a call shall be skipped, and why."""
    skip: bool = False
    reason: str = ""


DO_NOT_SKIP = SkipCheckResult(False, "")


@dataclass(frozen=True)
class SkipConfiguration:
    """The configuration subset the skip rules depend on."""
    ignore_globs: Tuple[str, ...] = ()
    restrict_to_workspace: bool = False
    workspace_roots: Tuple[str, ...] = ()
    ignore_third_party: bool = False
    third_party_paths: Tuple[str, ...] = field(default=(".venv", ".conda"))

    @classmethod
    def from_settings(cls, settings: Settings, workspace_roots: Iterable[str] = ()) -> "SkipConfiguration":
        roots = tuple(settings.workspace_roots) or tuple(workspace_roots)
        return cls(
            ignore_globs=tuple(settings.ignore_on_generate),
            restrict_to_workspace=settings.ignore_non_workspace_files,
            workspace_roots=roots,
            ignore_third_party=settings.ignore_third_party_packages,
            third_party_paths=tuple(settings.third_party_paths()),
        )


def _is_under(path: PurePath, folder: str) -> bool:
    folder_path = PurePath(folder)

    if folder_path.is_absolute():
        # An interpreter binary stands for the environment it lives in
        if folder_path.name.startswith("python") and folder_path.parent.name in ("bin", "Scripts"):
            folder_path = folder_path.parent.parent
        return path.is_relative_to(folder_path)

    # Relative folders match anywhere along the path
    parts = folder_path.parts
    if not parts:
        return False
    return any(
        path.parts[i:i + len(parts)] == parts
        for i in range(len(path.parts) - len(parts) + 1)
    )


def should_skip(kind: SymbolKind, target_path: str, configuration: SkipConfiguration) -> SkipCheckResult:
    """
    Evaluate the skip rules in order; the first matching rule wins.

    Pure function of its arguments, safe to call concurrently.
    """
    # Don't follow links which are not function calls for the hierarchy provider
    if kind not in CALLABLE_KINDS:
        return SkipCheckResult(True, "is not a function call")

    for glob in configuration.ignore_globs:
        if fnmatch(target_path, glob):
            return SkipCheckResult(True, "involves ignored globals")

    path = PurePath(target_path)

    if configuration.restrict_to_workspace:
        if not any(path.is_relative_to(root) for root in configuration.workspace_roots):
            return SkipCheckResult(True, "goes out of workspace")

    if configuration.ignore_third_party:
        if any(_is_under(path, folder) for folder in configuration.third_party_paths):
            return SkipCheckResult(True, "goes to external module")

    return DO_NOT_SKIP


class SkipPolicy:
    """Skip rules bound to one configuration."""

    def __init__(self, configuration: Optional[SkipConfiguration] = None):
        self.configuration = configuration or SkipConfiguration()

    def check(self, call_site) -> SkipCheckResult:
        """Apply the rules to the target of a call site."""
        return should_skip(call_site.target.kind, call_site.target.uri, self.configuration)
