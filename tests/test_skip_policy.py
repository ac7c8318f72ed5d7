"""
Unit tests for SkipPolicy

Tests for the skip rules and their precedence.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.hierarchy_types import CallHierarchyItem, Range, SymbolKind
from core.settings import Settings
from services.sequence_model import CallSite
from services.skip_policy import DO_NOT_SKIP, SkipConfiguration, SkipPolicy, should_skip


class TestSkipRules:
    """Test each rule on its own"""

    def test_non_callable_kind(self):
        """Should skip calls to classes"""
        result = should_skip(SymbolKind.CLASS, "/proj/a.py", SkipConfiguration())

        assert result.skip is True
        assert result.reason == "is not a function call"

    def test_ignored_glob(self):
        """Should skip targets matching an ignore glob"""
        configuration = SkipConfiguration(ignore_globs=("*/generated/*",))

        result = should_skip(SymbolKind.FUNCTION, "/proj/generated/api.py", configuration)

        assert result.reason == "involves ignored globals"

    def test_outside_workspace(self):
        """Should skip targets outside every workspace root"""
        configuration = SkipConfiguration(restrict_to_workspace=True, workspace_roots=("/proj",))

        result = should_skip(SymbolKind.METHOD, "/usr/lib/python3.12/json/__init__.py", configuration)

        assert result.skip is True
        assert result.reason == "goes out of workspace"

    def test_inside_workspace(self):
        """Should keep targets inside a workspace root"""
        configuration = SkipConfiguration(restrict_to_workspace=True, workspace_roots=("/other", "/proj"))
        assert should_skip(SymbolKind.METHOD, "/proj/app/a.py", configuration) == DO_NOT_SKIP

    def test_workspace_restriction_disabled(self):
        """Should keep targets anywhere when the restriction is off"""
        configuration = SkipConfiguration(restrict_to_workspace=False, workspace_roots=("/proj",))
        assert should_skip(SymbolKind.METHOD, "/elsewhere/a.py", configuration).skip is False

    def test_third_party_folder(self):
        """Should skip targets in a virtual environment folder"""
        configuration = SkipConfiguration(
            restrict_to_workspace=True,
            workspace_roots=("/proj",),
            ignore_third_party=True,
        )

        result = should_skip(
            SymbolKind.FUNCTION, "/proj/.venv/lib/python3.12/site-packages/requests/api.py", configuration
        )

        assert result.reason == "goes to external module"

    def test_interpreter_path_stands_for_environment(self):
        """Should treat the environment of an interpreter binary as 3rd party"""
        configuration = SkipConfiguration(ignore_third_party=True, third_party_paths=("/opt/env/bin/python3",))

        result = should_skip(SymbolKind.FUNCTION, "/opt/env/lib/python3.12/site.py", configuration)

        assert result.reason == "goes to external module"

    def test_third_party_disabled(self):
        """Should keep environment targets when 3rd party packages are allowed"""
        configuration = SkipConfiguration(ignore_third_party=False)
        assert should_skip(SymbolKind.FUNCTION, "/proj/.venv/lib/x.py", configuration).skip is False


class TestSkipPrecedence:
    """Test that the first matching rule wins"""

    def test_glob_before_workspace(self):
        """Should report the glob reason for an ignored target outside the workspace"""
        configuration = SkipConfiguration(
            ignore_globs=("vendor/**",),
            restrict_to_workspace=True,
            workspace_roots=("/proj",),
        )

        result = should_skip(SymbolKind.FUNCTION, "vendor/x.py", configuration)

        assert result.skip is True
        assert result.reason == "involves ignored globals"

    def test_kind_before_glob(self):
        """Should report the kind reason before any path rule"""
        configuration = SkipConfiguration(ignore_globs=("*",))
        assert should_skip(SymbolKind.VARIABLE, "a.py", configuration).reason == "is not a function call"


class TestSkipPolicy:
    """Test the policy object"""

    def test_from_settings(self):
        """Should take globs, roots and environment paths from settings"""
        settings = Settings(
            ignore_on_generate=["*_test.py"],
            workspace_roots=[],
            venv_path="/envs/a;/envs/b",
            python_path="",
            venv_folders=[],
        )

        configuration = SkipConfiguration.from_settings(settings, workspace_roots=["/proj"])

        assert configuration.ignore_globs == ("*_test.py",)
        assert configuration.workspace_roots == ("/proj",)
        assert "/envs/a" in configuration.third_party_paths
        assert "/envs/b" in configuration.third_party_paths

    def test_configured_roots_win(self):
        """Should prefer roots from settings over the provider's"""
        settings = Settings(workspace_roots=["/configured"])

        configuration = SkipConfiguration.from_settings(settings, workspace_roots=["/proj"])

        assert configuration.workspace_roots == ("/configured",)

    def test_check_call_site(self):
        """Should apply the rules to the call site's target"""
        target = CallHierarchyItem(
            name="save",
            kind=SymbolKind.METHOD,
            uri="/elsewhere/repo.py",
            range=Range.from_coordinates(0, 0, 1, 0),
            selection_range=Range.from_coordinates(0, 4, 0, 8),
        )
        call_site = CallSite(target=target, source_range=Range.from_coordinates(3, 4, 3, 8))
        policy = SkipPolicy(SkipConfiguration(restrict_to_workspace=True, workspace_roots=("/proj",)))

        result = policy.check(call_site)

        assert result.reason == "goes out of workspace"
