"""
Application settings and configuration.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from pathlib import Path
from typing import List, Literal
from dotenv import load_dotenv

# Load .env file explicitly
load_dotenv()

class Settings(BaseSettings):
    """Diagram generation settings loaded from environment variables."""

    # ========== Ignore Settings ==========
    ignore_on_generate: List[str] = Field(default_factory=list)
    ignore_non_workspace_files: bool = True
    ignore_third_party_packages: bool = True

    # Environment locations holding 3rd party packages
    python_path: str = ""
    venv_folders: List[str] = Field(default_factory=list)
    venv_path: str = ""

    # Empty means: take the roots reported by the call hierarchy provider
    workspace_roots: List[str] = Field(default_factory=list)

    # ========== Diagram Settings ==========
    max_call_depth: int = Field(5, ge=1, le=32)
    omit_message_details: bool = False
    omit_sequence_numbers: bool = False
    show_signatures_instead_parameters: bool = False
    return_message_label: str = "return value"

    wrap_width: int = Field(30, ge=1)
    soft_wrap_limit: int = Field(10, ge=1)

    self_tokens: List[str] = Field(default_factory=lambda: ["self"])

    diagram_format: Literal["mermaid", "plantuml"] = "mermaid"
    diagram_theme: str = "forest"

    # ========== Files Settings ==========
    save_automatically: bool = False
    open_automatically: bool = True
    plantuml_server_url: str = "http://www.plantuml.com/plantuml/img/"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
            env_prefix="PYSEQ_",
            env_file=".env",
            env_file_encoding="utf-8",
            case_sensitive=False,
            extra="ignore"
        )

    @field_validator("return_message_label")
    @classmethod
    def _space_for_empty_label(cls, value: str) -> str:
        # Mermaid rejects messages without text
        return value if value else " "

    @field_validator("self_tokens")
    @classmethod
    def _require_self_token(cls, value: List[str]) -> List[str]:
        tokens = [token.strip() for token in value if token.strip()]
        if not tokens:
            raise ValueError("at least one self token is required")
        return tokens

    def third_party_paths(self) -> List[str]:
        """Folders whose files count as 3rd party packages."""
        # Two default folders offered when creating a virtual environment
        paths = [".venv", ".conda"]

        if self.python_path:
            paths.append(self.python_path)

        paths.extend(folder for folder in self.venv_folders if folder)

        # Users may list multiple paths separated by comma or semicolon
        for item in self.venv_path.replace(";", ",").split(","):
            if item.strip():
                paths.append(item.strip())

        return paths

# Create settings instance
settings = Settings()


PROJECT_MARKERS = (".git", "pyproject.toml", "setup.py", "requirements.txt")


def find_project_root(start_path: Path) -> Path:
    """
    Searches upwards for a marker that indicates the project root
    (like .git, pyproject.toml, or requirements.txt).
    Falls back to the Current Working Directory if nothing is found.
    """
    current = Path(start_path).resolve()
    if current.is_file():
        current = current.parent
    for parent in [current] + list(current.parents):
        if any((parent / marker).exists() for marker in PROJECT_MARKERS):
            return parent
    return Path.cwd().resolve()
