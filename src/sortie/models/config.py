"""Project configuration model for Sortie.

Captures sortie.yaml fields with sensible defaults for project-level
settings like the assistant binary, results locations, and the
improvement loop's rebuild commands.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

# Fix step wall-clock budget; controller-scoped, never read from a scenario
FIX_STEP_TIMEOUT_SECONDS = 10 * 60


class LoopSettings(BaseModel):
    """Configuration for the run -> analyze -> fix -> rebuild loop.

    Paths are relative to the project root. The editable and upstream
    asset directories are quoted verbatim in the fix prompt so the
    assistant knows which files it may change.
    """

    model_config = {"extra": "forbid"}

    max_iters: int = Field(default=3, ge=1)
    fix_timeout_seconds: float = Field(default=FIX_STEP_TIMEOUT_SECONDS, gt=0)
    idle_timeout_seconds: float = Field(default=180.0, gt=0)
    build_dir: str = "cli"
    build_commands: list[list[str]] = Field(
        default_factory=lambda: [["go", "build", "./..."], ["go", "test", "./..."]]
    )
    install_command: list[str] | None = Field(default_factory=lambda: ["mage", "build"])
    editable_asset_dirs: list[str] = Field(
        default_factory=lambda: [
            "cli/src/internal/assets/agents/",
            "cli/src/internal/assets/skills/",
        ]
    )
    upstream_asset_dir: str = "cli/src/internal/assets/ghcp4a-skills/"
    verify_command: str = "cd cli && go build ./... && go test ./..."


class ProjectConfig(BaseModel):
    """Project-level configuration loaded from sortie.yaml."""

    model_config = {"extra": "forbid"}

    scenarios_dir: str = "scenarios"
    results_db: str = "scenarios/results.db"
    results_json: str = "scenarios/results.json"
    dashboard_file: str = "scenarios/dashboard.html"
    assistant_binary: str = "azd"
    session_state_dir: str | None = None
    loop: LoopSettings = Field(default_factory=LoopSettings)

    def session_root(self) -> Path:
        """Directory holding one sub-directory per assistant session."""
        if self.session_state_dir:
            return Path(self.session_state_dir).expanduser()
        return default_session_root()


def default_session_root() -> Path:
    """Where the assistant persists session transcripts by default."""
    return Path.home() / ".copilot" / "session-state"


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for sortie.yaml.

    Args:
        start: Starting path (file or directory). Defaults to cwd.

    Returns:
        Path to the directory containing sortie.yaml, or cwd if none is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / "sortie.yaml").exists():
            return current
        current = current.parent
    return Path.cwd()


def load_project_config(project_root: Path | None = None) -> ProjectConfig:
    """Load ProjectConfig from sortie.yaml. Returns defaults if not found.

    Args:
        project_root: Path to the project root directory. If None,
            uses find_project_root() to locate it.

    Returns:
        Validated ProjectConfig instance.
    """
    if project_root is None:
        project_root = find_project_root()
    config_path = project_root / "sortie.yaml"
    if not config_path.exists():
        return ProjectConfig()
    import yaml

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if raw is None:
        return ProjectConfig()
    return ProjectConfig.model_validate(raw)
