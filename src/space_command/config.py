"""Configuration module for space-command.

Loads configuration from environment variables, optionally layered over a
YAML settings file pointed to by SPACE_CONFIG.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_TAGS = ["#p0", "#p1", "#p2", "#p3", "#p4"]

# Settings that may come from the YAML file
FILE_SETTINGS = {
    "priority_tags",
    "todone_file",
    "projects_folder",
    "exclude_folders_from_projects",
    "log_completions",
    "exclude_todone_file_from_done",
    "debounce_ms",
    "llm_backend",
    "llm_url",
    "llm_model",
    "llm_timeout",
}


def normalize_tag(tag: str) -> str:
    """Return the tag with a leading '#', stripped of whitespace."""
    tag = str(tag).strip()
    if not tag:
        raise ValueError("Empty tag")
    return tag if tag.startswith("#") else f"#{tag}"


@dataclass
class Config:
    """Application configuration."""

    space_root: Path
    space_port: int = 8080
    priority_tags: list[str] = field(default_factory=lambda: list(DEFAULT_PRIORITY_TAGS))
    todone_file: str = "todos/done.md"
    projects_folder: str = "projects/"
    exclude_folders_from_projects: list[str] = field(default_factory=lambda: ["log"])
    log_completions: bool = True
    exclude_todone_file_from_done: bool = True
    debounce_ms: int = 100
    auth_token: str | None = None
    read_only: bool = False
    llm_backend: str = "ollama"
    llm_url: str = "http://localhost:11434"
    llm_model: str = "llama3.2"
    llm_timeout: float = 30.0

    def __post_init__(self) -> None:
        self.priority_tags = [normalize_tag(t) for t in self.priority_tags]
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms}")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_env(cls, read_only_override: bool | None = None) -> "Config":
        """Load configuration from environment variables.

        Args:
            read_only_override: If provided, overrides the SPACE_READ_ONLY env var.
        """
        default_root = str(Path.home() / "notes")
        space_root = Path(os.getenv("SPACE_ROOT", default_root)).expanduser()

        port_str = os.getenv("SPACE_PORT", "8080")
        try:
            space_port = int(port_str)
            if not 1 <= space_port <= 65535:
                raise ValueError(f"Port must be between 1 and 65535, got {space_port}")
        except ValueError as e:
            raise ValueError(f"Invalid SPACE_PORT value '{port_str}': {e}") from e

        # Auth token - must be at least 32 bytes if set
        auth_token = os.getenv("SPACE_AUTH_TOKEN")
        if auth_token is not None:
            if len(auth_token) < 32:
                raise ValueError(
                    "SPACE_AUTH_TOKEN must be at least 32 characters for security"
                )

        # Read-only mode - CLI flag takes precedence over env var
        if read_only_override is not None:
            read_only = read_only_override
        else:
            read_only = os.getenv("SPACE_READ_ONLY", "").lower() in ("1", "true", "yes")

        settings: dict[str, Any] = {}
        config_path = os.getenv("SPACE_CONFIG")
        if config_path:
            settings = load_settings_file(Path(config_path).expanduser())

        return cls(
            space_root=space_root,
            space_port=space_port,
            auth_token=auth_token,
            read_only=read_only,
            **settings,
        )

    def replace(self, **changes: Any) -> "Config":
        """Return a copy with the given settings changed."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return Config(**values)


def load_settings_file(path: Path) -> dict[str, Any]:
    """
    Load settings from a YAML file.

    Unknown keys are ignored with a warning.

    Raises:
        ValueError: If the file is missing, unreadable or not a YAML mapping.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ValueError(f"Cannot read SPACE_CONFIG file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in SPACE_CONFIG file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"SPACE_CONFIG file {path} must contain a mapping")

    settings: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in FILE_SETTINGS:
            logger.warning("Ignoring unknown setting '%s' in %s", key, path)
            continue
        settings[key] = value

    for key in ("priority_tags", "exclude_folders_from_projects"):
        if key in settings and not isinstance(settings[key], list):
            raise ValueError(f"Setting '{key}' in {path} must be a list")

    return settings
