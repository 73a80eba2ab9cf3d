"""toprun configuration.

Typed configuration for a scaffolding run.  ``ScaffoldConfig`` is the
immutable record describing *what* to generate; ``RunnerSettings`` holds the
knobs that control *how* the run behaves (verbosity, worker count, command
timeouts).  All settings use Pydantic v2 models so they are validated at
construction time and can be serialised to/from JSON, YAML, or environment
variables without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_DESCRIPTION = "Modern web project built with toprun"

# The name is substituted into quoted JS and front-matter string literals.
_NAME_QUOTES = ("\"", "'", "`")


class CssFramework(str, Enum):
    """CSS framework choice offered to the user."""

    TAILWIND = "tailwind"
    NONE = "none"

    @property
    def display_name(self) -> str:
        return _CSS_DISPLAY_NAMES[self]

    @property
    def version(self) -> str | None:
        """Pinned npm version for the framework package, if any."""
        return _CSS_VERSIONS.get(self)


_CSS_DISPLAY_NAMES: dict[CssFramework, str] = {
    CssFramework.TAILWIND: "TailwindCSS",
    CssFramework.NONE: "Plain CSS",
}

_CSS_VERSIONS: dict[CssFramework, str] = {
    CssFramework.TAILWIND: "3.4.1",
}


class GitConfig(BaseModel):
    """Version-control options."""

    model_config = ConfigDict(frozen=True)

    init: bool = Field(default=False, description="Initialise a git repository")
    remote_url: str = Field(default="", description="Optional remote to add as origin")

    @field_validator("remote_url")
    @classmethod
    def _strip_remote(cls, value: str) -> str:
        return value.strip()


class ScaffoldConfig(BaseModel):
    """Immutable description of the project to scaffold.

    Constructed once from user input (prompts, flags, or a config file) and
    then passed unchanged through every stage of the run.
    """

    model_config = ConfigDict(frozen=True)

    project_name: str = Field(..., description="Project and directory name, used verbatim (no quotes or path separators)")
    description: str = Field(default=DEFAULT_DESCRIPTION)
    use_typescript: bool = Field(default=True)
    css_framework: CssFramework = Field(default=CssFramework.TAILWIND)
    use_markdown: bool = Field(default=False, description="Markdown homepage instead of HTML")
    git: GitConfig = Field(default_factory=GitConfig)

    @field_validator("project_name")
    @classmethod
    def _validate_project_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("project name is required")
        if value != value.strip():
            raise ValueError(f"project name {value!r} has leading or trailing whitespace")
        if value in (".", "..") or "/" in value or "\\" in value:
            raise ValueError(f"project name {value!r} is not a valid directory name")
        if any(quote in value for quote in _NAME_QUOTES):
            raise ValueError(f"project name {value!r} must not contain quote characters")
        return value

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    @property
    def template_format(self) -> str:
        """Human-readable name of the homepage format."""
        return "Markdown" if self.use_markdown else "HTML"

    def summary(self) -> dict[str, str]:
        """Return a label -> value mapping for the confirmation table."""
        return {
            "Project": self.project_name,
            "TypeScript": yes_no_glyph(self.use_typescript),
            "CSS": self.css_framework.display_name,
            "Template format": self.template_format,
            "Git": yes_no_glyph(self.git.init),
        }

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration as JSON and return the written path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "ScaffoldConfig":
        """Load a configuration from a ``.json``, ``.yaml`` or ``.yml`` file.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the YAML cannot be parsed.
            pydantic.ValidationError: If the content does not validate.
        """
        source = Path(path)
        raw = source.read_text(encoding="utf-8")
        if source.suffix.lower() in (".yaml", ".yml"):
            try:
                data: Any = yaml.safe_load(raw) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {source}: {exc}") from exc
            return cls.model_validate(data)
        return cls.model_validate_json(raw)


class RunnerSettings(BaseModel):
    """Tuning knobs for a scaffolding run."""

    verbose: bool = Field(default=False)
    skip_install: bool = Field(default=False, description="Do not run the package manager install")
    force: bool = Field(default=False, description="Scaffold into a non-empty directory")
    command_timeout: int = Field(
        default=300, ge=10, description="Per-command timeout in seconds for external tools"
    )
    max_workers: int = Field(
        default=8, ge=1, description="Concurrent file operations during materialization"
    )

    @classmethod
    def from_env(cls) -> "RunnerSettings":
        """Build ``RunnerSettings`` from environment variables.

        Recognised variables (all optional):
            TOPRUN_VERBOSE, TOPRUN_SKIP_INSTALL, TOPRUN_COMMAND_TIMEOUT,
            TOPRUN_MAX_WORKERS.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("TOPRUN_VERBOSE"):
            kwargs["verbose"] = _env_flag(os.environ["TOPRUN_VERBOSE"])
        if os.environ.get("TOPRUN_SKIP_INSTALL"):
            kwargs["skip_install"] = _env_flag(os.environ["TOPRUN_SKIP_INSTALL"])
        if os.environ.get("TOPRUN_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["TOPRUN_COMMAND_TIMEOUT"])
        if os.environ.get("TOPRUN_MAX_WORKERS"):
            kwargs["max_workers"] = int(os.environ["TOPRUN_MAX_WORKERS"])
        return cls(**kwargs)


def yes_no_glyph(value: bool) -> str:
    """Return the check/cross glyph used in summaries and generated files."""
    return "✅" if value else "❌"


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no", "off")
