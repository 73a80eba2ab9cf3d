"""Shared pytest fixtures for the toprun test suite.

Provides reusable fixtures for:
- Scaffold configurations for the two opposite variant selections
- Target directories for generated projects
- A throwaway template store for drift/failure scenarios
- Mock subprocess helpers
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from toprun.config import CssFramework, GitConfig, ScaffoldConfig
from toprun.scaffolder.templates import TemplateStore
from toprun.utils import set_verbose


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------

@pytest.fixture
def demo_config() -> ScaffoldConfig:
    """TypeScript + Tailwind + HTML, no git."""
    return ScaffoldConfig(
        project_name="demo",
        use_typescript=True,
        css_framework=CssFramework.TAILWIND,
        use_markdown=False,
        git=GitConfig(init=False),
    )


@pytest.fixture
def plain_config() -> ScaffoldConfig:
    """JavaScript + plain CSS + Markdown, git with a remote."""
    return ScaffoldConfig(
        project_name="plain-site",
        use_typescript=False,
        css_framework=CssFramework.NONE,
        use_markdown=True,
        git=GitConfig(init=True, remote_url="git@example.com:me/plain-site.git"),
    )


# ---------------------------------------------------------------------------
# Paths & stores
# ---------------------------------------------------------------------------

@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Target directory for a generated project (not yet created)."""
    return tmp_path / "demo"


@pytest.fixture
def template_store() -> TemplateStore:
    """The bundled template store."""
    return TemplateStore()


@pytest.fixture
def tiny_store(tmp_path: Path) -> TemplateStore:
    """A store with two templates, for lookup tests."""
    root = tmp_path / "store"
    (root / "js").mkdir(parents=True)
    (root / "js" / "main.js.j2").write_text("console.log('{{PROJECT_NAME}}');\n", encoding="utf-8")
    (root / "gitignore.j2").write_text("node_modules/\n", encoding="utf-8")
    (root / "notes.txt").write_text("not a template\n", encoding="utf-8")
    return TemplateStore(root)


@pytest.fixture(autouse=True)
def _quiet_console():
    """Keep verbose output off between tests."""
    set_verbose(False)
    yield
    set_verbose(False)


# ---------------------------------------------------------------------------
# Subprocess helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_run_command_ok() -> AsyncMock:
    """An AsyncMock standing in for ``run_command`` that always succeeds."""
    return AsyncMock(return_value=(0, "9.0.0", ""))
