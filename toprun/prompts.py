"""Interactive interview that produces a ``ScaffoldConfig``.

Answers already supplied on the command line (or from a config file) are
never asked again.  With ``assume_yes`` every remaining question takes its
default, which makes the collector usable from scripts and CI.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.prompt import Confirm, Prompt

from toprun.config import DEFAULT_DESCRIPTION, CssFramework, GitConfig, ScaffoldConfig
from toprun.utils import console as default_console
from toprun.utils import print_summary_table


class CollectorError(Exception):
    """Raised when the interview cannot produce a valid configuration."""


class ConfigCollector:
    """Asks the user for every scaffold option not already known."""

    def __init__(self, console: Console | None = None, *, assume_yes: bool = False) -> None:
        self.console = console or default_console
        self.assume_yes = assume_yes

    def collect(self, answers: dict[str, Any] | None = None) -> ScaffoldConfig:
        """Build a ``ScaffoldConfig`` from *answers*, prompting for the rest.

        Recognised keys: ``project_name``, ``description``,
        ``use_typescript``, ``css_framework``, ``use_markdown``,
        ``git_init``, ``remote_url``.  ``None`` values count as unanswered.

        Raises:
            CollectorError: If no project name is given or the answers do
                not validate.
        """
        known = {k: v for k, v in (answers or {}).items() if v is not None}

        project_name = known.get("project_name") or self._ask_text("📝 Project name")
        if not project_name or not str(project_name).strip():
            raise CollectorError("Project name is required")

        use_typescript = self._answer(known, "use_typescript", "🔷 Use TypeScript?", True)
        css_framework = known.get("css_framework") or self._ask_choice(
            "🎨 Choose CSS framework",
            [fw.value for fw in CssFramework],
            CssFramework.TAILWIND.value,
        )
        use_markdown = self._answer(
            known, "use_markdown", "📄 Use Markdown for the homepage?", False
        )
        git_init = self._answer(known, "git_init", "📦 Initialize Git repository?", True)

        remote_url = known.get("remote_url", "")
        if git_init and "remote_url" not in known:
            remote_url = self._ask_text(
                "🌐 Git remote URL (optional, press Enter to skip)", default=""
            )

        try:
            return ScaffoldConfig(
                project_name=project_name,
                description=known.get("description", DEFAULT_DESCRIPTION),
                use_typescript=use_typescript,
                css_framework=CssFramework(css_framework),
                use_markdown=use_markdown,
                git=GitConfig(init=git_init, remote_url=remote_url or ""),
            )
        except (ValidationError, ValueError) as exc:
            raise CollectorError(str(exc)) from exc

    def confirm(self, config: ScaffoldConfig) -> bool:
        """Show the resolved configuration and ask whether to build it."""
        print_summary_table(config.summary(), title="📋 Configuration")
        if self.assume_yes:
            return True
        return Confirm.ask("🚀 Build project?", default=True, console=self.console)

    def confirm_push(self) -> bool:
        if self.assume_yes:
            return False
        return Confirm.ask("🚀 Push to remote repository?", default=True, console=self.console)

    # -- Internal ----------------------------------------------------------

    def _answer(self, known: dict[str, Any], key: str, question: str, default: bool) -> bool:
        if key in known:
            return bool(known[key])
        if self.assume_yes:
            return default
        return Confirm.ask(question, default=default, console=self.console)

    def _ask_text(self, question: str, default: str | None = None) -> str:
        if self.assume_yes:
            return default or ""
        answer = Prompt.ask(question, default=default, console=self.console)
        return (answer or "").strip()

    def _ask_choice(self, question: str, choices: list[str], default: str) -> str:
        if self.assume_yes:
            return default
        return Prompt.ask(question, choices=choices, default=default, console=self.console)
