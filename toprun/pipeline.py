"""toprun pipeline orchestrator and CLI.

Implements the five build stages:

Stage 1: SCAFFOLD -- Materialize the template tree.
Stage 2: PACKAGE  -- Write package.json (and .npmrc for pnpm).
Stage 3: INSTALL  -- Install dev dependencies with the detected package manager.
Stage 4: SCRIPTS  -- Register build/dev scripts in package.json.
Stage 5: GIT      -- Initialise a repository, commit, add remote, push.

Usage::

    toprun my-site
    toprun my-site --no-typescript --css none --markdown --yes
    python -m toprun.pipeline --config site.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
import traceback
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rich.panel import Panel

from toprun import __version__
from toprun.config import CssFramework, RunnerSettings, ScaffoldConfig
from toprun.installer import (
    GitInitializer,
    PackageManager,
    detect_package_manager,
    install_dependencies,
    register_scripts,
    write_package_descriptor,
)
from toprun.prompts import CollectorError, ConfigCollector
from toprun.scaffolder import Materializer, ScaffoldError, TemplateStore
from toprun.utils import (
    STAGE_NAMES,
    console,
    format_duration,
    is_empty_dir,
    print_error,
    print_stage_header,
    print_success,
    print_verbose,
    print_warning,
    set_verbose,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a pipeline stage fails irrecoverably."""

    def __init__(self, stage: int, message: str) -> None:
        self.stage = stage
        super().__init__(f"Stage {stage} ({STAGE_NAMES.get(stage, '?')}): {message}")


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Drives the build stages for one project.

    Attributes:
        config: What to scaffold.
        settings: How the run behaves.
        project_root: Directory the project is generated into.
        state: Accumulated per-stage results, returned by :meth:`run`.
    """

    def __init__(
        self,
        config: ScaffoldConfig,
        settings: RunnerSettings | None = None,
        *,
        output_dir: str | Path = ".",
        store: TemplateStore | None = None,
        package_manager: PackageManager | None = None,
        confirm_push: Callable[[], bool] | None = None,
    ) -> None:
        self.config = config
        self.settings = settings or RunnerSettings()
        self.project_root = (Path(output_dir) / config.project_name).resolve()
        self.store = store
        self.package_manager = package_manager
        self.confirm_push = confirm_push
        self.state: dict[str, Any] = {
            "project_root": str(self.project_root),
            "stages_completed": [],
            "stages_failed": [],
            "stages_skipped": [],
            "warnings": [],
            "success": False,
        }

    # ------------------------------------------------------------------
    # Stage dispatch
    # ------------------------------------------------------------------

    _STAGE_METHODS: dict[int, str] = {
        1: "stage1_scaffold",
        2: "stage2_package",
        3: "stage3_install",
        4: "stage4_scripts",
        5: "stage5_git",
    }

    def _stages(self) -> list[int]:
        stages = [1, 2]
        if self.settings.skip_install:
            self.state["stages_skipped"].append(3)
        else:
            stages.append(3)
        stages.append(4)
        if self.config.git.init:
            stages.append(5)
        else:
            self.state["stages_skipped"].append(5)
        return stages

    async def run(self) -> dict[str, Any]:
        """Execute every applicable stage in order.

        Returns:
            The final state dictionary, including a top-level ``success``
            boolean.  A fatal stage error stops the run; warnings do not.
        """
        started = time.monotonic()
        console.print(
            Panel(
                f"[bold bright_cyan]🚀 Building project: {self.config.project_name}[/bold bright_cyan]\n"
                f"Output : {self.project_root}",
                title=f"[bold]toprun v{__version__}[/bold]",
                border_style="bright_cyan",
            )
        )

        all_success = True
        try:
            await self._preflight()
        except PipelineError as exc:
            print_error(str(exc))
            self.state["stages_failed"].append(exc.stage)
            return self.state

        for stage in self._stages():
            name = STAGE_NAMES[stage]
            print_stage_header(stage, name)
            stage_start = time.monotonic()
            try:
                method = getattr(self, self._STAGE_METHODS[stage])
                self.state[f"stage{stage}"] = await method()
                self.state["stages_completed"].append(stage)
                print_success(
                    f"Stage {stage} ({name}) completed in "
                    f"{format_duration(time.monotonic() - stage_start)}"
                )
            except (PipelineError, ScaffoldError) as exc:
                all_success = False
                self.state["stages_failed"].append(stage)
                self.state[f"stage{stage}_error"] = str(exc)
                print_error(f"❌ Stage {stage} ({name}) failed: {exc}")
                break
            except Exception as exc:
                all_success = False
                self.state["stages_failed"].append(stage)
                self.state[f"stage{stage}_error"] = traceback.format_exc()
                print_error(f"❌ Stage {stage} ({name}) failed: {exc}")
                if self.settings.verbose:
                    console.print(f"[dim]{traceback.format_exc()}[/dim]")
                break

        self.state["success"] = all_success
        self.state["total_duration"] = format_duration(time.monotonic() - started)
        if all_success:
            self._print_final_instructions()
        return self.state

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    async def _preflight(self) -> None:
        """Refuse to overwrite a non-empty directory and pick a package manager."""
        if self.project_root.exists() and not self.project_root.is_dir():
            raise PipelineError(1, f"{self.project_root} exists and is not a directory")
        if not self.settings.force and not is_empty_dir(self.project_root):
            raise PipelineError(
                1, f"{self.project_root} is not empty (use --force to scaffold into it)"
            )
        if self.package_manager is None:
            self.package_manager = await detect_package_manager(
                timeout=min(self.settings.command_timeout, 30)
            )
        self.state["package_manager"] = self.package_manager.cmd

    @property
    def pm(self) -> PackageManager:
        if self.package_manager is None:
            raise PipelineError(1, "package manager has not been detected")
        return self.package_manager

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def stage1_scaffold(self) -> dict[str, Any]:
        materializer = Materializer(
            self.config,
            self.store,
            package_manager=self.pm.cmd,
            max_workers=self.settings.max_workers,
        )
        result = await materializer.materialize(self.project_root)
        for skipped in result.substitution_skipped:
            print_verbose(f"Skipped placeholder replacement in {skipped}")
        for warning in result.finalize.warnings:
            self._warn(f"Cleanup note: {warning}")
        return {
            "files_written": len(result.written),
            "files_substituted": len(result.substituted),
            "removed": result.finalize.removed,
            "renamed": [f"{src} -> {dst}" for src, dst in result.finalize.renamed],
        }

    async def stage2_package(self) -> dict[str, Any]:
        written = await write_package_descriptor(self.project_root, self.config, self.pm)
        return {"written": [p.name for p in written]}

    async def stage3_install(self) -> dict[str, Any]:
        console.print(f"  🔧 Installing dependencies with {self.pm.cmd}...")
        ok, error = await install_dependencies(
            self.project_root,
            self.config,
            self.pm,
            timeout=self.settings.command_timeout,
            verbose=self.settings.verbose,
        )
        if not ok:
            self._warn(
                f"Dependency installation failed: {error}. "
                f"Run '{self.pm.cmd} install' inside {self.config.project_name} manually."
            )
        return {"installed": ok}

    async def stage4_scripts(self) -> dict[str, Any]:
        scripts = await register_scripts(self.project_root, self.config, self.pm)
        return {"scripts": sorted(scripts)}

    async def stage5_git(self) -> dict[str, Any]:
        git = GitInitializer(
            self.project_root,
            self.config,
            timeout=self.settings.command_timeout,
            confirm_push=self.confirm_push,
        )
        result = await git.initialize()
        for warning in result.warnings:
            self._warn(warning)
        return {
            "initialized": result.initialized,
            "committed": result.committed,
            "remote_added": result.remote_added,
            "pushed": result.pushed,
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _warn(self, message: str) -> None:
        self.state["warnings"].append(message)
        print_warning(f"⚠️  {message}")

    def _print_final_instructions(self) -> None:
        console.print()
        print_success("✅ Project is ready!")
        console.print(f"👉 cd {self.config.project_name}")
        console.print(f"👉 {self.pm.cmd} run dev")
        if self.config.git.init and self.config.git.remote_url:
            console.print(f"\n📦 Git repository: {self.config.git.remote_url}")
        console.print("\n✨ Happy coding with toprun ✨")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toprun",
        description="toprun -- scaffold a modern Eleventy web project in seconds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  toprun my-site\n"
            "  toprun my-site --no-typescript --css none --markdown --yes\n"
            "  toprun --config site.yaml --skip-install\n"
        ),
    )
    parser.add_argument("project_name", nargs="?", help="Project (and directory) name")
    parser.add_argument(
        "--typescript", dest="use_typescript", action=argparse.BooleanOptionalAction,
        default=None, help="Use TypeScript for the script entry",
    )
    parser.add_argument(
        "--css", dest="css_framework", choices=[fw.value for fw in CssFramework],
        default=None, help="CSS framework",
    )
    parser.add_argument(
        "--markdown", dest="use_markdown", action=argparse.BooleanOptionalAction,
        default=None, help="Use a Markdown homepage instead of HTML",
    )
    parser.add_argument(
        "--git", dest="git_init", action=argparse.BooleanOptionalAction,
        default=None, help="Initialise a git repository",
    )
    parser.add_argument("--remote", dest="remote_url", default=None, help="Git remote URL")
    parser.add_argument("--push", action="store_true", help="Push to the remote without asking")
    parser.add_argument("--config", type=Path, default=None, help="JSON or YAML config file")
    parser.add_argument(
        "--output", "-o", type=Path, default=Path("."),
        help="Parent directory for the project (default: current directory)",
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Accept defaults, do not prompt")
    parser.add_argument("--skip-install", action="store_true", help="Do not install dependencies")
    parser.add_argument("--force", action="store_true", help="Scaffold into a non-empty directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed progress")
    parser.add_argument("--version", action="version", version=f"toprun {__version__}")
    return parser


def _resolve_settings(args: argparse.Namespace) -> RunnerSettings:
    settings = RunnerSettings.from_env()
    overrides: dict[str, Any] = {}
    if args.verbose:
        overrides["verbose"] = True
    if args.skip_install:
        overrides["skip_install"] = True
    if args.force:
        overrides["force"] = True
    return settings.model_copy(update=overrides)


def _resolve_config(args: argparse.Namespace, collector: ConfigCollector) -> ScaffoldConfig:
    answers: dict[str, Any] = {}
    if args.config is not None:
        loaded = ScaffoldConfig.load(args.config)
        answers.update(
            project_name=loaded.project_name,
            description=loaded.description,
            use_typescript=loaded.use_typescript,
            css_framework=loaded.css_framework.value,
            use_markdown=loaded.use_markdown,
            git_init=loaded.git.init,
            remote_url=loaded.git.remote_url,
        )
    for key in ("project_name", "use_typescript", "css_framework", "use_markdown", "git_init", "remote_url"):
        value = getattr(args, key)
        if value is not None:
            answers[key] = value
    return collector.collect(answers)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``toprun`` / ``python -m toprun.pipeline``."""
    args = build_parser().parse_args(argv)
    settings = _resolve_settings(args)
    set_verbose(settings.verbose)

    collector = ConfigCollector(assume_yes=args.yes)
    console.print(f"[bold]🚀 Welcome to toprun v{__version__}[/bold]")
    console.print("Build a modern web project in seconds!\n")

    try:
        config = _resolve_config(args, collector)
    except FileNotFoundError as exc:
        print_error(f"Error: config file not found: {exc.filename}")
        sys.exit(1)
    except (CollectorError, ValueError) as exc:
        print_error(f"❌ {exc}")
        sys.exit(1)

    if not collector.confirm(config):
        console.print("❌ Cancelled")
        sys.exit(0)

    if args.push:
        confirm_push: Callable[[], bool] = lambda: True
    else:
        confirm_push = collector.confirm_push

    pipeline = Pipeline(
        config,
        settings,
        output_dir=args.output,
        confirm_push=confirm_push,
    )
    result = asyncio.run(pipeline.run())
    if not result.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
