"""Git repository initialisation for freshly scaffolded projects.

Runs ``git init``, stages and commits the generated tree, and optionally adds
a remote and pushes to it.  Every step is best-effort: a failure is recorded
as a warning carrying the command the operator can run by hand.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from toprun.config import ScaffoldConfig
from toprun.utils import print_verbose, run_command


class CommandError(Exception):
    """Raised when a required external command exits non-zero."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


async def _run_git(
    *args: str,
    cwd: str | Path,
    timeout: float = 60.0,
) -> tuple[str, str]:
    """Run a git command in *cwd* and return (stdout, stderr).

    Raises CommandError if git is missing, times out, or exits non-zero.
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
    except FileNotFoundError as exc:
        raise CommandError("git executable not found", command=cmd_str) from exc
    except OSError as exc:
        raise CommandError(f"Cannot execute git: {exc}", command=cmd_str) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise CommandError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
        )

    stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
    stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        raise CommandError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr


@dataclass
class GitResult:
    """What the git stage managed to do."""

    available: bool = True
    initialized: bool = False
    committed: bool = False
    remote_added: bool = False
    pushed: bool = False
    warnings: list[str] = field(default_factory=list)


class GitInitializer:
    """Initialises a git repository in a scaffolded project.

    *confirm_push* is asked once a remote has been added; returning ``False``
    (or passing ``None``) skips the push.
    """

    def __init__(
        self,
        repo_path: str | Path,
        config: ScaffoldConfig,
        *,
        timeout: float = 60.0,
        confirm_push: Callable[[], bool] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path)
        self.config = config
        self.timeout = timeout
        self.confirm_push = confirm_push

    @property
    def commit_message(self) -> str:
        return f"🎉 Initial commit: {self.config.project_name} built with toprun"

    async def is_available(self) -> bool:
        code, _, _ = await run_command(["git", "--version"], cwd=self.repo_path, timeout=15)
        return code == 0

    async def initialize(self) -> GitResult:
        """Run the full init/commit/remote/push sequence."""
        result = GitResult()

        if not await self.is_available():
            result.available = False
            result.warnings.append("Git not found. Initialize manually with: git init")
            return result

        try:
            print_verbose("📦 Initializing Git repository...")
            await self._git("init")
            result.initialized = True
            await self._git("add", ".")
            await self._git("commit", "-m", self.commit_message)
            result.committed = True
        except CommandError as exc:
            result.warnings.append(
                f"Git initialization failed ({exc.stderr or exc}). "
                "Initialize manually with: git init"
            )
            return result

        remote = self.config.git.remote_url
        if not remote:
            return result

        print_verbose("🌐 Adding remote repository...")
        try:
            await self._git("remote", "add", "origin", remote)
            result.remote_added = True
        except CommandError:
            result.warnings.append(
                f"Failed to add remote. Add manually with: git remote add origin {remote}"
            )
            return result

        if self.confirm_push is None or not await asyncio.to_thread(self.confirm_push):
            return result

        try:
            await self._git("branch", "-M", "main")
            await self._git("push", "-u", "origin", "main")
            result.pushed = True
        except CommandError:
            result.warnings.append(
                "Failed to push to remote. Push manually with: "
                "git branch -M main && git push -u origin main"
            )
        return result

    async def _git(self, *args: str) -> tuple[str, str]:
        return await _run_git(*args, cwd=self.repo_path, timeout=self.timeout)
