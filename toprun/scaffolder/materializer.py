"""Template materialization engine.

Turns a ``ScaffoldConfig`` into a finished file tree in four sequential
steps:

1. create the directory skeleton,
2. render every manifest entry verbatim from the template store,
3. substitute placeholder tokens in every text file of the tree,
4. finalize: prune rejected variants and apply the final renames.

Steps 1, 2 and the template lookups are fatal on failure.  Step 3 skips files
it cannot process.  Step 4 is best-effort: problems are collected in a
``FinalizeReport`` and the tree is still handed to the next stage.  A crash in
the middle of step 4 can leave both variants of an axis on disk; that state
is reported, not repaired.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from toprun.config import ScaffoldConfig
from toprun.utils import print_verbose

from .placeholders import PlaceholderSubstituter, is_text_file, resolve_placeholders
from .templates import ScaffoldError, TemplateStore
from .variants import FINAL_RENAMES, ManifestEntry, build_manifest, resolve_axes, skeleton_dirs


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SkeletonError(ScaffoldError):
    """Raised when the target directory tree cannot be created."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot create directory {path}: {reason}")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class FinalizeReport:
    """Outcome of the pruning and renaming step.

    ``already_absent`` lists paths that were expected to be deleted or renamed
    but did not exist; they are not errors.  ``warnings`` holds unexpected I/O
    failures that the operator should see.
    """

    removed: list[str] = field(default_factory=list)
    renamed: list[tuple[str, str]] = field(default_factory=list)
    already_absent: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings


@dataclass
class MaterializeResult:
    root: Path
    written: list[str] = field(default_factory=list)
    substituted: list[str] = field(default_factory=list)
    substitution_skipped: list[str] = field(default_factory=list)
    finalize: FinalizeReport = field(default_factory=FinalizeReport)


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------


class Materializer:
    """Materializes a project tree for one ``ScaffoldConfig``.

    Per-entry writes and per-file substitutions run concurrently in worker
    threads, bounded by *max_workers*.  Every read-modify-write on a path
    holds that path's lock, so no two workers touch the same file at once.
    """

    def __init__(
        self,
        config: ScaffoldConfig,
        store: TemplateStore | None = None,
        *,
        package_manager: str = "npm",
        max_workers: int = 8,
    ) -> None:
        self.config = config
        self.store = store or TemplateStore()
        self.package_manager = package_manager
        self.max_workers = max(1, max_workers)
        self.manifest: list[ManifestEntry] = build_manifest(config)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -- Public API --------------------------------------------------------

    async def materialize(self, target_dir: str | Path) -> MaterializeResult:
        """Run all four steps against *target_dir* and return what happened.

        Raises:
            TemplateNotFoundError: A manifest key is missing from the store.
            SkeletonError: The directory skeleton could not be created.
        """
        root = Path(target_dir)
        result = MaterializeResult(root=root)

        print_verbose("📁 Creating directory skeleton...")
        await self.create_skeleton(root)

        print_verbose("📝 Rendering templates...")
        result.written = await self.render(root)

        print_verbose("🔁 Replacing placeholders...")
        result.substituted, result.substitution_skipped = await self.substitute(root)

        print_verbose("🧹 Finalizing files...")
        result.finalize = await self.finalize(root)
        return result

    async def create_skeleton(self, root: Path) -> list[Path]:
        """Create the fixed directory skeleton under *root*.

        Idempotent: existing directories and the files in them are left alone.
        """
        paths = [root] + [root / d for d in skeleton_dirs(self.manifest)]
        for path in paths:
            try:
                await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
            except OSError as exc:
                raise SkeletonError(path, exc.strerror or str(exc)) from exc
        return paths

    async def render(self, root: Path) -> list[str]:
        """Write every manifest entry verbatim and return the written paths.

        All template keys are resolved before anything is written, so a
        manifest/store mismatch aborts without touching the tree.
        """
        bodies = self.store.fetch_many([entry.template_key for entry in self.manifest])
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _render_entry(entry: ManifestEntry) -> str:
            async with semaphore, self._locks[entry.output_path]:
                await asyncio.to_thread(
                    _write_file, root / entry.output_path, bodies[entry.template_key]
                )
            return entry.output_path

        return list(await asyncio.gather(*(_render_entry(e) for e in self.manifest)))

    async def substitute(self, root: Path) -> tuple[list[str], list[str]]:
        """Replace placeholder tokens in every text file under *root*.

        Returns:
            ``(substituted, skipped)`` root-relative POSIX paths.  Files that
            could not be read, decoded or written land in *skipped*; they
            never abort the walk.
        """
        substituter = PlaceholderSubstituter(
            resolve_placeholders(self.config, self.package_manager)
        )
        files = await asyncio.to_thread(_walk_text_files, root)
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _substitute_entry(rel: str) -> tuple[str, bool | None]:
            async with semaphore, self._locks[rel]:
                try:
                    changed = await asyncio.to_thread(
                        _substitute_file, root / rel, substituter
                    )
                except (OSError, UnicodeError):
                    return rel, None
            return rel, changed

        outcomes = await asyncio.gather(*(_substitute_entry(rel) for rel in files))
        substituted = [rel for rel, changed in outcomes if changed]
        skipped = [rel for rel, changed in outcomes if changed is None]
        return substituted, skipped

    async def finalize(self, root: Path) -> FinalizeReport:
        """Prune rejected variants and apply the final renames.

        Never raises: anything unexpected is recorded as a warning on the
        returned report.
        """
        report = FinalizeReport()
        try:
            await asyncio.to_thread(self._apply_finalize_rules, root, report)
        except Exception as exc:
            report.warnings.append(f"Finalization stopped early: {exc}")
        return report

    # -- Finalization rules ------------------------------------------------

    def _apply_finalize_rules(self, root: Path, report: FinalizeReport) -> None:
        for axis in resolve_axes(self.config):
            for variant in axis.rejected:
                for rel in variant.owned_paths:
                    _remove(root, rel, report)
            if axis.selected.final_path:
                _rename(root, axis.selected.output_path, axis.selected.final_path, report)

        for source, target in FINAL_RENAMES:
            _rename(root, source, target, report)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))


def _walk_text_files(root: Path) -> list[str]:
    """Return root-relative POSIX paths of every text-classified file."""
    return sorted(
        path.relative_to(root).as_posix()
        for path in root.rglob("*")
        if path.is_file() and is_text_file(path)
    )


def _substitute_file(path: Path, substituter: PlaceholderSubstituter) -> bool:
    """Rewrite *path* in place; return ``True`` if its content changed."""
    content = path.read_bytes().decode("utf-8")
    updated = substituter.substitute(content)
    if updated == content:
        return False
    path.write_bytes(updated.encode("utf-8"))
    return True


def _remove(root: Path, rel: str, report: FinalizeReport) -> None:
    try:
        (root / rel).unlink()
    except FileNotFoundError:
        report.already_absent.append(rel)
    except OSError as exc:
        report.warnings.append(f"Could not remove {rel}: {exc}")
    else:
        report.removed.append(rel)


def _rename(root: Path, source: str, target: str, report: FinalizeReport) -> None:
    try:
        (root / source).replace(root / target)
    except FileNotFoundError:
        report.already_absent.append(source)
    except OSError as exc:
        report.warnings.append(f"Could not rename {source} to {target}: {exc}")
    else:
        report.renamed.append((source, target))
