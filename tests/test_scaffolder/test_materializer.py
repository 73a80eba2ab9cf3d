"""Tests for the template materialization engine.

Covers:
- Directory skeleton creation, idempotency and fatal failure
- Verbatim rendering and manifest/store drift
- Placeholder substitution, including skipped and untouched files
- Finalization: pruning, renames, already-absent files and warnings
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from toprun.config import CssFramework, ScaffoldConfig
from toprun.scaffolder import (
    FinalizeReport,
    Materializer,
    SkeletonError,
    TemplateNotFoundError,
)
from toprun.scaffolder.placeholders import TOKENS
from toprun.scaffolder.variants import INCLUDES_DIR, SKELETON_DIRS

pytestmark = pytest.mark.unit


def _files(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


# ---------------------------------------------------------------------------
# Skeleton
# ---------------------------------------------------------------------------


class TestCreateSkeleton:
    async def test_creates_all_directories(self, demo_config, project_root):
        await Materializer(demo_config).create_skeleton(project_root)
        for d in (*SKELETON_DIRS, INCLUDES_DIR):
            assert (project_root / d).is_dir()

    async def test_rerun_is_idempotent(self, demo_config, project_root):
        materializer = Materializer(demo_config)
        await materializer.create_skeleton(project_root)
        keep = project_root / "src" / "scripts" / "keep.js"
        keep.write_text("untouched", encoding="utf-8")

        await materializer.create_skeleton(project_root)

        assert keep.read_text(encoding="utf-8") == "untouched"
        assert sorted(p.name for p in (project_root / "src" / "scripts").iterdir()) == ["keep.js"]

    async def test_unwritable_root_is_fatal(self, demo_config, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")

        with pytest.raises(SkeletonError) as excinfo:
            await Materializer(demo_config).materialize(blocker)
        assert excinfo.value.path == blocker
        assert blocker.read_text(encoding="utf-8") == "a file, not a directory"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRender:
    async def test_writes_templates_verbatim(self, demo_config, project_root, template_store):
        materializer = Materializer(demo_config, template_store)
        await materializer.create_skeleton(project_root)
        written = await materializer.render(project_root)

        assert set(written) == {entry.output_path for entry in materializer.manifest}
        assert (project_root / "src/styles/tailwind.css").read_text(
            encoding="utf-8"
        ) == template_store.fetch("css/tailwind")
        assert "{{PROJECT_NAME}}" in (project_root / "src/scripts/main.ts").read_text(
            encoding="utf-8"
        )

    async def test_missing_template_aborts_before_writing(self, demo_config, project_root, tiny_store):
        with pytest.raises(TemplateNotFoundError):
            await Materializer(demo_config, tiny_store).materialize(project_root)
        assert _files(project_root) == set()

    async def test_single_worker(self, demo_config, project_root):
        materializer = Materializer(demo_config, max_workers=1)
        result = await materializer.materialize(project_root)
        assert (project_root / "src/styles/input.css").exists()
        assert result.finalize.clean


# ---------------------------------------------------------------------------
# Substitution
# ---------------------------------------------------------------------------


class TestSubstitute:
    async def test_replaces_tokens_in_text_files(self, demo_config, project_root):
        materializer = Materializer(demo_config, package_manager="pnpm")
        await materializer.create_skeleton(project_root)
        await materializer.render(project_root)

        substituted, skipped = await materializer.substitute(project_root)

        assert skipped == []
        assert "src/scripts/main.ts" in substituted
        assert "README.md.template" in substituted
        readme = (project_root / "README.md.template").read_text(encoding="utf-8")
        assert "pnpm install" in readme
        assert "# demo" in readme

    async def test_untouched_files_not_reported(self, demo_config, project_root):
        materializer = Materializer(demo_config)
        await materializer.create_skeleton(project_root)
        await materializer.render(project_root)

        substituted, _ = await materializer.substitute(project_root)

        assert ".gitignore" not in substituted
        assert "tsconfig.json" not in substituted

    async def test_unclassified_files_left_alone(self, demo_config, project_root):
        materializer = Materializer(demo_config)
        await materializer.create_skeleton(project_root)
        logo = project_root / "public" / "logo.png"
        logo.write_bytes(b"\x89PNG {{PROJECT_NAME}}")
        layout = project_root / INCLUDES_DIR / "extra.njk"
        layout.write_text("{{PROJECT_NAME}}", encoding="utf-8")

        await materializer.substitute(project_root)

        assert logo.read_bytes() == b"\x89PNG {{PROJECT_NAME}}"
        assert layout.read_text(encoding="utf-8") == "{{PROJECT_NAME}}"

    async def test_undecodable_file_is_skipped(self, demo_config, project_root):
        materializer = Materializer(demo_config)
        await materializer.create_skeleton(project_root)
        bad = project_root / "public" / "broken.txt"
        bad.write_bytes(b"\xff\xfe{{PROJECT_NAME}}")
        good = project_root / "public" / "good.txt"
        good.write_text("{{PROJECT_NAME}}", encoding="utf-8")

        substituted, skipped = await materializer.substitute(project_root)

        assert skipped == ["public/broken.txt"]
        assert substituted == ["public/good.txt"]
        assert bad.read_bytes() == b"\xff\xfe{{PROJECT_NAME}}"
        assert good.read_text(encoding="utf-8") == "demo"

    async def test_write_failure_is_skipped(self, demo_config, project_root):
        materializer = Materializer(demo_config)
        await materializer.create_skeleton(project_root)
        (project_root / "public" / "a.txt").write_text("{{PROJECT_NAME}}", encoding="utf-8")

        with patch(
            "toprun.scaffolder.materializer._substitute_file",
            side_effect=PermissionError("denied"),
        ):
            substituted, skipped = await materializer.substitute(project_root)

        assert substituted == []
        assert skipped == ["public/a.txt"]

    async def test_crlf_preserved(self, demo_config, project_root):
        materializer = Materializer(demo_config)
        await materializer.create_skeleton(project_root)
        crlf = project_root / "public" / "win.txt"
        crlf.write_bytes(b"{{PROJECT_NAME}}\r\nline\r\n")

        await materializer.substitute(project_root)

        assert crlf.read_bytes() == b"demo\r\nline\r\n"


# ---------------------------------------------------------------------------
# Finalization
# ---------------------------------------------------------------------------


async def _rendered(config: ScaffoldConfig, root: Path) -> Materializer:
    materializer = Materializer(config)
    await materializer.create_skeleton(root)
    await materializer.render(root)
    return materializer


class TestFinalize:
    async def test_typescript_tailwind(self, demo_config, project_root):
        materializer = await _rendered(demo_config, project_root)

        report = await materializer.finalize(project_root)

        assert report.clean
        assert "src/scripts/main.js" in report.removed
        assert "src/styles/plain.css" in report.removed
        assert "src/index.md" in report.removed
        assert ("src/styles/tailwind.css", "src/styles/input.css") in report.renamed
        assert ("README.md.template", "README.md") in report.renamed
        # Rejected JS variant owns no companions, so nothing is absent.
        assert report.already_absent == []

    async def test_javascript_plain_removes_unrendered_companions(self, plain_config, project_root):
        materializer = await _rendered(plain_config, project_root)

        report = await materializer.finalize(project_root)

        assert report.clean
        assert "src/scripts/main.ts" in report.removed
        assert "src/styles/tailwind.css" in report.removed
        assert set(report.already_absent) == {
            "tsconfig.json",
            "config/tailwind.config.js",
            "config/postcss.config.js",
        }
        assert ("src/styles/plain.css", "src/styles/input.css") in report.renamed
        files = _files(project_root)
        assert "src/index.md" in files
        assert "src/index.html" not in files

    async def test_missing_file_does_not_stop_later_steps(self, demo_config, project_root):
        materializer = await _rendered(demo_config, project_root)
        (project_root / "src/scripts/main.js").unlink()
        (project_root / "src/styles/plain.css").unlink()

        report = await materializer.finalize(project_root)

        assert report.clean
        assert "src/scripts/main.js" in report.already_absent
        assert "src/styles/plain.css" in report.already_absent
        assert (project_root / "README.md").exists()
        assert (project_root / "src/styles/input.css").exists()
        assert not (project_root / "src/index.md").exists()

    async def test_missing_readme_template_is_absent_not_error(self, demo_config, project_root):
        materializer = await _rendered(demo_config, project_root)
        (project_root / "README.md.template").unlink()

        report = await materializer.finalize(project_root)

        assert report.clean
        assert "README.md.template" in report.already_absent

    async def test_unexpected_io_error_is_a_warning(self, demo_config, project_root):
        materializer = await _rendered(demo_config, project_root)
        blocked = project_root / "src/scripts/main.js"
        blocked.unlink()
        blocked.mkdir()

        report = await materializer.finalize(project_root)

        assert not report.clean
        assert any("src/scripts/main.js" in w for w in report.warnings)
        assert "src/scripts/main.js" not in report.already_absent
        assert (project_root / "README.md").exists()
        assert (project_root / "src/styles/input.css").exists()

    async def test_phase_exception_becomes_warning(self, demo_config, project_root):
        materializer = await _rendered(demo_config, project_root)

        with patch.object(Materializer, "_apply_finalize_rules", side_effect=RuntimeError("boom")):
            report = await materializer.finalize(project_root)

        assert isinstance(report, FinalizeReport)
        assert report.warnings == ["Finalization stopped early: boom"]


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestMaterialize:
    async def test_demo_scenario(self, demo_config, project_root, template_store):
        result = await Materializer(demo_config, template_store).materialize(project_root)
        files = _files(project_root)

        for present in (
            "src/scripts/main.ts",
            "tsconfig.json",
            "src/styles/input.css",
            "src/index.html",
            "config/tailwind.config.js",
            "config/postcss.config.js",
            "README.md",
        ):
            assert present in files
        for absent in (
            "src/scripts/main.js",
            "src/styles/plain.css",
            "src/styles/tailwind.css",
            "src/index.md",
            "README.md.template",
        ):
            assert absent not in files

        css = (project_root / "src/styles/input.css").read_text(encoding="utf-8")
        assert css == template_store.fetch("css/tailwind")
        assert "{{" not in css
        index = (project_root / "src/index.html").read_text(encoding="utf-8")
        assert "<h1>demo</h1>" in index
        assert 'title: "demo"' in index
        assert result.finalize.clean
        assert result.substitution_skipped == []

    async def test_no_tokens_remain(self, plain_config, project_root):
        await Materializer(plain_config, package_manager="yarn").materialize(project_root)
        for path in project_root.rglob("*"):
            if path.is_file():
                content = path.read_text(encoding="utf-8")
                for token in TOKENS:
                    assert token not in content, f"{token} left in {path}"

    async def test_token_like_project_description_not_expanded(self, project_root):
        config = ScaffoldConfig(
            project_name="demo",
            description="{{GIT_INIT}}",
            css_framework=CssFramework.NONE,
        )
        await Materializer(config).materialize(project_root)
        readme = (project_root / "README.md").read_text(encoding="utf-8")
        assert "⚡ {{GIT_INIT}}" in readme
