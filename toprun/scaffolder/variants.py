"""Variant axes and the render manifest.

A generated project resolves three independent choices, each an *axis* with a
closed set of variants:

- script language: ``ScriptVariant.TS`` / ``ScriptVariant.JS``
- stylesheet: ``StyleVariant.FRAMEWORK`` / ``StyleVariant.PLAIN``
- homepage format: ``HomeVariant.MARKDOWN`` / ``HomeVariant.HTML``

Every variant of every axis is rendered, then finalization keeps the selected
variant (renaming it to its final path where it has one) and deletes the
output and companion files of all the others.  Companion files (e.g.
``tsconfig.json`` for TypeScript) are rendered only for the selected variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from toprun.config import CssFramework, ScaffoldConfig


class ManifestEntry(NamedTuple):
    """One ``template key -> output path`` pair (paths are POSIX, root-relative)."""

    template_key: str
    output_path: str


@dataclass(frozen=True)
class Variant:
    """A single choice on an axis and the files it owns."""

    name: str
    template_key: str
    output_path: str
    final_path: str | None = None
    companions: tuple[ManifestEntry, ...] = ()

    @property
    def surviving_path(self) -> str:
        """Where this variant's main file lives once finalization is done."""
        return self.final_path or self.output_path

    @property
    def owned_paths(self) -> tuple[str, ...]:
        """Every path this variant may leave in the tree."""
        return (self.output_path,) + tuple(c.output_path for c in self.companions)


# ---------------------------------------------------------------------------
# Axes
# ---------------------------------------------------------------------------

STYLE_ENTRY = "src/styles/input.css"


class ScriptVariant(Enum):
    TS = Variant(
        name="TypeScript",
        template_key="ts/main",
        output_path="src/scripts/main.ts",
        companions=(ManifestEntry("config/tsconfig", "tsconfig.json"),),
    )
    JS = Variant(
        name="JavaScript",
        template_key="js/main",
        output_path="src/scripts/main.js",
    )


class StyleVariant(Enum):
    FRAMEWORK = Variant(
        name="TailwindCSS",
        template_key="css/tailwind",
        output_path="src/styles/tailwind.css",
        final_path=STYLE_ENTRY,
        companions=(
            ManifestEntry("config/tailwind", "config/tailwind.config.js"),
            ManifestEntry("config/postcss", "config/postcss.config.js"),
        ),
    )
    PLAIN = Variant(
        name="Plain CSS",
        template_key="css/plain",
        output_path="src/styles/plain.css",
        final_path=STYLE_ENTRY,
    )


class HomeVariant(Enum):
    MARKDOWN = Variant(
        name="Markdown",
        template_key="md/index",
        output_path="src/index.md",
    )
    HTML = Variant(
        name="HTML",
        template_key="html/index",
        output_path="src/index.html",
    )


@dataclass(frozen=True)
class VariantAxis:
    """The resolved state of one axis: what is kept and what is pruned."""

    name: str
    selected: Variant
    rejected: tuple[Variant, ...]


def script_variant(config: ScaffoldConfig) -> Variant:
    return (ScriptVariant.TS if config.use_typescript else ScriptVariant.JS).value


def style_variant(config: ScaffoldConfig) -> Variant:
    if config.css_framework is CssFramework.TAILWIND:
        return StyleVariant.FRAMEWORK.value
    return StyleVariant.PLAIN.value


def home_variant(config: ScaffoldConfig) -> Variant:
    return (HomeVariant.MARKDOWN if config.use_markdown else HomeVariant.HTML).value


def resolve_axes(config: ScaffoldConfig) -> list[VariantAxis]:
    """Return the axes in finalization order: language, format, CSS."""
    axes: list[VariantAxis] = []
    for name, choices, selected in (
        ("language", ScriptVariant, script_variant(config)),
        ("format", HomeVariant, home_variant(config)),
        ("css", StyleVariant, style_variant(config)),
    ):
        rejected = tuple(v.value for v in choices if v.value != selected)
        axes.append(VariantAxis(name=name, selected=selected, rejected=rejected))
    return axes


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

README_TEMPLATE = "README.md.template"
README_FINAL = "README.md"

INCLUDES_DIR = "src/_includes"

SKELETON_DIRS: tuple[str, ...] = (
    "src/scripts",
    "src/styles",
    "config",
    "public",
    "dist",
)

# Files emitted for every configuration.
COMMON_ENTRIES: tuple[ManifestEntry, ...] = (
    ManifestEntry("includes/base", f"{INCLUDES_DIR}/base.njk"),
    ManifestEntry("includes/footer", f"{INCLUDES_DIR}/footer.njk"),
    ManifestEntry("config/eleventy", "config/eleventy.config.js"),
    ManifestEntry("config/eleventy-shim", ".eleventy.js"),
    ManifestEntry("gitignore", ".gitignore"),
    ManifestEntry("readme", README_TEMPLATE),
)

# Renames applied after every axis has been resolved.
FINAL_RENAMES: tuple[tuple[str, str], ...] = ((README_TEMPLATE, README_FINAL),)


def build_manifest(config: ScaffoldConfig) -> list[ManifestEntry]:
    """Return every ``(template key, output path)`` pair to render.

    The main file of every variant is included regardless of *config*;
    companion files only for the selected variant of each axis.
    """
    entries: list[ManifestEntry] = list(COMMON_ENTRIES)
    for axis in resolve_axes(config):
        for variant in (axis.selected, *axis.rejected):
            entries.append(ManifestEntry(variant.template_key, variant.output_path))
        entries.extend(axis.selected.companions)
    return entries


def skeleton_dirs(manifest: list[ManifestEntry]) -> list[str]:
    """Return the directory skeleton required by *manifest*."""
    dirs = list(SKELETON_DIRS)
    if any(entry.output_path.startswith(f"{INCLUDES_DIR}/") for entry in manifest):
        dirs.append(INCLUDES_DIR)
    return dirs
