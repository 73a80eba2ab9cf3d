"""Placeholder tokens and text-file classification.

Template bodies carry fixed ``{{NAME}}`` tokens that are replaced with values
derived from the ``ScaffoldConfig``.  Replacement is literal and happens in a
single left-to-right pass, so values that themselves contain token text are
emitted as-is and never expanded again.
"""

from __future__ import annotations

import re
from pathlib import Path

from toprun.config import ScaffoldConfig, yes_no_glyph

PROJECT_NAME = "{{PROJECT_NAME}}"
PROJECT_DESCRIPTION = "{{PROJECT_DESCRIPTION}}"
USE_TYPESCRIPT = "{{USE_TYPESCRIPT}}"
CSS_FRAMEWORK = "{{CSS_FRAMEWORK}}"
TEMPLATE_FORMAT = "{{TEMPLATE_FORMAT}}"
GIT_INIT = "{{GIT_INIT}}"
PACKAGE_MANAGER = "{{PACKAGE_MANAGER}}"

TOKENS: tuple[str, ...] = (
    PROJECT_NAME,
    PROJECT_DESCRIPTION,
    USE_TYPESCRIPT,
    CSS_FRAMEWORK,
    TEMPLATE_FORMAT,
    GIT_INIT,
    PACKAGE_MANAGER,
)

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {".html", ".js", ".ts", ".css", ".json", ".md", ".txt"}
)

# Extensionless or unusual names that still hold text.
TEXT_NAME_SUFFIXES: tuple[str, ...] = (".template",)
TEXT_NAME_MARKERS: tuple[str, ...] = (".gitignore", ".eleventy")


def resolve_placeholders(config: ScaffoldConfig, package_manager: str) -> dict[str, str]:
    """Map every token to its value for *config*."""
    return {
        PROJECT_NAME: config.project_name,
        PROJECT_DESCRIPTION: config.description,
        USE_TYPESCRIPT: yes_no_glyph(config.use_typescript),
        CSS_FRAMEWORK: config.css_framework.display_name,
        TEMPLATE_FORMAT: config.template_format,
        GIT_INIT: yes_no_glyph(config.git.init),
        PACKAGE_MANAGER: package_manager,
    }


def is_text_file(path: str | Path) -> bool:
    """Return ``True`` if *path* should go through placeholder substitution."""
    name = Path(path).name
    if any(name.endswith(ext) for ext in TEXT_EXTENSIONS):
        return True
    if any(name.endswith(suffix) for suffix in TEXT_NAME_SUFFIXES):
        return True
    return any(marker in name for marker in TEXT_NAME_MARKERS)


class PlaceholderSubstituter:
    """Single-pass literal replacement of a fixed token set."""

    def __init__(self, values: dict[str, str]) -> None:
        self.values = dict(values)
        # Longest first so a token that prefixes another can never shadow it.
        ordered = sorted(self.values, key=len, reverse=True)
        self._pattern = re.compile("|".join(re.escape(token) for token in ordered)) if ordered else None

    def substitute(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda match: self.values[match.group(0)], text)

    def find_tokens(self, text: str) -> list[str]:
        """Return the distinct tokens present in *text*, in order of appearance."""
        if self._pattern is None:
            return []
        return list(dict.fromkeys(self._pattern.findall(text)))
