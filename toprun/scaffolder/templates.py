"""Bundled template store for project scaffolding.

Provides the TemplateStore class which looks up raw template bodies under the
``toprun/scaffolder/templates/`` directory by logical key.  A key is the
template's path relative to the store root with the ``.j2`` suffix and the
file extension removed, so ``js/main.js.j2`` is fetched as ``"js/main"`` and
``gitignore.j2`` as ``"gitignore"``.

Templates are returned verbatim: the generated site uses Nunjucks, whose
``{{ ... }}`` syntax must reach the output untouched, so the store never
renders Jinja expressions.  Project values are filled in later by the
placeholder pass.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ScaffoldError(Exception):
    """Raised when materialization cannot produce a usable tree."""


class TemplateNotFoundError(ScaffoldError):
    """Raised when a manifest key has no template in the store."""

    def __init__(self, key: str, template_dir: Path | None = None) -> None:
        self.key = key
        self.template_dir = template_dir
        location = f" in {template_dir}" if template_dir else ""
        super().__init__(f"Template '{key}' not found{location}")


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateStore
# ---------------------------------------------------------------------------


class TemplateStore:
    """Read-only lookup from template key to raw template text.

    The store indexes every ``.j2`` file under its template directory once, at
    construction time.  Lookups never touch templates outside that index.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir), encoding="utf-8"),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
        )
        self._index = self._build_index()

    # -- Lookup ------------------------------------------------------------

    def fetch(self, key: str) -> str:
        """Return the raw body of the template registered under *key*.

        Raises:
            TemplateNotFoundError: If the key is unknown or its file has
                disappeared from the store.
        """
        template_name = self._index.get(key)
        if template_name is None:
            raise TemplateNotFoundError(key, self.template_dir)
        try:
            source, _filename, _uptodate = self.env.loader.get_source(self.env, template_name)
        except TemplateNotFound as exc:
            raise TemplateNotFoundError(key, self.template_dir) from exc
        return source

    def fetch_many(self, keys: list[str]) -> dict[str, str]:
        """Fetch several templates at once, failing on the first missing key."""
        return {key: self.fetch(key) for key in dict.fromkeys(keys)}

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def keys(self) -> list[str]:
        """Return every known template key, sorted."""
        return sorted(self._index)

    # -- Internal ----------------------------------------------------------

    def _build_index(self) -> dict[str, str]:
        if not self.template_dir.is_dir():
            return {}
        index: dict[str, str] = {}
        for name in self.env.list_templates(extensions=["j2"]):
            index[template_key(name)] = name
        return index


def template_key(template_name: str) -> str:
    """Derive the logical key for a store-relative template filename.

    Examples::

        template_key("js/main.js.j2")         -> "js/main"
        template_key("config/tsconfig.json.j2") -> "config/tsconfig"
        template_key("gitignore.j2")            -> "gitignore"
    """
    path = PurePosixPath(template_name)
    if path.suffix == ".j2":
        path = path.with_suffix("")
    if path.suffix:
        path = path.with_suffix("")
    return str(path)
