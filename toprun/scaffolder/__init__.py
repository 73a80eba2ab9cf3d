"""toprun scaffolder -- materializes a project tree from bundled templates.

Takes a ``ScaffoldConfig`` and produces an Eleventy site skeleton with exactly
one script entry, one stylesheet entry and one homepage, all placeholders
filled in.

Quick usage::

    from toprun.config import ScaffoldConfig
    from toprun.scaffolder import Materializer

    config = ScaffoldConfig(project_name="demo", use_typescript=True)
    result = await Materializer(config, package_manager="pnpm").materialize("./demo")
"""

from toprun.scaffolder.materializer import (
    FinalizeReport,
    MaterializeResult,
    Materializer,
    SkeletonError,
)
from toprun.scaffolder.templates import ScaffoldError, TemplateNotFoundError, TemplateStore

__all__ = [
    "FinalizeReport",
    "MaterializeResult",
    "Materializer",
    "ScaffoldError",
    "SkeletonError",
    "TemplateNotFoundError",
    "TemplateStore",
]
