"""Downstream stages that operate on a materialized project tree.

- ``package_manager``: detection, ``package.json``/``.npmrc``, build scripts,
  dependency installation.
- ``git``: repository initialisation, first commit, remote and push.
"""

from toprun.installer.git import CommandError, GitInitializer, GitResult
from toprun.installer.package_manager import (
    NPM,
    PNPM,
    YARN,
    PackageManager,
    detect_package_manager,
    install_dependencies,
    register_scripts,
    write_package_descriptor,
)

__all__ = [
    "CommandError",
    "GitInitializer",
    "GitResult",
    "NPM",
    "PNPM",
    "PackageManager",
    "YARN",
    "detect_package_manager",
    "install_dependencies",
    "register_scripts",
    "write_package_descriptor",
]
