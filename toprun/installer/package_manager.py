"""Package manager integration.

Detects which Node package manager is available, writes the package
descriptor (``package.json`` and, for pnpm, ``.npmrc``), registers the build
scripts and installs dev dependencies.  Every command runs with the project
root as its explicit working directory.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from toprun.config import CssFramework, ScaffoldConfig
from toprun.scaffolder.variants import STYLE_ENTRY, script_variant
from toprun.utils import print_verbose, run_command


class PackageManager(BaseModel):
    """How to invoke one package manager."""

    model_config = ConfigDict(frozen=True)

    cmd: str
    install: str
    dev_flag: str

    def install_command(self, packages: list[str]) -> list[str]:
        return [self.cmd, self.install, self.dev_flag, *packages]


PNPM = PackageManager(cmd="pnpm", install="add", dev_flag="-D")
YARN = PackageManager(cmd="yarn", install="add", dev_flag="-D")
NPM = PackageManager(cmd="npm", install="install", dev_flag="--save-dev")

# Probe order; npm is the fallback and is never probed.
_DETECTION_ORDER: tuple[PackageManager, ...] = (PNPM, YARN)

BASE_DEPENDENCIES: tuple[str, ...] = (
    "@11ty/eleventy",
    "@11ty/eleventy-plugin-bundle",
    "postcss",
    "autoprefixer",
    "esbuild",
    "concurrently",
    "html-minifier-terser",
    "cssnano",
    "postcss-cli",
    "markdown-it",
)

TYPESCRIPT_DEPENDENCIES: tuple[str, ...] = ("typescript", "@types/node")

NPMRC_CONTENT = (
    "unsafe-perm=true\n"
    "enable-pre-post-scripts=true\n"
    "auto-install-peers=true\n"
    "shamefully-hoist=true\n"
)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


async def detect_package_manager(cwd: str | Path | None = None, timeout: int = 30) -> PackageManager:
    """Return the first available of pnpm, yarn; otherwise npm."""
    for candidate in _DETECTION_ORDER:
        code, stdout, _ = await run_command([candidate.cmd, "--version"], cwd=cwd, timeout=timeout)
        if code == 0:
            print_verbose(f"📦 Detected {candidate.cmd.upper()} {stdout}")
            return candidate
    print_verbose("📦 Falling back to NPM")
    return NPM


# ---------------------------------------------------------------------------
# Descriptor and scripts
# ---------------------------------------------------------------------------


def dependency_list(config: ScaffoldConfig) -> list[str]:
    """Return the dev dependencies to install for *config*."""
    deps = list(BASE_DEPENDENCIES)
    if config.css_framework is CssFramework.TAILWIND:
        deps.append(f"tailwindcss@{config.css_framework.version}")
    if config.use_typescript:
        deps.extend(TYPESCRIPT_DEPENDENCIES)
    return deps


def build_package_json(config: ScaffoldConfig) -> dict[str, Any]:
    """Return the initial ``package.json`` content (scripts left empty)."""
    return {
        "name": config.project_name,
        "version": "1.0.0",
        "description": config.description,
        "main": "index.ts" if config.use_typescript else "index.js",
        "scripts": {},
        "keywords": [
            "eleventy",
            "tailwindcss" if config.css_framework is CssFramework.TAILWIND else "css",
            "modern-web",
        ],
        "author": "",
        "license": "ISC",
    }


def build_scripts(config: ScaffoldConfig, pm: PackageManager) -> dict[str, str]:
    """Return the npm scripts for the selected variants."""
    entry = script_variant(config).output_path
    bundle = f"esbuild {entry} --bundle --outfile=dist/bundle.js"
    if config.use_typescript:
        bundle += " --loader:.ts=ts"

    if config.css_framework is CssFramework.TAILWIND:
        tailwind = (
            f"tailwindcss -i ./{STYLE_ENTRY} -o ./dist/style.css "
            "--config ./config/tailwind.config.js"
        )
        build_css = f"{tailwind} && postcss ./dist/style.css --use cssnano --output ./dist/style.css"
        watch_css = f"{tailwind} --watch"
    else:
        build_css = f"postcss ./{STYLE_ENTRY} --use cssnano --output ./dist/style.css"
        watch_css = f"postcss ./{STYLE_ENTRY} --output ./dist/style.css --watch"

    run = f"{pm.cmd} run"
    return {
        "build:css": build_css,
        "build:js": f"{bundle} --minify",
        "build:html": "eleventy",
        "build": f"{run} build:css && {run} build:js && {run} build:html",
        "watch:css": watch_css,
        "watch:js": f"{bundle} --watch",
        "dev": f'concurrently "{run} watch:css" "{run} watch:js" "eleventy --serve --watch"',
    }


async def write_package_descriptor(
    root: Path, config: ScaffoldConfig, pm: PackageManager
) -> list[Path]:
    """Write ``package.json`` (and ``.npmrc`` for pnpm) under *root*."""
    written = [root / "package.json"]
    await asyncio.to_thread(_write_json, written[0], build_package_json(config))
    if pm.cmd == PNPM.cmd:
        npmrc = root / ".npmrc"
        await asyncio.to_thread(npmrc.write_text, NPMRC_CONTENT, "utf-8")
        written.append(npmrc)
    return written


async def register_scripts(
    root: Path, config: ScaffoldConfig, pm: PackageManager
) -> dict[str, str]:
    """Merge the build scripts into ``root/package.json``.

    Existing scripts with other names are preserved.

    Raises:
        FileNotFoundError: If ``package.json`` has not been written yet.
    """
    path = root / "package.json"
    data = json.loads(await asyncio.to_thread(path.read_text, "utf-8"))
    scripts = build_scripts(config, pm)
    data["scripts"] = {**data.get("scripts", {}), **scripts}
    await asyncio.to_thread(_write_json, path, data)
    return scripts


# ---------------------------------------------------------------------------
# Installation
# ---------------------------------------------------------------------------


async def install_dependencies(
    root: Path,
    config: ScaffoldConfig,
    pm: PackageManager,
    timeout: int = 300,
    verbose: bool = False,
) -> tuple[bool, str]:
    """Install dev dependencies into *root*.

    pnpm installs with ``--ignore-scripts`` and then rebuilds esbuild so its
    native binary is fetched.

    Returns:
        ``(success, error_output)``.
    """
    command = pm.install_command(dependency_list(config))
    if pm.cmd == PNPM.cmd:
        command.append("--ignore-scripts")

    print_verbose(f"$ {' '.join(command)}")
    code, _, stderr = await run_command(command, cwd=root, timeout=timeout, capture=not verbose)
    if code != 0:
        return False, stderr or f"{pm.cmd} exited with code {code}"

    if pm.cmd == PNPM.cmd:
        code, _, stderr = await run_command(
            ["pnpm", "rebuild", "esbuild"], cwd=root, timeout=timeout, capture=not verbose
        )
        if code != 0:
            return False, stderr or f"pnpm rebuild exited with code {code}"

    return True, ""


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
