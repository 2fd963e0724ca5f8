"""Builds an unbuilt front-end workspace before capturing its entry page."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path

from framecast.errors import EntryBuildError, EntryNotFoundError

logger = logging.getLogger(__name__)

# Lock file -> package manager that owns it, checked in order
_LOCKFILES = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
)

OUTPUT_TAIL_LINES = 20


def find_workspace(entry: Path) -> Path | None:
    """Nearest directory at or above the entry's directory holding a package.json."""
    for directory in [entry.parent, *entry.parent.parents]:
        if (directory / "package.json").is_file():
            return directory
    return None


def read_build_script(workspace: Path) -> str | None:
    try:
        with open(workspace / "package.json") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise EntryBuildError(f"Could not read {workspace / 'package.json'}: {e}") from e
    scripts = data.get("scripts") if isinstance(data, dict) else None
    if not isinstance(scripts, dict):
        return None
    build = scripts.get("build")
    return build if isinstance(build, str) and build.strip() else None


def build_command(workspace: Path) -> list[str]:
    manager = "npm"
    for lockfile, name in _LOCKFILES:
        if (workspace / lockfile).exists():
            manager = name
            break
    executable = shutil.which(manager)
    if executable is None:
        raise EntryBuildError(f"'{manager}' is not installed; cannot build {workspace}")
    return [executable, "run", "build"]


async def ensure_entry_built(entry: Path) -> Path:
    """Return *entry*, building its workspace first if the file does not exist yet."""
    entry = entry.resolve()
    if entry.is_file():
        return entry

    workspace = find_workspace(entry)
    if workspace is None:
        raise EntryNotFoundError(f"Entry {entry} does not exist and no package.json was found above it")

    script = read_build_script(workspace)
    if script is None:
        raise EntryNotFoundError(
            f"Entry {entry} does not exist and {workspace / 'package.json'} declares no build script"
        )

    cmd = build_command(workspace)
    logger.info("Entry %s missing; building workspace %s (%s)", entry.name, workspace, script)
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(workspace),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        raise EntryBuildError(f"Could not start build in {workspace}: {e}") from e
    output, _ = await proc.communicate()
    text = output.decode(errors="replace") if output else ""
    for line in text.splitlines():
        logger.debug("build: %s", line)

    if proc.returncode != 0:
        tail = "\n".join(text.splitlines()[-OUTPUT_TAIL_LINES:])
        raise EntryBuildError(f"Build in {workspace} exited with code {proc.returncode}:\n{tail}")

    if not entry.is_file():
        raise EntryNotFoundError(f"Build in {workspace} finished but {entry} still does not exist")
    return entry
