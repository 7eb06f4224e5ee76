"""Archive unpacking and jar collection helpers."""
from __future__ import annotations

import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)


def extract_zip(archive: Path, target: Path) -> Path:
    """Unpack ``archive`` into ``target`` atomically.

    Extraction happens in a temporary sibling directory which is renamed
    over ``target`` when complete. Entries escaping the target are rejected.
    """
    archive = Path(archive)
    target = Path(target)
    staging = target.with_name(target.name + ".tmp")
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)

    logger.info("Unpacking %s", archive.name)
    with zipfile.ZipFile(archive) as zf:
        root = staging.resolve()
        for member in zf.namelist():
            dest = (staging / member).resolve()
            if root != dest and root not in dest.parents:
                shutil.rmtree(staging)
                raise ValueError(f"Archive entry escapes target directory: {member}")
        zf.extractall(staging)

    if target.exists():
        shutil.rmtree(target)
    os.replace(staging, target)
    return target


def collect_jars(directory: Path, *, recursive: bool = False, exclude: Iterable[str] = ()) -> List[Path]:
    """Return sorted, unique jar paths under ``directory``."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    excluded = set(exclude)
    pattern = "**/*.jar" if recursive else "*.jar"
    seen = set()
    jars = []
    for jar in sorted(directory.glob(pattern)):
        if not jar.is_file() or jar.name in excluded:
            continue
        key = os.path.normcase(os.path.abspath(jar))
        if key in seen:
            continue
        seen.add(key)
        jars.append(jar)
    return jars


def single_child_directory(directory: Path) -> Path:
    """Return the only subdirectory of ``directory``, or ``directory`` itself."""
    children = [p for p in Path(directory).iterdir() if not p.name.startswith(".")]
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return Path(directory)
