"""Write a generated bundle into a directory."""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path


def write_bundle(target: Path, bundle: Mapping[str, str], force: bool = False) -> list[Path]:
    """Materialize *bundle* as ``target/<filename>``.

    Files are staged in a temporary sibling directory and moved into place with
    a rename, so *target* never holds a half-written bundle. An existing
    *target* is an error unless *force* is set, in which case it is replaced.
    """
    target = target.resolve()
    if target.exists() and not force:
        raise FileExistsError(f"Output directory already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)

    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=target.parent))
    try:
        for filename, content in bundle.items():
            if Path(filename).name != filename:
                raise ValueError(f"Bundle entry must be a plain file name: {filename!r}")
            (staging / filename).write_text(content, encoding="utf-8", newline="")
        if target.exists():
            shutil.rmtree(target)
        os.replace(staging, target)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    return [target / name for name in sorted(bundle)]
