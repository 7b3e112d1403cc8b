"""Zip packaging for generated bundles.

Creates a normalized zip archive holding the bundle files at the archive
root, and writes a sibling `.sha256` file with the archive's SHA-256 hex
digest.

Design goals:
- Sorted entries and a fixed timestamp, so the same bundle zips to the same bytes.
- Only plain file names as arcnames; nothing can escape the extraction root.
"""

from __future__ import annotations

import zipfile
from collections.abc import Mapping
from pathlib import Path

from spellbook.signing.checks import sha256

# Earliest timestamp the zip format can represent
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def make_zip_bundle(
    outdir: Path, bundle: Mapping[str, str], bundle_name: str | None = None
) -> Path:
    """Create a zip bundle and a matching .sha256 file.

    Parameters
    ----------
    outdir: Path
        Destination directory (created if missing).
    bundle: Mapping[str, str]
        Generated files, filename to text content.
    bundle_name: str | None
        Filename (without extension). Defaults to `bundle`.

    Returns
    -------
    Path
        Full path to the created zip file.
    """
    outdir.mkdir(parents=True, exist_ok=True)
    name = bundle_name or "bundle"
    if name.endswith(".zip"):
        name = name[: -len(".zip")]
    zip_path = outdir / f"{name}.zip"

    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for arcname in sorted(bundle):
            if Path(arcname).name != arcname:
                raise ValueError(f"Bundle entry must be a plain file name: {arcname!r}")
            info = zipfile.ZipInfo(arcname, date_time=_ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            z.writestr(info, bundle[arcname].encode("utf-8"))

    (zip_path.with_suffix(".zip.sha256")).write_text(sha256(zip_path), encoding="utf-8")
    return zip_path
