"""Template archive I/O — unpacks banner templates and packs variations.

Templates arrive as zip archives.  Unpacking flattens the directory
structure (only base names are kept), skips directory entries and the
``__MACOSX/`` resource-fork metadata that macOS adds, and identifies the
entry HTML file and Dynamic.js.  Packing writes one variation per archive
(download of a single banner) or one folder per variation (download all).
"""

import io
import posixpath
import zipfile
from pathlib import Path
from typing import Iterable

from bannerbuildr.errors import InvalidArchiveError
from bannerbuildr.schema.models import TemplateAssets, Variation


MACOS_METADATA_PREFIX = "__MACOSX/"


def _is_metadata(name: str) -> bool:
    base = posixpath.basename(name)
    return name.startswith(MACOS_METADATA_PREFIX) or base.startswith("._") \
        or base == ".DS_Store"


def read_archive(data: bytes | str | Path) -> dict[str, bytes]:
    """Flattened ``name -> bytes`` for every file entry, in archive order.

    Later entries with the same base name overwrite earlier ones.
    """
    if isinstance(data, (str, Path)):
        data = Path(data).read_bytes()
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise InvalidArchiveError(f"Not a zip archive: {exc}") from exc

    files: dict[str, bytes] = {}
    with zf:
        for info in zf.infolist():
            name = info.filename.replace("\\", "/")
            if info.is_dir() or _is_metadata(name):
                continue
            base = posixpath.basename(name)
            if not base:
                continue
            files[base] = zf.read(info)
    return files


def unpack_template(data: bytes | str | Path) -> TemplateAssets:
    """Unpack a template archive.

    Raises :class:`MissingEntryFileError` when the archive has no HTML
    file and :class:`InvalidArchiveError` when it is not a zip.
    """
    return TemplateAssets.from_files(read_archive(data))


def _zip_bytes(entries: Iterable[tuple[str, bytes]]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries:
            zf.writestr(name, content)
    return buf.getvalue()


def pack_variation(variation: Variation) -> bytes:
    """Zip of one variation's files at the archive root."""
    return _zip_bytes(variation.files.items())


def unique_folder_names(names: Iterable[str]) -> list[str]:
    """Folder names with ``_2``, ``_3`` ... appended to repeats."""
    used: set[str] = set()
    result = []
    for name in names:
        name = name or "variation"
        candidate, count = name, 1
        while candidate in used:
            count += 1
            candidate = f"{name}_{count}"
        used.add(candidate)
        result.append(candidate)
    return result


def pack_variations(variations: Iterable[Variation]) -> bytes:
    """Zip with one folder per variation (named after the variation)."""
    variations = list(variations)
    folders = unique_folder_names(v.name for v in variations)
    entries = []
    for folder, variation in zip(folders, variations):
        for name, content in variation.files.items():
            entries.append((f"{folder}/{name}", content))
    return _zip_bytes(entries)


def write_variation(variation: Variation, directory: str | Path) -> Path:
    """Write a variation's files to ``<directory>/<variation_id>/``."""
    if ".." in variation.variation_id or "/" in variation.variation_id:
        raise ValueError(f"Unsafe variation id: {variation.variation_id!r}")
    target = Path(directory) / variation.variation_id
    target.mkdir(parents=True, exist_ok=True)
    for name, content in variation.files.items():
        (target / name).write_bytes(content)
    return target
