from __future__ import annotations

from pathlib import Path

_SUPPORTED_EXTS: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


def is_image(name: str) -> bool:
    return Path(name).suffix.lower() in _SUPPORTED_EXTS


def mime_type_for(name: str) -> str:
    return _SUPPORTED_EXTS.get(Path(name).suffix.lower(), "application/octet-stream")


def _sort_key(name: str) -> tuple[str, str]:
    # ordinal compare of upper-cased names ("ab" before "a_b"), exact name breaks ties
    return (name.upper(), name)


def scan_inbox(inbox: Path, *, max_files: int = 0) -> list[str]:
    """Snapshot of eligible file names directly under ``inbox``.

    Files that land in the inbox after this call are left for the next run.
    """
    names = [
        p.name
        for p in inbox.iterdir()
        if p.is_file() and is_image(p.name)
    ]
    names.sort(key=_sort_key)
    if max_files and len(names) > max_files:
        names = names[:max_files]
    return names
