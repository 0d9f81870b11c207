"""File IO helpers for reading watched source files."""

from __future__ import annotations

import codecs
import locale
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "FileSignature",
    "canonical_identity",
    "file_signature",
    "read_text",
    "stat_size",
]

# UTF-32 marks first: the UTF-32-LE BOM starts with the UTF-16-LE BOM.
_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF32_LE: "utf-32-le",
    codecs.BOM_UTF32_BE: "utf-32-be",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}


@dataclass(slots=True, frozen=True)
class FileSignature:
    """Cheap stat-based fingerprint used to notice edits on disk."""

    path: Path
    size: int
    modified_at: float


def canonical_identity(path: Path | str) -> str:
    """Return the stable identity string for *path*."""

    return str(Path(path).expanduser().resolve())


def read_text(path: Path | str, *, encoding: str | None = None, errors: str = "strict") -> str:
    """Read a text file with encoding detection and newline normalization."""

    raw = Path(path).read_bytes()
    detected = encoding or _detect_encoding(raw)
    text = raw.decode(detected, errors=errors)
    if text.startswith("\ufeff"):
        text = text[1:]
    return _normalize_newlines(text)


def stat_size(path: Path | str) -> int:
    """Return the size of *path* in bytes without reading it."""

    return Path(path).stat().st_size


def file_signature(path: Path | str) -> FileSignature | None:
    """Return the current signature of *path*, or ``None`` if it is missing."""

    target = Path(path)
    try:
        stat = target.stat()
    except FileNotFoundError:
        return None
    return FileSignature(path=target, size=stat.st_size, modified_at=stat.st_mtime)


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding

    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for candidate in ("utf-8", preferred, "latin-1"):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            raw.decode(candidate)
            return candidate
        except UnicodeDecodeError:
            continue
    return "utf-8"


def _normalize_newlines(text: str) -> str:
    if "\r" not in text:
        return text
    text = text.replace("\r\n", "\n")
    return text.replace("\r", "\n")
