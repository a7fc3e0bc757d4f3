"""Filesystem- and URL-safe names for uploaded CAD files."""
import re
import secrets
import string
import unicodedata
from pathlib import Path

_ALPHABET = string.digits + string.ascii_lowercase
_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,10}$")


def _random_token(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _normalize(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def to_slug(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", _normalize(value)).strip("-")
    return slug or _random_token(8)


def safe_filename_segment(value: str) -> str:
    """Lowercase ascii token of [a-z0-9.-]; random when nothing survives."""
    cleaned = re.sub(r"[^a-z0-9.-]", "-", _normalize(value))
    cleaned = re.sub(r"[^a-z0-9]+", "-", cleaned).strip("-")
    return cleaned or _random_token(4)


def safe_extension(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    return ext if _EXTENSION_RE.match(ext) else ""


def output_base_name(original_filename: str, fallback: str = "") -> str:
    """Base name for converted artifacts: from the upload name, else a slug of `fallback`."""
    stem = Path(original_filename).stem
    segment = re.sub(r"[^a-z0-9]+", "-", _normalize(stem)).strip("-")
    if segment:
        return segment
    return to_slug(fallback) if fallback else safe_filename_segment(stem)
