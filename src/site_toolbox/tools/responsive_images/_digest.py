"""Content digests, args digests, cache keys and output paths."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

# Only these render arguments influence the rendered bytes.
ARGS_WHITELIST: frozenset[str] = frozenset(
    {
        "height",
        "width",
        "crop_focus",
        "to_format",
        "png_compression_level",
        "quality",
        "jpeg_quality",
        "webp_quality",
        "jpeg_progressive",
        "grayscale",
        "rotate",
        "trim",
        "duotone",
        "fit",
        "background",
    }
)

ARGS_DIGEST_LENGTH = 5
_READ_CHUNK = 1 << 16


def stable_json(value: Any) -> str:
    """Serialise *value* to JSON with sorted keys and no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def create_content_digest(value: Any) -> str:
    """Return the md5 hex digest of bytes, or of the stable JSON of *value*."""
    data = value if isinstance(value, bytes) else stable_json(value).encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def file_content_digest(path: Path) -> str:
    """Return the md5 hex digest of a file's bytes, read in chunks."""
    digest = hashlib.md5(usedforsecurity=False)
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_READ_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def create_args_digest(args: Mapping[str, Any]) -> str:
    """Return a short stable hash of the render arguments.

    Falsy values are ignored, as are encoder settings that do not apply
    to the target format (``png_*`` for JPEG output, ``jpeg_*`` for PNG).
    ``path_prefix`` never takes part because it is not whitelisted.
    """
    to_format = str(args.get("to_format") or "")
    filtered: dict[str, Any] = {}
    for key, value in args.items():
        if not value or key not in ARGS_WHITELIST:
            continue
        if to_format.startswith("j") and "png" in key:
            continue
        if to_format.startswith("png") and key.startswith("j"):
            continue
        filtered[key] = value
    digest = create_content_digest(filtered)
    return digest[-ARGS_DIGEST_LENGTH:]


def generate_cache_key(content_digest: str, args: Mapping[str, Any]) -> str:
    """Build the memoisation key for a (source, args) pair."""
    return f"{content_digest}{stable_json(dict(args))}"


def output_relative_path(args_digest: str, name: str, to_format: str) -> str:
    """Return ``{args_digest}/{url-encoded name}.{to_format}``."""
    return f"{args_digest}/{quote(name)}.{to_format}"


def prefixed_src(path_prefix: str, content_digest: str, relative_path: str) -> str:
    """Return the public URL of a rendered variant."""
    return f"{path_prefix}/static/{content_digest}/{relative_path}"


def static_output_dir(output_root: Path, content_digest: str) -> Path:
    """Return the directory that holds every variant of one source image."""
    return output_root / "static" / content_digest
