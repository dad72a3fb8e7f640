"""Image options: general defaults, plugin defaults, and the options healer.

``heal_options`` is the single place where call arguments become an
``ImageOptions``.  It is a pure function; the only side effect is a log
warning for deprecated options.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from site_toolbox.core.exceptions import InvalidOptionError

if TYPE_CHECKING:
    from site_toolbox.core.config import ConfigManager

logger = logging.getLogger(__name__)

TOOL_NAME = "responsive_images"


class ImageFormat(StrEnum):
    """Output formats with a dedicated encoder."""

    PNG = "png"
    JPG = "jpg"
    WEBP = "webp"


MIME_TYPES: dict[ImageFormat, str] = {
    ImageFormat.PNG: "image/png",
    ImageFormat.JPG: "image/jpeg",
    ImageFormat.WEBP: "image/webp",
}

FIT_MODES: frozenset[str] = frozenset({"cover", "contain", "fill", "inside", "outside"})

SIZE_OPTIONS: tuple[str, ...] = ("width", "height", "max_width", "max_height")

DEFAULT_FIXED_WIDTH = 400
DEFAULT_FLUID_MAX_WIDTH = 800


@dataclass(frozen=True)
class ImageOptions:
    """Fully resolved options for one fluid/fixed/resize call."""

    width: int | None = None
    height: int | None = None
    max_width: int | None = None
    max_height: int | None = None
    fit: str = "cover"
    crop_focus: str = "attention"
    background: str = "rgba(0,0,0,1)"
    to_format: str = ""
    to_format_base64: str = ""
    quality: int = 50
    png_compression_level: int = 9
    jpeg_quality: int | None = None
    jpeg_progressive: bool = True
    webp_quality: int | None = None
    grayscale: bool = False
    duotone: dict[str, Any] | None = field(default=None, hash=False)
    rotate: int = 0
    trim: float | None = None
    base64: bool = True
    base64_width: int = 20
    src_set_breakpoints: tuple[float, ...] = ()
    path_prefix: str = ""
    sizes: str = ""
    size_by_pixel_density: bool = False
    generate_traced_svg: bool = False
    traced_svg: dict[str, Any] | None = field(default=None, hash=False)


GENERAL_DEFAULTS: dict[str, Any] = {
    f.name: f.default for f in dataclasses.fields(ImageOptions) if f.default is not dataclasses.MISSING
}

# Keys forwarded to the renderer for every variant.
TRANSFORM_KEYS: tuple[str, ...] = (
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
)


@dataclass(frozen=True)
class PluginOptions:
    """Plugin-wide defaults shared by every call."""

    default_quality: int = 50
    base64_width: int = 20
    force_base64_format: str = ""
    strip_metadata: bool = True
    output_dir: Path = field(default_factory=lambda: Path.cwd() / "public")

    @classmethod
    def from_config(cls, config: ConfigManager) -> PluginOptions:
        """Build plugin options from the ``responsive_images`` tool config.

        Args:
            config: A loaded ``ConfigManager``.

        Returns:
            Plugin options with config values layered over the defaults.
        """
        defaults = cls()
        output_dir = config.get("output_dir", tool=TOOL_NAME)
        return cls(
            default_quality=int(config.get("default_quality", tool=TOOL_NAME, default=defaults.default_quality)),
            base64_width=int(config.get("base64_width", tool=TOOL_NAME, default=defaults.base64_width)),
            force_base64_format=str(
                config.get("force_base64_format", tool=TOOL_NAME, default=defaults.force_base64_format)
            ),
            strip_metadata=bool(config.get("strip_metadata", tool=TOOL_NAME, default=defaults.strip_metadata)),
            output_dir=Path(output_dir) if output_dir else defaults.output_dir,
        )


def normalize_format(value: str | None) -> str:
    """Lower-case a format name and fold ``jpeg`` into ``jpg``."""
    fmt = (value or "").lower().lstrip(".")
    return "jpg" if fmt == "jpeg" else fmt


def _to_int(name: str, value: Any) -> int:
    """Coerce *value* to an int; fractional values are rejected, never truncated."""
    if isinstance(value, float) and not value.is_integer():
        msg = f"{name} has to be an int, got {value!r}"
        raise InvalidOptionError(msg)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        msg = f"{name} has to be an int, got {value!r}"
        raise InvalidOptionError(msg) from exc


def heal_options(
    plugin_options: PluginOptions,
    args: Mapping[str, Any] | None,
    file_extension: str,
    overrides: Mapping[str, Any] | None = None,
) -> ImageOptions:
    """Merge defaults, call arguments and overrides into ``ImageOptions``.

    Precedence, lowest first: general defaults, plugin defaults, *args*,
    *overrides*.  ``None`` values never override a lower layer.

    Args:
        plugin_options: Plugin-wide defaults.
        args: Per-call options (snake_case keys of ``ImageOptions``).
        file_extension: Extension of the source file; becomes ``to_format``
            when none is requested.
        overrides: Options that win over *args* (e.g. the base64 width).

    Returns:
        The resolved options.

    Raises:
        InvalidOptionError: On unknown keys, non-numeric sizes, or a sizing
            option below 1.
    """
    merged: dict[str, Any] = {
        "quality": plugin_options.default_quality,
        "base64_width": plugin_options.base64_width,
    }
    for layer in (args or {}, overrides or {}):
        for key, value in layer.items():
            if key not in GENERAL_DEFAULTS:
                msg = f"Unknown image option '{key}'"
                raise InvalidOptionError(msg)
            if value is not None:
                merged[key] = value

    merged["quality"] = _to_int("quality", merged["quality"])
    if "png_compression_level" in merged:
        merged["png_compression_level"] = _to_int("png_compression_level", merged["png_compression_level"])

    merged["to_format"] = normalize_format(merged.get("to_format")) or normalize_format(file_extension)
    merged["to_format_base64"] = normalize_format(merged.get("to_format_base64"))

    if merged.get("width") is None and merged.get("height") is None:
        merged["width"] = DEFAULT_FIXED_WIDTH
    if merged.get("max_width") is None and merged.get("max_height") is None:
        merged["max_width"] = DEFAULT_FLUID_MAX_WIDTH

    for name in SIZE_OPTIONS:
        value = merged.get(name)
        if value is None:
            continue
        value = _to_int(name, value)
        if value < 1:
            msg = f"{name} has to be a positive int larger than zero (> 0), now it's {value}"
            raise InvalidOptionError(msg)
        merged[name] = value

    if merged.get("size_by_pixel_density"):
        logger.warning(
            "The option size_by_pixel_density is deprecated and is ignored (source extension '%s')",
            file_extension,
        )
        merged["size_by_pixel_density"] = False

    merged["src_set_breakpoints"] = tuple(merged.get("src_set_breakpoints") or ())
    for name in ("duotone", "traced_svg"):
        if merged.get(name) is not None:
            merged[name] = dict(merged[name])

    if merged.get("fit", GENERAL_DEFAULTS["fit"]) not in FIT_MODES:
        msg = f"Invalid fit '{merged['fit']}'. Choose from: {sorted(FIT_MODES)}"
        raise InvalidOptionError(msg)

    return ImageOptions(**merged)


def create_transform_object(options: ImageOptions) -> dict[str, Any]:
    """Project the per-variant render arguments out of *options*."""
    args = {key: getattr(options, key) for key in TRANSFORM_KEYS}
    if args["duotone"] is not None:
        args["duotone"] = dict(args["duotone"])
    return args


def remove_default_values(args: Mapping[str, Any], plugin_options: PluginOptions) -> dict[str, Any]:
    """Drop arguments that equal their default, keeping job payloads small."""
    defaults = dict(GENERAL_DEFAULTS, quality=plugin_options.default_quality)
    return {key: value for key, value in args.items() if key not in defaults or defaults[key] != value}
