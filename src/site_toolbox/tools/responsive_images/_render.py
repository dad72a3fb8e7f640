"""Pillow-backed renderer: decode, transform and encode one variant.

Dispatchers call into this module; the planner never does.
"""

from __future__ import annotations

import io
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import IO, Any

from PIL import Image, ImageChops, ImageColor, ImageOps

from site_toolbox.core.datatypes import ImageData
from site_toolbox.core.exceptions import ToolError
from site_toolbox.tools.responsive_images._options import normalize_format
from site_toolbox.tools.responsive_images._planner import get_dimensions_and_aspect_ratio

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────

RESAMPLE = Image.Resampling.LANCZOS

PIL_FORMATS: dict[str, str] = {
    "png": "PNG",
    "jpg": "JPEG",
    "webp": "WEBP",
    "gif": "GIF",
    "tif": "TIFF",
    "tiff": "TIFF",
    "bmp": "BMP",
    "avif": "AVIF",
}

CENTERING: dict[str, tuple[float, float]] = {
    "center": (0.5, 0.5),
    "centre": (0.5, 0.5),
    "north": (0.5, 0.0),
    "top": (0.5, 0.0),
    "northeast": (1.0, 0.0),
    "east": (1.0, 0.5),
    "right": (1.0, 0.5),
    "southeast": (1.0, 1.0),
    "south": (0.5, 1.0),
    "bottom": (0.5, 1.0),
    "southwest": (0.0, 1.0),
    "west": (0.0, 0.5),
    "left": (0.0, 0.5),
    "northwest": (0.0, 0.0),
}

SMART_FOCUS: frozenset[str] = frozenset({"entropy", "attention"})

_ENTROPY_SAMPLE = 256
_ENTROPY_STEPS = 8

_CSS_RGBA = re.compile(
    r"rgba\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*([0-9]*\.?[0-9]+)\s*\)",
    re.IGNORECASE,
)

RGBA = tuple[int, int, int, int]


# ── Colours ───────────────────────────────────────────────────────────────


def parse_color(value: str | None) -> RGBA:
    """Parse a CSS colour (hex, name, ``rgb()``, ``rgba()`` with 0-1 alpha).

    Raises:
        ToolError: If the colour is not recognised.
    """
    if not value or value.lower() == "transparent":
        return (0, 0, 0, 0)
    match = _CSS_RGBA.fullmatch(value.strip())
    if match:
        r, g, b = (int(match.group(i)) for i in range(1, 4))
        alpha = float(match.group(4))
        return (r, g, b, round(alpha * 255) if alpha <= 1 else min(int(alpha), 255))
    try:
        rgb = ImageColor.getrgb(value)
    except ValueError as exc:
        msg = f"Unrecognised colour '{value}'"
        raise ToolError(msg) from exc
    return (*rgb[:3], rgb[3] if len(rgb) == 4 else 255)


def _flatten(img: Image.Image, background: RGBA) -> Image.Image:
    """Composite transparent pixels onto *background* for alpha-less encoders."""
    if img.mode in {"RGB", "L"}:
        return img
    rgba = img.convert("RGBA")
    canvas = Image.new("RGBA", rgba.size, (*background[:3], 255))
    canvas.alpha_composite(rgba)
    return canvas.convert("RGB")


# ── Transforms ────────────────────────────────────────────────────────────


def _trim(img: Image.Image, threshold: float) -> Image.Image:
    """Crop away borders that match the top-left pixel within *threshold*."""
    rgb = img.convert("RGB")
    border = Image.new("RGB", rgb.size, rgb.getpixel((0, 0)))
    diff = ImageChops.difference(rgb, border).convert("L")
    mask = diff.point(lambda p: 255 if p > threshold else 0)
    box = mask.getbbox()
    return img.crop(box) if box else img


def _entropy_centering(img: Image.Image, size: tuple[int, int]) -> tuple[float, float]:
    """Pick the cover-crop position with the highest entropy."""
    width, height = size
    scale = max(width / img.width, height / img.height)
    shrink = min(1.0, _ENTROPY_SAMPLE / max(width, height))
    sample_w = max(1, round(img.width * scale * shrink))
    sample_h = max(1, round(img.height * scale * shrink))
    crop_w = min(sample_w, max(1, round(width * shrink)))
    crop_h = min(sample_h, max(1, round(height * shrink)))
    excess_x = sample_w - crop_w
    excess_y = sample_h - crop_h
    if excess_x <= 0 and excess_y <= 0:
        return (0.5, 0.5)

    sample = img.convert("RGB").resize((sample_w, sample_h), Image.Resampling.BILINEAR)
    horizontal = excess_x >= excess_y
    # Centre first so uniform images keep a centred crop.
    positions = sorted((step / _ENTROPY_STEPS for step in range(_ENTROPY_STEPS + 1)), key=lambda p: abs(p - 0.5))

    best_position, best_entropy = 0.5, -1.0
    for position in positions:
        if horizontal:
            left = round(excess_x * position)
            box = (left, 0, left + crop_w, crop_h)
        else:
            top = round(excess_y * position)
            box = (0, top, crop_w, top + crop_h)
        entropy = sample.crop(box).entropy()
        if entropy > best_entropy:
            best_position, best_entropy = position, entropy

    return (best_position, 0.5) if horizontal else (0.5, best_position)


def _centering(img: Image.Image, size: tuple[int, int], crop_focus: str | None) -> tuple[float, float]:
    focus = (crop_focus or "center").lower()
    if focus in SMART_FOCUS:
        return _entropy_centering(img, size)
    return CENTERING.get(focus, (0.5, 0.5))


def _resize(img: Image.Image, args: Mapping[str, Any]) -> Image.Image:
    width, height, _ratio = get_dimensions_and_aspect_ratio(img.width, img.height, dict(args))
    size = (width, height)
    fit = args.get("fit") or "cover"
    both = bool(args.get("width")) and bool(args.get("height"))

    if fit == "cover" and both:
        return ImageOps.fit(img, size, method=RESAMPLE, centering=_centering(img, size, args.get("crop_focus")))
    if fit == "contain" and both:
        background = parse_color(args.get("background"))
        return ImageOps.pad(
            img.convert("RGBA"),
            size,
            method=RESAMPLE,
            color=background,
            centering=_centering(img, size, args.get("crop_focus")),
        )
    if size == img.size:
        return img
    return img.resize(size, resample=RESAMPLE)


def _duotone(img: Image.Image, duotone: Mapping[str, Any]) -> Image.Image:
    """Map luminance onto a shadow→highlight gradient, optionally blended."""
    try:
        highlight = parse_color(duotone["highlight"])[:3]
        shadow = parse_color(duotone["shadow"])[:3]
    except KeyError as exc:
        msg = "Duotone requires both 'highlight' and 'shadow' colours"
        raise ToolError(msg) from exc

    alpha = img.getchannel("A") if "A" in img.getbands() else None
    toned = ImageOps.colorize(img.convert("L"), black=shadow, white=highlight)

    opacity = duotone.get("opacity")
    if opacity is not None:
        fraction = max(0.0, min(float(opacity), 100.0)) / 100.0
        toned = Image.blend(img.convert("RGB"), toned, fraction)

    if alpha is not None:
        toned.putalpha(alpha)
    return toned


def apply_transforms(img: Image.Image, args: Mapping[str, Any]) -> Image.Image:
    """Apply orient, trim, resize, grayscale, rotate and duotone, in that order."""
    rotate = int(args.get("rotate") or 0)
    if not rotate:
        img = ImageOps.exif_transpose(img)

    trim = args.get("trim")
    if trim:
        img = _trim(img, float(trim))

    img = _resize(img, args)

    if args.get("grayscale"):
        img = img.convert("LA") if "A" in img.getbands() else img.convert("L")

    if rotate:
        # Clockwise, matching CSS/EXIF convention; Pillow rotates counter-clockwise.
        img = img.rotate(-rotate, resample=Image.Resampling.BICUBIC, expand=True)

    duotone = args.get("duotone")
    if duotone:
        img = _duotone(img, duotone)

    return img


# ── Encoding ─────────────────────────────────────────────────────────────


def save_image(img: Image.Image, fp: Path | IO[bytes], args: Mapping[str, Any], to_format: str) -> None:
    """Encode *img* in *to_format* with the encoder settings from *args*.

    Raises:
        ToolError: If the format is unsupported or encoding fails.
    """
    fmt = normalize_format(to_format)
    quality = args.get("quality") or 50
    target = str(fp) if isinstance(fp, Path) else fp
    try:
        match fmt:
            case "png":
                img.save(target, "PNG", compress_level=int(args.get("png_compression_level", 9)))
            case "jpg":
                flat = _flatten(img, parse_color(args.get("background")))
                flat.save(
                    target,
                    "JPEG",
                    quality=int(args.get("jpeg_quality") or quality),
                    progressive=bool(args.get("jpeg_progressive", True)),
                )
            case "webp":
                img.save(target, "WEBP", quality=int(args.get("webp_quality") or quality))
            case _:
                pil_format = PIL_FORMATS.get(fmt)
                if pil_format is None:
                    msg = f"Unsupported output format '{to_format}'"
                    raise ToolError(msg)
                img.save(target, pil_format)
    except (OSError, ValueError) as exc:
        msg = f"Failed to encode image as '{to_format}'"
        raise ToolError(msg) from exc


def open_image(input_path: Path) -> Image.Image:
    """Open and fully decode *input_path*.

    Raises:
        ToolError: If the file is missing or not a decodable image.
    """
    try:
        img = Image.open(input_path)
        img.load()
    except Exception as exc:
        msg = f"Image '{input_path}' could not be opened"
        raise ToolError(msg) from exc
    return img


def render_operation(img: Image.Image, output_path: Path, args: Mapping[str, Any]) -> ImageData:
    """Transform an already opened image and write it to *output_path*.

    Raises:
        ToolError: If the output directory cannot be created or encoding fails.
    """
    result = apply_transforms(img, args)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"Cannot create output directory '{output_path.parent}'"
        raise ToolError(msg) from exc
    to_format = str(args.get("to_format") or output_path.suffix)
    save_image(result, output_path, args, to_format)
    return ImageData(path=output_path, width=result.width, height=result.height, format=normalize_format(to_format))


def process_file(
    input_path: Path,
    output_dir: Path,
    operations: Iterable[tuple[str, Mapping[str, Any]]],
) -> list[ImageData]:
    """Render every ``(relative output path, args)`` operation of one source.

    The source is decoded once and shared by all operations.

    Raises:
        ToolError: If the source cannot be opened or a variant cannot be saved.
    """
    img = open_image(input_path)
    rendered: list[ImageData] = []
    for output_path, args in operations:
        image_data = render_operation(img, output_dir / output_path, args)
        logger.debug("Rendered %s (%dx%d)", image_data.path, image_data.width, image_data.height)
        rendered.append(image_data)
    return rendered


def render_to_buffer(input_path: Path, args: Mapping[str, Any], to_format: str) -> tuple[bytes, int, int]:
    """Render one variant in memory.

    Returns:
        ``(encoded bytes, width, height)``.
    """
    result = apply_transforms(open_image(input_path), args)
    buffer = io.BytesIO()
    save_image(result, buffer, args, to_format)
    return buffer.getvalue(), result.width, result.height
