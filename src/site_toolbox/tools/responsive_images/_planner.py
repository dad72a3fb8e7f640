"""Variant planning for fluid and fixed responsive images.

Everything in this module is a pure function of a ``SourceImage`` and an
``ImageOptions``: no I/O, no logging, no shared state.  Non-fatal problems
are returned in ``plan.warnings`` for the caller to report.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from numbers import Real
from typing import Any

from site_toolbox.core.datatypes import FixedPlan, FluidPlan, SourceImage, VariantSpec
from site_toolbox.core.exceptions import InvalidBreakpointError, InvalidDimensionError
from site_toolbox.tools.responsive_images._digest import (
    create_args_digest,
    output_relative_path,
    prefixed_src,
)
from site_toolbox.tools.responsive_images._options import (
    MIME_TYPES,
    ImageFormat,
    ImageOptions,
    create_transform_object,
)

DENSITY_LABELS: tuple[str, ...] = ("1x", "1.5x", "2x")

# Keys copied from the options into a placeholder render request.
PLACEHOLDER_KEYS: tuple[str, ...] = (
    "background",
    "duotone",
    "grayscale",
    "rotate",
    "trim",
    "to_format",
    "to_format_base64",
    "crop_focus",
    "fit",
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


# ── Dimensions ───────────────────────────────────────────────────────────


def get_dimensions_and_aspect_ratio(
    intrinsic_width: int,
    intrinsic_height: int,
    args: dict[str, Any],
) -> tuple[int, int, float]:
    """Compute the rendered size of a variant for the given fit mode.

    Args:
        intrinsic_width: Source width in pixels.
        intrinsic_height: Source height in pixels.
        args: Render arguments with ``width``, ``height`` and ``fit``.

    Returns:
        ``(width, height, width / height)`` of the output image.
    """
    width: float | None = args.get("width")
    height: float | None = args.get("height")
    ratio = intrinsic_width / intrinsic_height

    match args.get("fit", "cover"):
        case "fill":
            width = width or intrinsic_width
            height = height or intrinsic_height
        case "inside":
            width_option = width or math.inf
            height_option = height or math.inf
            width = min(width_option, height_option * ratio)
            height = min(height_option, width_option / ratio)
        case "outside":
            width_option = width or 0
            height_option = height or 0
            width = max(width_option, height_option * ratio)
            height = max(height_option, width_option / ratio)
        case _:
            if width and not height:
                height = width * intrinsic_height / intrinsic_width
            elif height and not width:
                width = height * intrinsic_width / intrinsic_height

    if not width or not height or math.isinf(width) or math.isinf(height):
        width, height = intrinsic_width, intrinsic_height
    out_width = max(1, round_half_up(width))
    out_height = max(1, round_half_up(height))
    return out_width, out_height, out_width / out_height


def build_variant(source: SourceImage, options: ImageOptions, args: dict[str, Any]) -> VariantSpec:
    width, height, _ratio = get_dimensions_and_aspect_ratio(source.width, source.height, args)
    relative_path = output_relative_path(create_args_digest(args), source.name, options.to_format)
    return VariantSpec(
        width=width,
        height=height,
        args=args,
        relative_path=relative_path,
        src=prefixed_src(options.path_prefix, source.content_digest, relative_path),
    )


def _check_positive(name: str, value: int | None) -> int:
    if value is None or value < 1:
        msg = f"{name} has to be a positive int larger than zero (> 0), now it's {value}"
        raise InvalidDimensionError(msg)
    return value


def src_set_type_for(to_format: str, source_format: str) -> str:
    """Return the MIME type advertised for the ``srcSet``."""
    try:
        return MIME_TYPES[ImageFormat(to_format)]
    except ValueError:
        return f"image/{source_format}"


def placeholder_args(options: ImageOptions, aspect_ratio: float) -> dict[str, Any]:
    """Return the render request for the base64 placeholder."""
    args = {key: getattr(options, key) for key in PLACEHOLDER_KEYS}
    args["width"] = options.base64_width
    args["height"] = max(1, round_half_up(options.base64_width / aspect_ratio))
    return args


def _traced_svg_args(options: ImageOptions) -> dict[str, Any] | None:
    if options.generate_traced_svg and options.traced_svg is not None:
        return dict(options.traced_svg)
    return None


# ── Fluid ────────────────────────────────────────────────────────────────


def fluid_sizes(base: int, intrinsic: int, breakpoints: Sequence[float] = ()) -> list[int]:
    """Return the ascending, de-duplicated sizes to render along one axis.

    Args:
        base: The requested size, already capped at *intrinsic*.
        intrinsic: The source size along the same axis.
        breakpoints: Explicit sizes replacing the default multipliers.

    Returns:
        Integer sizes; the last one is always *intrinsic*.

    Raises:
        InvalidBreakpointError: If a breakpoint is not a number above zero.
    """
    candidates: list[float]
    if breakpoints:
        candidates = [base]
        for breakpoint in breakpoints:
            if isinstance(breakpoint, bool) or not isinstance(breakpoint, Real) or breakpoint <= 0:
                msg = f"All values in src_set_breakpoints should be positive numbers larger than zero (> 0), found {breakpoint!r}"
                raise InvalidBreakpointError(msg)
            if breakpoint not in candidates:
                candidates.append(breakpoint)
    elif base >= intrinsic:
        # Nothing to offer beyond the source resolution itself.
        candidates = []
    else:
        candidates = [base, base / 4, base / 2, base * 1.5, base * 2]

    kept = [size for size in candidates if size < intrinsic]
    kept.append(intrinsic)
    return sorted({rounded for rounded in map(round_half_up, kept) if rounded >= 1})


def plan_fluid(source: SourceImage, options: ImageOptions) -> FluidPlan:
    """Plan the variants of a fluid (``srcSet`` by width) image.

    The fixed axis is ``max_width`` when given, otherwise ``max_height``.
    See ``fluid_sizes`` for the size list; the variant equal to the capped
    request is the density-one reference used for the default ``sizes``.

    Args:
        source: Intrinsic metadata of the source image.
        options: Healed options.

    Returns:
        The fluid plan.  ``base64`` and ``traced_svg`` are left empty and
        only their render requests are filled in.

    Raises:
        InvalidDimensionError: If the fixed axis option is missing or < 1.
        InvalidBreakpointError: If an explicit breakpoint is not positive.
    """
    by_width = options.max_width is not None
    fixed_dimension = "max_width" if by_width else "max_height"
    requested = _check_positive(fixed_dimension, getattr(options, fixed_dimension))

    dimension_attr, other_attr = ("width", "height") if by_width else ("height", "width")
    intrinsic = source.width if by_width else source.height
    base = min(requested, intrinsic)

    sizes = fluid_sizes(base, intrinsic, options.src_set_breakpoints)

    variants: list[VariantSpec] = []
    for size in sizes:
        args = create_transform_object(options)
        args[other_attr] = None
        args[dimension_attr] = size
        if options.max_width is not None and options.max_height is not None:
            if options.fit == "inside":
                capped_width = min(options.max_width, source.width)
                capped_height = min(options.max_height, source.height)
                args["height"] = round_half_up(size * capped_height / capped_width)
            else:
                args["height"] = round_half_up(size * options.max_height / options.max_width)
        variants.append(build_variant(source, options, args))

    density_one = variants[sizes.index(round_half_up(base))]
    presentation_width = density_one.width
    presentation_height = density_one.height

    fallback = min(variants, key=lambda v: abs(requested - getattr(v, dimension_attr)))
    original = max(variants, key=lambda v: v.width)
    aspect_ratio = variants[0].aspect_ratio

    return FluidPlan(
        variants=tuple(variants),
        aspect_ratio=aspect_ratio,
        src=fallback.src,
        src_set=",\n".join(f"{v.src} {v.width}w" for v in variants),
        src_set_type=src_set_type_for(options.to_format, source.format),
        sizes=options.sizes or f"(max-width: {presentation_width}px) 100vw, {presentation_width}px",
        original_img=original.src,
        original_name=source.original_name,
        density=source.density,
        presentation_width=presentation_width,
        presentation_height=presentation_height,
        base64_args=placeholder_args(options, aspect_ratio) if options.base64 else None,
        traced_svg_args=_traced_svg_args(options),
    )


# ── Fixed ────────────────────────────────────────────────────────────────


def plan_fixed(source: SourceImage, options: ImageOptions) -> FixedPlan:
    """Plan the 1x / 1.5x / 2x variants of a fixed-size image.

    Sizes above the source resolution are dropped.  When none survive the
    source size is used on its own and a warning is attached to the plan.

    Args:
        source: Intrinsic metadata of the source image.
        options: Healed options.

    Returns:
        The fixed plan.

    Raises:
        InvalidDimensionError: If the fixed axis option is missing or < 1.
    """
    fixed_dimension = "width" if options.width is not None else "height"
    requested = _check_positive(fixed_dimension, getattr(options, fixed_dimension))
    intrinsic: int = getattr(source, fixed_dimension)

    warnings: list[str] = []
    candidates = [size for size in (requested, requested * 1.5, requested * 2) if size <= intrinsic]
    if not candidates:
        candidates = [intrinsic]
        warnings.append(
            f'The requested {fixed_dimension} "{requested}px" for the file {source.path} was larger '
            f"than the actual image {fixed_dimension} of {intrinsic}px. "
            "If possible, replace the current image with a larger one."
        )
    sizes = sorted({round_half_up(size) for size in candidates})

    variants: list[VariantSpec] = []
    for size in sizes:
        args = create_transform_object(options)
        args[fixed_dimension] = size
        if options.width is not None and options.height is not None:
            args["height"] = round_half_up(size * options.height / options.width)
        variants.append(build_variant(source, options, args))

    first = variants[0]
    return FixedPlan(
        variants=tuple(variants),
        aspect_ratio=first.aspect_ratio,
        width=first.width,
        height=first.height,
        src=first.src,
        src_set=",\n".join(f"{v.src} {label}" for v, label in zip(variants, DENSITY_LABELS, strict=False)),
        original_name=source.original_name,
        base64_args=placeholder_args(options, first.aspect_ratio) if options.base64 else None,
        traced_svg_args=_traced_svg_args(options),
        warnings=tuple(warnings),
    )
