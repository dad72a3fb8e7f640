"""Responsive image logic: read sources, plan variants, queue renders.

Public entry points are ``fluid``, ``fixed``, ``queue_image_resizing``,
``base64``, ``trace_svg``, ``stats`` and ``get_image_size``.  Rendering
itself happens in the injected dispatcher; this module only plans and
hands jobs over.  No GUI or CLI imports allowed.
"""

from __future__ import annotations

import base64 as b64
import dataclasses
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from PIL import Image

from site_toolbox.core.datatypes import (
    Base64Image,
    BatchResult,
    FixedPlan,
    FluidPlan,
    PlannedResult,
    QueuedImage,
    SourceImage,
    VariantSpec,
)
from site_toolbox.core.events import COMPLETED, ERROR, PROGRESS, WARNING, EventBus
from site_toolbox.core.exceptions import ToolError, ValidationError
from site_toolbox.tools.responsive_images._cache import Cache, cachified_process
from site_toolbox.tools.responsive_images._digest import (
    file_content_digest,
    generate_cache_key,
    static_output_dir,
)
from site_toolbox.tools.responsive_images._options import (
    TOOL_NAME,
    ImageOptions,
    PluginOptions,
    create_transform_object,
    heal_options,
    normalize_format,
    remove_default_values,
)
from site_toolbox.tools.responsive_images._planner import build_variant, plan_fixed, plan_fluid
from site_toolbox.tools.responsive_images._render import open_image, render_to_buffer
from site_toolbox.tools.responsive_images._trace import trace_file
from site_toolbox.tools.responsive_images.dispatch import Dispatcher, InlineDispatcher, RenderJob, RenderOperation

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────

IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".webp",
        ".gif",
        ".tif",
        ".tiff",
        ".bmp",
    }
)

VALID_MODES: frozenset[str] = frozenset({"fluid", "fixed", "resize"})

DEFAULT_DENSITY = 72

_DATA_URI_SUBTYPES: dict[str, str] = {"jpg": "jpeg"}


# ── Reporting ─────────────────────────────────────────────────────────────


def report_error(message: str, exc: BaseException, event_bus: EventBus | None = None) -> None:
    """Log a per-image failure and publish it as an ``error`` event."""
    logger.error("%s: %s", message, exc)
    if event_bus is not None:
        event_bus.emit(ERROR, tool=TOOL_NAME, message=message, error=exc)


def _report_warnings(warnings: Sequence[str], event_bus: EventBus | None) -> None:
    for warning in warnings:
        logger.warning(warning)
        if event_bus is not None:
            event_bus.emit(WARNING, tool=TOOL_NAME, message=warning)


# ── Input collection ──────────────────────────────────────────────────────


def collect_image_paths(inputs: Sequence[Path]) -> list[Path]:
    """Collect image file paths from a mix of files and directories.

    Directories are scanned non-recursively.

    Args:
        inputs: A list of file and/or directory paths.

    Returns:
        A sorted, deduplicated list of image file paths.

    Raises:
        ToolError: If no image files are found after scanning all inputs.
    """
    found: set[Path] = set()
    for entry in inputs:
        entry = Path(entry).resolve()
        if entry.is_file():
            if entry.suffix.lower() in IMAGE_EXTENSIONS:
                found.add(entry)
        elif entry.is_dir():
            found.update(
                child for child in entry.iterdir() if child.is_file() and child.suffix.lower() in IMAGE_EXTENSIONS
            )

    if not found:
        msg = "No image files found in the provided inputs"
        raise ToolError(msg)

    return sorted(found)


# ── Source metadata ──────────────────────────────────────────────────────


def _probe(path: Path) -> dict[str, Any]:
    try:
        with Image.open(path) as img:
            width, height = img.size
            fmt = (img.format or path.suffix.lstrip(".")).lower()
            dpi = img.info.get("dpi")
    except Exception as exc:
        msg = f"Image '{path}' could not be opened"
        raise ToolError(msg) from exc

    density = round(float(dpi[0])) if dpi else DEFAULT_DENSITY
    return {"width": width, "height": height, "format": fmt, "density": density or DEFAULT_DENSITY}


def read_source_image(
    source_path: Path | str,
    *,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> SourceImage | None:
    """Read the intrinsic metadata of *source_path*.

    Only the image header is decoded.  Dimensions are memoised in *cache*
    under the file's content digest.

    Returns:
        The ``SourceImage``, or ``None`` when the file is missing or cannot
        be decoded (the failure is reported, not raised).
    """
    path = Path(source_path)
    try:
        content_digest = file_content_digest(path)
        metadata = cachified_process(cache, f"{content_digest}:metadata", lambda: _probe(path))
    except (OSError, ToolError) as exc:
        report_error(
            f"Failed to process image {path}. It is probably corrupt, so please try replacing it",
            exc,
            event_bus,
        )
        return None

    return SourceImage(
        path=path,
        name=path.stem,
        extension=path.suffix.lstrip(".").lower(),
        content_digest=content_digest,
        **metadata,
    )


def get_image_size(
    source_path: Path | str,
    *,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> tuple[int, int] | None:
    """Return ``(width, height)`` of *source_path*, memoised by content digest."""
    source = read_source_image(source_path, cache=cache, event_bus=event_bus)
    if source is None:
        return None
    return source.width, source.height


def stats(source_path: Path | str, *, event_bus: EventBus | None = None) -> dict[str, bool] | None:
    """Return ``{"is_transparent": bool}`` for *source_path*.

    An image counts as transparent when any pixel's alpha is below 255.
    """
    try:
        img = open_image(Path(source_path))
    except ToolError as exc:
        report_error(f"Failed to get stats for image {source_path}", exc, event_bus)
        return None

    if "A" in img.getbands():
        lowest, _highest = img.getchannel("A").getextrema()
        is_transparent = lowest < 255
    elif img.mode == "P" and "transparency" in img.info:
        lowest, _highest = img.convert("RGBA").getchannel("A").getextrema()
        is_transparent = lowest < 255
    else:
        is_transparent = False
    return {"is_transparent": is_transparent}


# ── Queueing ──────────────────────────────────────────────────────────────


def _job_metadata(source: SourceImage, options: ImageOptions, plugin_options: PluginOptions) -> dict[str, Any]:
    return {
        "content_digest": source.content_digest,
        "options": remove_default_values(create_transform_object(options), plugin_options),
        "strip_metadata": plugin_options.strip_metadata,
    }


def batch_queue_image_resizing(
    source: SourceImage,
    variants: Sequence[VariantSpec],
    *,
    options: ImageOptions,
    plugin_options: PluginOptions,
    dispatcher: Dispatcher,
) -> list[QueuedImage]:
    """Dispatch every variant of *source* as one job.

    The job lists every variant; outputs that already exist are skipped when
    the job runs.  All returned images share one ``finished`` future.
    """
    output_dir = static_output_dir(plugin_options.output_dir, source.content_digest)

    operations: list[RenderOperation] = []
    seen: set[str] = set()
    for variant in variants:
        if variant.relative_path in seen:
            continue
        seen.add(variant.relative_path)
        operations.append(RenderOperation(output_path=variant.relative_path, args=variant.args))

    job = RenderJob(
        input_path=source.path,
        output_dir=output_dir,
        operations=tuple(operations),
        metadata=_job_metadata(source, options, plugin_options),
    )
    logger.debug("Queueing %d variants of %s", len(operations), source.original_name)
    finished = dispatcher.dispatch(job)

    return [
        QueuedImage(
            src=variant.src,
            absolute_path=output_dir / variant.relative_path,
            width=variant.width,
            height=variant.height,
            aspect_ratio=variant.aspect_ratio,
            original_name=source.original_name,
            finished=finished,
        )
        for variant in variants
    ]


def queue_image_resizing(
    source_path: Path | str,
    args: Mapping[str, Any] | None = None,
    *,
    plugin_options: PluginOptions | None = None,
    dispatcher: Dispatcher | None = None,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> QueuedImage | None:
    """Queue a single resize of *source_path*.

    Args:
        source_path: The source image.
        args: Image options; ``width`` defaults to 400.
        plugin_options: Plugin-wide defaults.
        dispatcher: Where the render job goes (inline by default).
        cache: Optional memoisation store.
        event_bus: Optional bus for warning and error events.

    Returns:
        The queued image, or ``None`` if the source could not be read.

    Raises:
        InvalidOptionError: If *args* contains an invalid option.
    """
    plugin_options = plugin_options or PluginOptions()
    dispatcher = dispatcher or InlineDispatcher()

    source = read_source_image(source_path, cache=cache, event_bus=event_bus)
    if source is None:
        return None

    options = heal_options(plugin_options, args, source.extension)
    variant = build_variant(source, options, create_transform_object(options))
    [queued] = batch_queue_image_resizing(
        source, [variant], options=options, plugin_options=plugin_options, dispatcher=dispatcher
    )
    return queued


# ── Placeholders ─────────────────────────────────────────────────────────


def _generate_base64(
    source: SourceImage,
    args: Mapping[str, Any],
    plugin_options: PluginOptions,
    event_bus: EventBus | None,
) -> Base64Image | None:
    width = args.get("width") or plugin_options.base64_width
    options = heal_options(plugin_options, args, source.extension, {"width": width})
    to_format = (
        options.to_format_base64 or normalize_format(plugin_options.force_base64_format) or options.to_format
    )
    render_args = create_transform_object(options)
    render_args["to_format"] = to_format

    try:
        data, width, height = render_to_buffer(source.path, render_args, to_format)
    except ToolError as exc:
        report_error(f"Failed to generate a base64 placeholder for {source.path}", exc, event_bus)
        return None

    subtype = _DATA_URI_SUBTYPES.get(to_format, to_format)
    return Base64Image(
        src=f"data:image/{subtype};base64,{b64.b64encode(data).decode('ascii')}",
        width=width,
        height=height,
        aspect_ratio=width / height,
        original_name=source.original_name,
    )


def _base64_for_source(
    source: SourceImage,
    args: Mapping[str, Any],
    plugin_options: PluginOptions,
    cache: Cache | None,
    event_bus: EventBus | None,
) -> Base64Image | None:
    key = generate_cache_key(source.content_digest, args)
    return cachified_process(cache, key, lambda: _generate_base64(source, args, plugin_options, event_bus))


def base64(
    source_path: Path | str,
    args: Mapping[str, Any] | None = None,
    *,
    plugin_options: PluginOptions | None = None,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> Base64Image | None:
    """Render a tiny inline placeholder of *source_path* as a data URI.

    The width defaults to ``plugin_options.base64_width``.  The format is
    the first of ``to_format_base64``, ``force_base64_format`` and
    ``to_format``.
    """
    plugin_options = plugin_options or PluginOptions()
    source = read_source_image(source_path, cache=cache, event_bus=event_bus)
    if source is None:
        return None
    return _base64_for_source(source, dict(args or {}), plugin_options, cache, event_bus)


def _trace_for_source(
    source: SourceImage,
    trace_args: Mapping[str, Any] | None,
    options: ImageOptions,
    cache: Cache | None,
    event_bus: EventBus | None,
) -> str | None:
    render_args = create_transform_object(options)
    key = generate_cache_key(source.content_digest, {"traced_svg": dict(trace_args or {}), "file_args": render_args})
    try:
        return cachified_process(cache, key, lambda: trace_file(source.path, trace_args, render_args))
    except ToolError as exc:
        report_error(f"Failed to trace {source.path}", exc, event_bus)
        return None


def trace_svg(
    source_path: Path | str,
    args: Mapping[str, Any] | None = None,
    file_args: Mapping[str, Any] | None = None,
    *,
    plugin_options: PluginOptions | None = None,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> str | None:
    """Trace *source_path* into an SVG placeholder data URI.

    Args:
        source_path: The source image.
        args: Trace options (``color``, ``background``, ``threshold``,
            ``turd_size``, ``opt_tolerance``).
        file_args: Image options applied before tracing.
        plugin_options: Plugin-wide defaults.
        cache: Optional memoisation store.
        event_bus: Optional bus for error events.

    Returns:
        An ``svg+xml`` data URI, or ``None`` on failure.
    """
    plugin_options = plugin_options or PluginOptions()
    source = read_source_image(source_path, cache=cache, event_bus=event_bus)
    if source is None:
        return None
    options = heal_options(plugin_options, file_args, source.extension)
    return _trace_for_source(source, args, options, cache, event_bus)


# ── Fluid / fixed ────────────────────────────────────────────────────────


def _complete_plan(
    plan: PlannedResult,
    source: SourceImage,
    options: ImageOptions,
    *,
    plugin_options: PluginOptions,
    dispatcher: Dispatcher,
    cache: Cache | None,
    event_bus: EventBus | None,
) -> PlannedResult:
    """Report warnings, dispatch the variants and fill the placeholders."""
    _report_warnings(plan.warnings, event_bus)

    images = batch_queue_image_resizing(
        source, plan.variants, options=options, plugin_options=plugin_options, dispatcher=dispatcher
    )

    placeholder = None
    if plan.base64_args is not None:
        image = _base64_for_source(source, plan.base64_args, plugin_options, cache, event_bus)
        placeholder = image.src if image is not None else None

    traced = None
    if plan.traced_svg_args is not None:
        traced = _trace_for_source(source, plan.traced_svg_args, options, cache, event_bus)

    return dataclasses.replace(plan, base64=placeholder, traced_svg=traced, finished=images[0].finished)


def fluid(
    source_path: Path | str,
    args: Mapping[str, Any] | None = None,
    *,
    plugin_options: PluginOptions | None = None,
    dispatcher: Dispatcher | None = None,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> FluidPlan | None:
    """Plan and queue a fluid image (a ``srcSet`` of widths).

    Args:
        source_path: The source image.
        args: Image options, e.g. ``max_width`` and ``src_set_breakpoints``.
        plugin_options: Plugin-wide defaults.
        dispatcher: Where the render job goes (inline by default).
        cache: Optional memoisation store.
        event_bus: Optional bus for warning and error events.

    Returns:
        The completed plan, or ``None`` if the source could not be read.

    Raises:
        InvalidOptionError: On an unknown or malformed option.
        InvalidDimensionError: If ``max_width``/``max_height`` is below 1.
        InvalidBreakpointError: If a breakpoint is not a positive number.
    """
    plugin_options = plugin_options or PluginOptions()
    dispatcher = dispatcher or InlineDispatcher()

    source = read_source_image(source_path, cache=cache, event_bus=event_bus)
    if source is None:
        return None

    options = heal_options(plugin_options, args, source.extension)
    plan = plan_fluid(source, options)
    logger.info("Planned %d fluid variants of %s", len(plan.variants), source.original_name)
    return _complete_plan(
        plan,
        source,
        options,
        plugin_options=plugin_options,
        dispatcher=dispatcher,
        cache=cache,
        event_bus=event_bus,
    )


def fixed(
    source_path: Path | str,
    args: Mapping[str, Any] | None = None,
    *,
    plugin_options: PluginOptions | None = None,
    dispatcher: Dispatcher | None = None,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> FixedPlan | None:
    """Plan and queue a fixed image (1x / 1.5x / 2x densities).

    A requested size larger than the source is not an error: the plan falls
    back to the source size and a ``warning`` event is emitted.

    Raises:
        InvalidOptionError: On an unknown or malformed option.
        InvalidDimensionError: If ``width``/``height`` is below 1.
    """
    plugin_options = plugin_options or PluginOptions()
    dispatcher = dispatcher or InlineDispatcher()

    source = read_source_image(source_path, cache=cache, event_bus=event_bus)
    if source is None:
        return None

    options = heal_options(plugin_options, args, source.extension)
    plan = plan_fixed(source, options)
    logger.info("Planned %d fixed variants of %s", len(plan.variants), source.original_name)
    return _complete_plan(
        plan,
        source,
        options,
        plugin_options=plugin_options,
        dispatcher=dispatcher,
        cache=cache,
        event_bus=event_bus,
    )


# ── Batch ─────────────────────────────────────────────────────────────────


def process_batch(
    input_paths: Sequence[Path],
    *,
    mode: str,
    args: Mapping[str, Any] | None = None,
    plugin_options: PluginOptions | None = None,
    dispatcher: Dispatcher | None = None,
    cache: Cache | None = None,
    event_bus: EventBus | None = None,
) -> BatchResult:
    """Run *mode* over many source images.

    A source that cannot be read is reported and skipped; the rest of the
    batch still runs.

    Args:
        input_paths: Source image paths.
        mode: ``fluid``, ``fixed`` or ``resize``.
        args: Image options shared by every source.
        plugin_options: Plugin-wide defaults.
        dispatcher: Shared dispatcher for all jobs.
        cache: Optional memoisation store.
        event_bus: Optional event bus for progress events.

    Returns:
        A ``BatchResult`` with one entry per readable source.

    Raises:
        ValidationError: If *mode* is unknown or an option is invalid.
    """
    handlers = {"fluid": fluid, "fixed": fixed, "resize": queue_image_resizing}
    if mode not in handlers:
        msg = f"Invalid mode '{mode}'. Choose from: {sorted(VALID_MODES)}"
        raise ValidationError(msg)

    plugin_options = plugin_options or PluginOptions()
    dispatcher = dispatcher or InlineDispatcher()
    handler = handlers[mode]

    results: list[Any] = []
    failed: list[Path] = []
    total = len(input_paths)

    for idx, input_path in enumerate(input_paths):
        result = handler(
            input_path,
            args,
            plugin_options=plugin_options,
            dispatcher=dispatcher,
            cache=cache,
            event_bus=event_bus,
        )
        if result is None:
            failed.append(Path(input_path))
        else:
            results.append(result)

        if event_bus is not None:
            event_bus.emit(
                PROGRESS,
                tool=TOOL_NAME,
                current=idx + 1,
                total=total,
                message=f"Planned {Path(input_path).name} ({idx + 1}/{total})",
            )

    if event_bus is not None:
        event_bus.emit(
            COMPLETED,
            tool=TOOL_NAME,
            message=f"Done: {len(results)} images planned, {len(failed)} failed",
        )

    return BatchResult(results=tuple(results), count=len(results), failed=tuple(failed))
