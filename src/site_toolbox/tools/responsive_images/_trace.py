"""Traced vector placeholders: threshold, find contours, emit a small SVG."""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

import cv2
import numpy as np
import svg
from PIL import Image

from site_toolbox.core.exceptions import ToolError
from site_toolbox.tools.responsive_images._render import apply_transforms, open_image

DEFAULT_TRACE_ARGS: dict[str, Any] = {
    "color": "lightgray",
    "background": "transparent",
    "threshold": "auto",
    "turd_size": 100,
    "opt_tolerance": 0.4,
}

_WHITESPACE = re.compile(r"\s+")


def svg_to_data_uri(svg_text: str) -> str:
    """Return a compact, URL-safe ``data:image/svg+xml`` URI."""
    compact = _WHITESPACE.sub(" ", svg_text).strip().replace('"', "'")
    return "data:image/svg+xml," + quote(compact, safe=" ='/:;,.-()")


def _threshold_mask(gray: np.ndarray, threshold: Any) -> np.ndarray:
    """Return a binary mask where dark pixels are foreground (255)."""
    if threshold == "auto":
        _value, mask = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV | cv2.THRESH_OTSU)
        return mask
    try:
        level = int(threshold)
    except (TypeError, ValueError) as exc:
        msg = f"Trace threshold must be 'auto' or 0-255, got {threshold!r}"
        raise ToolError(msg) from exc
    _value, mask = cv2.threshold(gray, max(0, min(level, 255)), 255, cv2.THRESH_BINARY_INV)
    return mask


def trace_image(img: Image.Image, args: Mapping[str, Any] | None = None) -> str:
    """Trace *img* into an SVG document string.

    Args:
        img: The (already resized) image to trace.
        args: Trace options; see ``DEFAULT_TRACE_ARGS``.

    Returns:
        The SVG markup.
    """
    options = {**DEFAULT_TRACE_ARGS, **(args or {})}
    gray = np.array(img.convert("L"), dtype=np.uint8)
    mask = _threshold_mask(gray, options["threshold"])

    contours, _hierarchy = cv2.findContours(mask, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

    path_data: list[svg.PathData] = []
    for contour in contours:
        if cv2.contourArea(contour) < float(options["turd_size"]):
            continue
        approx = cv2.approxPolyDP(contour, float(options["opt_tolerance"]), True)
        points = approx.reshape(-1, 2)
        if len(points) < 3:
            continue
        first_x, first_y = (int(v) for v in points[0])
        path_data.append(svg.MoveTo(first_x, first_y))
        path_data.extend(svg.LineTo(int(x), int(y)) for x, y in points[1:])
        path_data.append(svg.ClosePath())

    elements: list[svg.Element] = []
    if str(options["background"]).lower() != "transparent":
        elements.append(svg.Rect(width=img.width, height=img.height, fill=str(options["background"])))
    if path_data:
        elements.append(svg.Path(d=path_data, fill=str(options["color"]), fill_rule="evenodd"))

    document = svg.SVG(
        width=img.width,
        height=img.height,
        viewBox=svg.ViewBoxSpec(0, 0, img.width, img.height),
        elements=elements,
    )
    return document.as_str()


def trace_file(input_path: Path, trace_args: Mapping[str, Any] | None, render_args: Mapping[str, Any]) -> str:
    """Render *input_path* with *render_args*, trace it, return a data URI.

    Raises:
        ToolError: If the source cannot be opened or traced.
    """
    img = apply_transforms(open_image(input_path), render_args)
    return svg_to_data_uri(trace_image(img, trace_args))
