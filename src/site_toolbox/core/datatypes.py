"""Shared value objects used across tools."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class SourceImage:
    """Intrinsic metadata of a source image, read once per call."""

    path: Path
    name: str
    extension: str
    width: int
    height: int
    density: int
    format: str
    content_digest: str

    @property
    def original_name(self) -> str:
        """Return the file's base name (``name.extension``)."""
        return self.path.name


@dataclass(frozen=True)
class VariantSpec:
    """One rendered size of a source image."""

    width: int
    height: int
    args: dict[str, Any] = field(hash=False)
    relative_path: str
    src: str

    @property
    def aspect_ratio(self) -> float:
        """Return ``width / height`` without rounding."""
        return self.width / self.height


@dataclass(frozen=True)
class FluidPlan:
    """Result of fluid planning: a ``srcSet`` of widths (or heights)."""

    variants: tuple[VariantSpec, ...]
    aspect_ratio: float
    src: str
    src_set: str
    src_set_type: str
    sizes: str
    original_img: str
    original_name: str
    density: int
    presentation_width: int
    presentation_height: int
    base64_args: dict[str, Any] | None = field(default=None, hash=False)
    traced_svg_args: dict[str, Any] | None = field(default=None, hash=False)
    base64: str | None = None
    traced_svg: str | None = None
    warnings: tuple[str, ...] = ()
    finished: Future[None] | None = field(default=None, compare=False, hash=False)


@dataclass(frozen=True)
class FixedPlan:
    """Result of fixed planning: a 1x / 1.5x / 2x density set."""

    variants: tuple[VariantSpec, ...]
    aspect_ratio: float
    width: int
    height: int
    src: str
    src_set: str
    original_name: str
    base64_args: dict[str, Any] | None = field(default=None, hash=False)
    traced_svg_args: dict[str, Any] | None = field(default=None, hash=False)
    base64: str | None = None
    traced_svg: str | None = None
    warnings: tuple[str, ...] = ()
    finished: Future[None] | None = field(default=None, compare=False, hash=False)


PlannedResult = FluidPlan | FixedPlan


@dataclass(frozen=True)
class QueuedImage:
    """A variant handed to a dispatcher, with the shared completion future."""

    src: str
    absolute_path: Path
    width: int
    height: int
    aspect_ratio: float
    original_name: str
    finished: Future[None] = field(compare=False, hash=False)


@dataclass(frozen=True)
class Base64Image:
    """An inline placeholder rendered as a ``data:`` URI."""

    src: str
    width: int
    height: int
    aspect_ratio: float
    original_name: str


@dataclass(frozen=True)
class ImageData:
    """Reference to an image file with metadata."""

    path: Path
    width: int
    height: int
    format: str


@dataclass(frozen=True)
class BatchResult:
    """Result of planning many source images in one run."""

    results: tuple[Any, ...]
    count: int
    failed: tuple[Path, ...] = ()
