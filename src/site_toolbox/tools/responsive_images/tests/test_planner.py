"""Tests for fluid and fixed variant planning."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from site_toolbox.core.datatypes import SourceImage
from site_toolbox.core.exceptions import InvalidBreakpointError, InvalidDimensionError
from site_toolbox.tools.responsive_images._options import ImageOptions, PluginOptions, heal_options
from site_toolbox.tools.responsive_images._planner import (
    fluid_sizes,
    get_dimensions_and_aspect_ratio,
    plan_fixed,
    plan_fluid,
    round_half_up,
)

# ── Helpers ────────────────────────────────────────────────────────────────


def _source(width: int = 1600, height: int = 900, *, extension: str = "jpg", fmt: str = "jpeg") -> SourceImage:
    return SourceImage(
        path=Path(f"/images/photo.{extension}"),
        name="photo",
        extension=extension,
        width=width,
        height=height,
        density=72,
        format=fmt,
        content_digest="abc123",
    )


def _options(extension: str = "jpg", **args: Any) -> ImageOptions:
    return heal_options(PluginOptions(output_dir=Path("/out")), args, extension)


# ── Rounding & dimensions ──────────────────────────────────────────────────


class TestRoundHalfUp:
    """Tests for ``round_half_up``."""

    def test_halves_round_up(self) -> None:
        """0.5 goes up rather than to the nearest even integer."""
        assert round_half_up(112.5) == 113
        assert round_half_up(2.5) == 3

    def test_rounds_to_nearest(self) -> None:
        """Other values round to the nearest integer."""
        assert round_half_up(133.33) == 133
        assert round_half_up(533.6) == 534


class TestGetDimensions:
    """Tests for ``get_dimensions_and_aspect_ratio``."""

    def test_width_only_keeps_aspect(self) -> None:
        """The missing height follows the intrinsic aspect ratio."""
        assert get_dimensions_and_aspect_ratio(1600, 900, {"width": 200}) == (200, 113, 200 / 113)

    def test_height_only_keeps_aspect(self) -> None:
        """The missing width follows the intrinsic aspect ratio."""
        width, height, _ratio = get_dimensions_and_aspect_ratio(1600, 900, {"height": 300})
        assert (width, height) == (533, 300)

    def test_cover_with_both_uses_requested_box(self) -> None:
        """Cover with both sides set returns exactly the requested box."""
        width, height, _ratio = get_dimensions_and_aspect_ratio(1600, 900, {"width": 400, "height": 400})
        assert (width, height) == (400, 400)

    def test_inside_fits_within_box(self) -> None:
        """Inside shrinks to fit while keeping the aspect ratio."""
        width, height, _ratio = get_dimensions_and_aspect_ratio(
            1600, 900, {"width": 400, "height": 400, "fit": "inside"}
        )
        assert (width, height) == (400, 225)

    def test_outside_covers_box(self) -> None:
        """Outside grows to cover the box while keeping the aspect ratio."""
        width, height, _ratio = get_dimensions_and_aspect_ratio(
            1600, 900, {"width": 400, "height": 400, "fit": "outside"}
        )
        assert (width, height) == (711, 400)

    def test_inside_with_single_side(self) -> None:
        """Inside with one side set derives the other from the aspect ratio."""
        width, height, _ratio = get_dimensions_and_aspect_ratio(1600, 900, {"width": 800, "fit": "inside"})
        assert (width, height) == (800, 450)

    def test_fill_defaults_missing_side_to_intrinsic(self) -> None:
        """Fill stretches; a missing side keeps its intrinsic size."""
        width, height, _ratio = get_dimensions_and_aspect_ratio(1600, 900, {"width": 400, "fit": "fill"})
        assert (width, height) == (400, 900)

    def test_no_size_returns_intrinsic(self) -> None:
        """Without any size the intrinsic dimensions are returned."""
        width, height, ratio = get_dimensions_and_aspect_ratio(1600, 900, {})
        assert (width, height) == (1600, 900)
        assert ratio == 1600 / 900


# ── Fluid sizes ────────────────────────────────────────────────────────────


class TestFluidSizes:
    """Tests for ``fluid_sizes``."""

    def test_default_multipliers(self) -> None:
        """A base of 800 on a 1600 source yields the documented five sizes."""
        assert fluid_sizes(800, 1600) == [200, 400, 800, 1200, 1600]

    @pytest.mark.parametrize("base", [1, 7, 99, 333, 800, 1599])
    def test_sizes_include_base_and_intrinsic(self, base: int) -> None:
        """Sizes always contain base and intrinsic, ascending, unique."""
        sizes = fluid_sizes(base, 1600)
        assert base in sizes
        assert sizes[-1] == 1600
        assert sizes == sorted(set(sizes))

    @pytest.mark.parametrize("base", [1600, 2400])
    def test_base_at_or_above_intrinsic_collapses(self, base: int) -> None:
        """No upscaling: only the intrinsic size remains."""
        assert fluid_sizes(min(base, 1600), 1600) == [1600]

    def test_custom_breakpoints_replace_multipliers(self) -> None:
        """Explicit breakpoints are used instead of the default multipliers."""
        assert fluid_sizes(800, 1600, (100, 800, 2000)) == [100, 800, 1600]

    def test_tiny_sizes_are_dropped(self) -> None:
        """Sizes that round below one pixel never appear."""
        assert fluid_sizes(1, 1600) == [1, 2, 1600]

    @pytest.mark.parametrize("breakpoint", [0, -10, "wide", True])
    def test_invalid_breakpoint_raises(self, breakpoint: Any) -> None:
        """Non-positive or non-numeric breakpoints are rejected."""
        with pytest.raises(InvalidBreakpointError, match="src_set_breakpoints"):
            fluid_sizes(800, 1600, (400, breakpoint))


# ── Fluid plans ────────────────────────────────────────────────────────────


class TestPlanFluid:
    """Tests for ``plan_fluid``."""

    def test_widths_for_landscape_source(self) -> None:
        """A 1600x900 source at max_width 800 renders five widths."""
        plan = plan_fluid(_source(), _options(max_width=800))

        assert [v.width for v in plan.variants] == [200, 400, 800, 1200, 1600]
        assert [v.height for v in plan.variants] == [113, 225, 450, 675, 900]

    def test_aspect_ratio_is_first_variant_ratio(self) -> None:
        """The plan's aspect ratio is the first variant's, unrounded."""
        plan = plan_fluid(_source(), _options(max_width=800))
        first = plan.variants[0]

        assert plan.aspect_ratio == first.width / first.height

    def test_src_is_closest_to_request(self) -> None:
        """The fallback ``src`` is the variant nearest the requested width."""
        plan = plan_fluid(_source(), _options(max_width=800))

        assert plan.src == plan.variants[2].src
        assert plan.original_img == plan.variants[-1].src

    def test_src_set_and_sizes(self) -> None:
        """``srcSet`` lists every width and ``sizes`` uses the presentation width."""
        plan = plan_fluid(_source(), _options(max_width=800))

        entries = plan.src_set.split(",\n")
        assert len(entries) == 5
        assert entries[0].endswith(" 200w")
        assert entries[-1].endswith(" 1600w")
        assert plan.sizes == "(max-width: 800px) 100vw, 800px"
        assert (plan.presentation_width, plan.presentation_height) == (800, 450)

    def test_caller_sizes_win(self) -> None:
        """A caller-supplied ``sizes`` string is returned untouched."""
        plan = plan_fluid(_source(), _options(max_width=800, sizes="50vw"))
        assert plan.sizes == "50vw"

    def test_small_source_is_not_upscaled(self) -> None:
        """A source narrower than max_width yields a single intrinsic variant."""
        plan = plan_fluid(_source(400, 300), _options(max_width=800))

        assert [(v.width, v.height) for v in plan.variants] == [(400, 300)]
        assert plan.presentation_width == 400

    def test_max_height_only_plans_by_height(self) -> None:
        """Without max_width the heights are planned and widths derived."""
        plan = plan_fluid(_source(), _options(max_height=300))

        assert [v.height for v in plan.variants] == [75, 150, 300, 450, 600, 900]
        assert plan.variants[2].width == 533
        assert plan.sizes == "(max-width: 533px) 100vw, 533px"

    def test_both_maxima_fix_the_crop_ratio(self) -> None:
        """With max_width and max_height every variant keeps their ratio."""
        plan = plan_fluid(_source(), _options(max_width=800, max_height=400))

        assert [(v.width, v.height) for v in plan.variants][:3] == [(200, 100), (400, 200), (800, 400)]

    def test_src_uses_prefix_digest_and_format(self) -> None:
        """URLs are ``{prefix}/static/{digest}/{args}/{name}.{format}``."""
        plan = plan_fluid(_source(), _options(max_width=800, path_prefix="/blog", to_format="webp"))

        for variant in plan.variants:
            assert variant.src.startswith("/blog/static/abc123/")
            assert variant.src.endswith("/photo.webp")
        assert plan.src_set_type == "image/webp"

    def test_src_set_type_falls_back_to_source_format(self) -> None:
        """Formats without a dedicated encoder advertise the source MIME type."""
        plan = plan_fluid(_source(extension="gif", fmt="gif"), _options("gif", max_width=800))
        assert plan.src_set_type == "image/gif"

    def test_distinct_variants_have_distinct_paths(self) -> None:
        """Every variant lands in its own args-digest directory."""
        plan = plan_fluid(_source(), _options(max_width=800))
        assert len({v.relative_path for v in plan.variants}) == len(plan.variants)

    def test_base64_args_follow_aspect_ratio(self) -> None:
        """The placeholder request is 20px wide with a matching height."""
        plan = plan_fluid(_source(), _options(max_width=800))

        assert plan.base64_args is not None
        assert plan.base64_args["width"] == 20
        assert plan.base64_args["height"] == 11

    def test_base64_disabled(self) -> None:
        """``base64=False`` leaves no placeholder request."""
        plan = plan_fluid(_source(), _options(max_width=800, base64=False))
        assert plan.base64_args is None

    def test_traced_svg_request(self) -> None:
        """Tracing is requested only when enabled with trace options."""
        plan = plan_fluid(_source(), _options(generate_traced_svg=True, traced_svg={"color": "red"}))
        assert plan.traced_svg_args == {"color": "red"}
        assert plan_fluid(_source(), _options()).traced_svg_args is None

    def test_missing_fixed_axis_raises(self) -> None:
        """A plan with neither max_width nor max_height is rejected."""
        with pytest.raises(InvalidDimensionError, match="max_height"):
            plan_fluid(_source(), ImageOptions(to_format="jpg"))

    def test_planning_is_deterministic(self) -> None:
        """The same inputs always yield the same plan."""
        options = _options(max_width=640)
        assert plan_fluid(_source(), options) == plan_fluid(_source(), options)


# ── Fixed plans ────────────────────────────────────────────────────────────


class TestPlanFixed:
    """Tests for ``plan_fixed``."""

    def test_three_densities(self) -> None:
        """A large source yields 1x, 1.5x and 2x variants."""
        plan = plan_fixed(_source(1000, 500), _options(width=400))

        assert [v.width for v in plan.variants] == [400, 600, 800]
        entries = plan.src_set.split(",\n")
        assert [entry.rsplit(" ", 1)[1] for entry in entries] == ["1x", "1.5x", "2x"]
        assert (plan.width, plan.height) == (400, 200)
        assert plan.warnings == ()

    def test_labels_follow_position_when_sizes_are_filtered(self) -> None:
        """When 2x is filtered out the remaining labels stay 1x and 1.5x."""
        plan = plan_fixed(_source(700, 350), _options(width=400))

        entries = plan.src_set.split(",\n")
        assert [entry.rsplit(" ", 1)[1] for entry in entries] == ["1x", "1.5x"]

    def test_oversized_request_falls_back_to_intrinsic(self) -> None:
        """Width 400 on a 300px source yields one 300px variant and a warning."""
        plan = plan_fixed(_source(300, 200), _options(width=400))

        assert [(v.width, v.height) for v in plan.variants] == [(300, 200)]
        assert plan.src_set.endswith(" 1x")
        assert len(plan.warnings) == 1
        assert 'requested width "400px"' in plan.warnings[0]
        assert "actual image width of 300px" in plan.warnings[0]

    def test_height_only(self) -> None:
        """A height-only request plans heights and derives widths."""
        plan = plan_fixed(_source(1000, 500), _options(height=100))

        assert [v.height for v in plan.variants] == [100, 150, 200]
        assert [v.width for v in plan.variants] == [200, 300, 400]

    def test_width_and_height_keep_requested_ratio(self) -> None:
        """With both sides set each density keeps the requested box ratio."""
        plan = plan_fixed(_source(1000, 1000), _options(width=400, height=200))

        assert [(v.width, v.height) for v in plan.variants] == [(400, 200), (600, 300), (800, 400)]

    def test_aspect_ratio_is_first_variant_ratio(self) -> None:
        """The plan's aspect ratio is the first variant's, unrounded."""
        plan = plan_fixed(_source(1000, 333), _options(width=250))
        first = plan.variants[0]

        assert plan.aspect_ratio == first.width / first.height

    def test_default_width(self) -> None:
        """Without width or height the fixed width defaults to 400."""
        plan = plan_fixed(_source(), _options())
        assert plan.width == 400

    def test_missing_fixed_axis_raises(self) -> None:
        """A plan with neither width nor height is rejected."""
        with pytest.raises(InvalidDimensionError, match="height"):
            plan_fixed(_source(), ImageOptions(to_format="jpg"))
