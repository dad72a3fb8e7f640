"""ResponsiveImagesTool — BaseTool wrapper for fluid/fixed image planning."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from site_toolbox.core.base_tool import BaseTool, ToolParameter
from site_toolbox.core.events import EventBus
from site_toolbox.core.exceptions import ValidationError
from site_toolbox.tools.responsive_images._cache import Cache
from site_toolbox.tools.responsive_images._options import TOOL_NAME, PluginOptions
from site_toolbox.tools.responsive_images.dispatch import Dispatcher, InlineDispatcher
from site_toolbox.tools.responsive_images.logic import (
    VALID_MODES,
    collect_image_paths,
    fixed,
    fluid,
    process_batch,
    queue_image_resizing,
)


class ResponsiveImagesTool(BaseTool):
    """Plan responsive variants of images and hand them to a dispatcher."""

    name = TOOL_NAME
    display_name = "Responsive Images"
    description = "Plan fluid and fixed responsive image variants and queue their rendering"
    version = "0.1.0"
    category = "Image"

    def __init__(
        self,
        event_bus: EventBus | None = None,
        *,
        dispatcher: Dispatcher | None = None,
        cache: Cache | None = None,
        plugin_options: PluginOptions | None = None,
    ) -> None:
        """Initialise the tool with its injected capabilities.

        Args:
            event_bus: Shared event bus for progress, warning and error events.
            dispatcher: Render dispatcher; renders inline when omitted.
            cache: Optional memoisation store for metadata and placeholders.
            plugin_options: Plugin-wide defaults.
        """
        super().__init__(event_bus=event_bus)
        self.dispatcher = dispatcher or InlineDispatcher()
        self.cache = cache
        self.plugin_options = plugin_options or PluginOptions()

    def define_parameters(self) -> list[ToolParameter]:
        """Return the parameter schema for responsive image planning."""
        return [
            ToolParameter(
                name="input",
                label="Input",
                type=Path,
                required=True,
                help="Image file, directory, or list of files/directories.",
            ),
            ToolParameter(
                name="mode",
                label="Mode",
                type=str,
                default="fluid",
                choices=sorted(VALID_MODES),
                help="fluid (srcSet by width), fixed (1x/1.5x/2x) or a single resize.",
            ),
            ToolParameter(
                name="options",
                label="Image options",
                type=dict,
                default=None,
                help="Image options such as max_width, width, to_format or quality.",
            ),
        ]

    def validate(self, params: dict[str, Any]) -> None:
        """Validate parameters, including the shape of ``options``.

        Raises:
            ValidationError: If parameters are invalid.
        """
        super().validate(params)

        options = params.get("options")
        if options is not None and not isinstance(options, dict):
            msg = f"Parameter 'options' must be a dict, got {type(options).__name__}"
            raise ValidationError(msg)

    def _do_execute(self, params: dict[str, Any]) -> Any:
        """Plan one source, or every image found in a list or directory.

        Returns:
            A ``FluidPlan``/``FixedPlan``/``QueuedImage`` (or ``None``) for a
            single file, otherwise a ``BatchResult``.
        """
        raw_input = params["input"]
        mode: str = params.get("mode") or "fluid"
        options: dict[str, Any] | None = params.get("options")

        capabilities: dict[str, Any] = {
            "plugin_options": self.plugin_options,
            "dispatcher": self.dispatcher,
            "cache": self.cache,
            "event_bus": self.event_bus,
        }

        if not isinstance(raw_input, list | tuple) and Path(raw_input).is_file():
            handler = {"fluid": fluid, "fixed": fixed, "resize": queue_image_resizing}[mode]
            return handler(Path(raw_input), options, **capabilities)

        inputs = [Path(p) for p in raw_input] if isinstance(raw_input, list | tuple) else [Path(raw_input)]
        return process_batch(collect_image_paths(inputs), mode=mode, args=options, **capabilities)
