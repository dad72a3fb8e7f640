"""Responsive Images tool — plans fluid and fixed image variants and queues their rendering."""

from site_toolbox.tools.responsive_images.tool import ResponsiveImagesTool

__all__ = ["ResponsiveImagesTool"]
