"""Directory tool — declarative create/read/update/destroy of directories."""

from site_toolbox.tools.directory.tool import DirectoryTool

__all__ = ["DirectoryTool"]
