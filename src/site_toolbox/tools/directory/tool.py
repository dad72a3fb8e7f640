"""DirectoryTool — BaseTool wrapper for the directory resource provider."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from site_toolbox.core.base_tool import BaseTool, ToolParameter
from site_toolbox.core.events import COMPLETED, EventBus
from site_toolbox.tools.directory import logic
from site_toolbox.tools.directory.logic import VALID_ACTIONS, ProviderContext


class DirectoryTool(BaseTool):
    """Create, read, update, destroy, plan or validate a directory resource."""

    name = "directory"
    display_name = "Directory"
    description = "Declarative directory resource: create/read/update/destroy/plan/validate"
    version = "0.1.0"
    category = "Filesystem"

    def define_parameters(self) -> list[ToolParameter]:
        """Return the parameter schema for directory actions."""
        return [
            ToolParameter(
                name="action",
                label="Action",
                type=str,
                required=True,
                choices=sorted(VALID_ACTIONS),
                help="Provider operation to run.",
            ),
            ToolParameter(
                name="path",
                label="Path",
                type=str,
                required=True,
                help="Directory path relative to the root.",
            ),
            ToolParameter(
                name="root",
                label="Root",
                type=Path,
                default=None,
                help="Root directory; defaults to the current working directory.",
            ),
            ToolParameter(
                name="id",
                label="Resource id",
                type=str,
                default=None,
                help="Existing resource id (used by update and destroy).",
            ),
        ]

    def _do_execute(self, params: dict[str, Any]) -> Any:
        """Dispatch to the provider operation named by ``action``."""
        root = params.get("root")
        context = ProviderContext(root=Path(root)) if root is not None else ProviderContext()

        descriptor: dict[str, Any] = {"path": params["path"]}
        if params.get("id") is not None:
            descriptor["id"] = params["id"]

        action: str = params["action"]
        operation = getattr(logic, action)
        result = operation(context, descriptor)

        self.event_bus.emit(COMPLETED, tool=self.name, message=f"{action} {params['path']}")
        return result
