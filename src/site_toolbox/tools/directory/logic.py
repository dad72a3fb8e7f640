"""Directory resource provider — create/read/update/destroy/plan/validate.

Every operation takes ``(context, descriptor)``.  Paths in a descriptor
are relative to ``context.root``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from site_toolbox.core.exceptions import ResourceValidationError

logger = logging.getLogger(__name__)

RESOURCE_NAME = "Directory"

VALID_ACTIONS: frozenset[str] = frozenset({"create", "read", "update", "destroy", "plan", "validate"})


# ── Types ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProviderContext:
    """Where relative resource paths are resolved."""

    root: Path = field(default_factory=Path.cwd)


class DirectoryDescriptor(BaseModel):
    """Declared shape of a directory resource."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    path: StrictStr = Field(min_length=1)
    id: StrictStr | None = None
    message: StrictStr | None = Field(default=None, alias="_message")

    @property
    def key(self) -> str:
        """Return the identifier used on disk: ``id`` when set, else ``path``."""
        return self.id or self.path


@dataclass(frozen=True)
class DirectoryResource:
    """A directory that exists under the context root."""

    id: str
    path: str
    message: str


@dataclass(frozen=True)
class ResourcePlan:
    """What applying a descriptor would do."""

    id: str
    name: str
    current_state: DirectoryResource | None
    describe: str


DescriptorInput = DirectoryDescriptor | Mapping[str, Any] | str


# ── Helpers ───────────────────────────────────────────────────────────────


def _message(path: str) -> str:
    return f'Created directory "{path}"'


def _full_path(context: ProviderContext, relative_path: str) -> Path:
    return Path(context.root) / relative_path


def _coerce(descriptor: DescriptorInput) -> DirectoryDescriptor:
    if isinstance(descriptor, DirectoryDescriptor):
        return descriptor
    if isinstance(descriptor, str):
        return validate(None, {"path": descriptor})
    return validate(None, descriptor)


# ── Operations ────────────────────────────────────────────────────────────


def validate(context: ProviderContext | None, descriptor: Any) -> DirectoryDescriptor:
    """Check *descriptor* against the directory schema.

    The context is accepted for a uniform signature and ignored.

    Args:
        context: Unused.
        descriptor: A mapping with a string ``path`` and optional ``id``.

    Returns:
        The validated descriptor.

    Raises:
        ResourceValidationError: Listing every violation, not just the first.
    """
    try:
        return DirectoryDescriptor.model_validate(descriptor)
    except PydanticValidationError as exc:
        violations = [
            f"{'.'.join(str(part) for part in error['loc']) or 'descriptor'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ResourceValidationError(RESOURCE_NAME.lower(), violations) from exc


def read(context: ProviderContext, descriptor: DescriptorInput) -> DirectoryResource | None:
    """Return the resource if the directory exists, else ``None``."""
    key = _coerce(descriptor).key
    if not _full_path(context, key).is_dir():
        return None
    return DirectoryResource(id=key, path=key, message=_message(key))


def create(context: ProviderContext, descriptor: DescriptorInput) -> DirectoryResource | None:
    """Create the directory (and parents); an existing directory is fine.

    Raises:
        ResourceValidationError: If the descriptor is malformed.
        OSError: If the directory cannot be created.
    """
    resource = _coerce(descriptor)
    full_path = _full_path(context, resource.path)
    full_path.mkdir(parents=True, exist_ok=True)
    logger.info("Ensured directory %s", full_path)
    return read(context, resource.path)


def update(context: ProviderContext, descriptor: DescriptorInput) -> DirectoryResource | None:
    """Ensure the directory named by the descriptor's ``id`` exists.

    Moving a directory when its path changes is not supported.
    """
    resource = _coerce(descriptor)
    full_path = _full_path(context, resource.key)
    full_path.mkdir(parents=True, exist_ok=True)
    logger.info("Ensured directory %s", full_path)
    return read(context, resource.key)


def destroy(context: ProviderContext, descriptor: DescriptorInput) -> DirectoryResource:
    """Remove the (empty) directory.

    Raises:
        OSError: If the directory is missing or not empty.
    """
    resource = _coerce(descriptor)
    full_path = _full_path(context, resource.key)
    full_path.rmdir()
    logger.info("Removed directory %s", full_path)
    return DirectoryResource(id=resource.key, path=resource.path, message=_message(resource.path))


def plan(context: ProviderContext, descriptor: DescriptorInput) -> ResourcePlan:
    """Describe what ``create`` would do, alongside the current state."""
    resource = _coerce(descriptor)
    return ResourcePlan(
        id=resource.key,
        name=RESOURCE_NAME,
        current_state=read(context, resource),
        describe=f'Create directory "{resource.path}"',
    )
