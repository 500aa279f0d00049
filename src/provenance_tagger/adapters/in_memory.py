"""In-memory IResourceTagGateway for local runs and tests.

Holds resources in a dict keyed by lower-cased resource id (ARM ids are
case-insensitive) and applies the same merge semantics as the ARM tags API.
Every committed patch is recorded in `writes` for inspection.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from provenance_tagger.core.errors import ResourceNotFoundError
from provenance_tagger.core.models import (
    RESOURCE_GROUP_TYPE,
    ResourceDescriptor,
    ResourceKind,
    TagSet,
)
from provenance_tagger.core.reconciler import apply_patch


@dataclass
class _StoredResource:
    descriptor: ResourceDescriptor
    tags: TagSet = field(default_factory=dict)


class InMemoryTagGateway:
    """Dict-backed tag store.

    Attributes:
        writes: (resource_id, patch) pairs in commit order.
    """

    def __init__(self) -> None:
        self._resources: dict[str, _StoredResource] = {}
        self.writes: list[tuple[str, TagSet]] = []

    def add_resource(
        self,
        resource_id: str,
        resource_type: str,
        tags: TagSet | None = None,
    ) -> ResourceDescriptor:
        """Register a typed resource.

        Args:
            resource_id: ARM URI of the resource.
            resource_type: Provider type, e.g. Microsoft.Storage/storageAccounts.
            tags: Initial tags.

        Returns:
            The stored descriptor.
        """
        descriptor = ResourceDescriptor(
            resource_id=resource_id,
            resource_type=resource_type,
            kind=ResourceKind.RESOURCE,
        )
        self._resources[resource_id.lower()] = _StoredResource(descriptor, dict(tags or {}))
        return descriptor

    def add_resource_group(self, resource_id: str, tags: TagSet | None = None) -> ResourceDescriptor:
        descriptor = ResourceDescriptor(
            resource_id=resource_id,
            resource_type=RESOURCE_GROUP_TYPE,
            kind=ResourceKind.RESOURCE_GROUP,
        )
        self._resources[resource_id.lower()] = _StoredResource(descriptor, dict(tags or {}))
        return descriptor

    def tags_of(self, resource_id: str) -> TagSet:
        return dict(self._lookup(resource_id).tags)

    def describe(self, resource_id: str) -> ResourceDescriptor:
        return self._lookup(resource_id).descriptor

    def get_tags(self, resource_id: str) -> TagSet:
        return dict(self._lookup(resource_id).tags)

    def merge_tags(self, resource_id: str, patch: TagSet) -> None:
        stored = self._lookup(resource_id)
        stored.tags = apply_patch(stored.tags, patch)
        self.writes.append((resource_id, dict(patch)))

    def _lookup(self, resource_id: str) -> _StoredResource:
        stored = self._resources.get(resource_id.lower())
        if stored is None:
            raise ResourceNotFoundError(f"Resource {resource_id} not found", status_code=404)
        return stored
