"""Abstract interfaces (Protocol classes) for the provenance tagger.

The service layer depends on these protocols, never on concrete adapters, so
tests can substitute mocks or the in-memory gateway.

Protocols defined:
- IResourceTagGateway
"""

from typing import Protocol

from provenance_tagger.core.models import ResourceDescriptor, TagSet


class IResourceTagGateway(Protocol):
    """Control-plane contract for resource lookup and tag writes.

    Resource groups and typed resources may be looked up differently by an
    implementation, but both must come back as ResourceDescriptor / TagSet.
    """

    def describe(self, resource_id: str) -> ResourceDescriptor:
        """Resolve a resource's type.

        Args:
            resource_id: ARM URI of the resource.

        Returns:
            The normalized ResourceDescriptor.

        Raises:
            ResourceNotFoundError: If the resource cannot be located.
            TransientGatewayError: On network, throttling, or server failures.
        """
        ...

    def get_tags(self, resource_id: str) -> TagSet:
        """Fetch the resource's full current tag set.

        Args:
            resource_id: ARM URI of the resource.

        Returns:
            Mapping of tag key to value. Empty when the resource has no tags.

        Raises:
            TransientGatewayError: On network, throttling, or server failures.
        """
        ...

    def merge_tags(self, resource_id: str, patch: TagSet) -> None:
        """Upsert the keys in patch, leaving every other tag untouched.

        Args:
            resource_id: ARM URI of the resource.
            patch: Tags to upsert.

        Raises:
            TagWriteError: If the merge could not be committed.
        """
        ...
