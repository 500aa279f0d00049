"""Azure Resource Manager gateway implementing IResourceTagGateway.

Built on azure-mgmt-resource's ResourceManagementClient, one client per
subscription:

- Resource groups are described via resource_groups.get(name).
- Typed resources are described via resources.get_by_id() using the newest
  stable API version the resource provider advertises (looked up once per
  namespace with providers.get() and cached for the lifetime of the gateway).
- Tags for either kind are read with tags.get_at_scope() and written with
  tags.update_at_scope() and a TagsPatchResource of operation "Merge", which
  upserts only the keys sent and leaves all others in place.

azure-core failures never leave this module. Each one, including credential
errors raised while the SDK fetches a token, is translated into a
GatewayError subclass carrying the status code and a retry verdict.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from azure.core.credentials import TokenCredential
from azure.core.exceptions import (
    AzureError,
    DecodeError,
    DeserializationError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.core.exceptions import ResourceNotFoundError as AzureResourceNotFoundError
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import Tags, TagsPatchResource

from provenance_tagger.core.errors import (
    GatewayError,
    ResourceNotFoundError,
    TagWriteError,
    TransientGatewayError,
)
from provenance_tagger.core.models import (
    RESOURCE_GROUP_TYPE,
    ResourceDescriptor,
    ResourceKind,
    TagSet,
)
from provenance_tagger.observability import get_logger

logger = get_logger(__name__)

_DEFAULT_ARM_ENDPOINT = "https://management.azure.com"
_DEFAULT_ARM_SCOPE = "https://management.azure.com/.default"
_DEFAULT_TIMEOUT_SECONDS = 30.0
_DEFAULT_RETRY_TOTAL = 3

_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Failures surfaced by the SDK pipeline: azure-core errors plus body decoding
_SDK_ERRORS = (AzureError, DeserializationError)

ClientFactory = Callable[[str], ResourceManagementClient]


def _segments(resource_id: str) -> list[str]:
    return [segment for segment in resource_id.strip("/").split("/") if segment]


def is_resource_group_id(resource_id: str) -> bool:
    """Return True for /subscriptions/{sub}/resourceGroups/{rg} ids.

    Args:
        resource_id: ARM URI.

    Returns:
        True when the id names a resource group rather than a typed resource.
    """
    segments = _segments(resource_id)
    return (
        len(segments) == 4
        and segments[0].lower() == "subscriptions"
        and segments[2].lower() == "resourcegroups"
    )


def parse_resource_type(resource_id: str) -> tuple[str, str] | None:
    """Split a typed resource id into provider namespace and type path.

    /subscriptions/s/resourceGroups/rg/providers/Microsoft.Sql/servers/a/databases/b
    yields ("Microsoft.Sql", "servers/databases"). Extension resources use the
    segment after the last /providers/.

    Args:
        resource_id: ARM URI of a typed resource.

    Returns:
        (namespace, type path), or None when the id has no provider segment.
    """
    marker = "/providers/"
    index = resource_id.lower().rfind(marker)
    if index < 0:
        return None
    segments = [s for s in resource_id[index + len(marker):].split("/") if s]
    if len(segments) < 3:
        return None
    namespace = segments[0]
    type_path = "/".join(segments[1::2])
    return namespace, type_path


def subscription_of(resource_id: str) -> str | None:
    segments = _segments(resource_id)
    if len(segments) >= 2 and segments[0].lower() == "subscriptions":
        return segments[1]
    return None


def _pick_api_version(versions: list[str]) -> str | None:
    # ARM api versions are YYYY-MM-DD[-preview], so string order is date order
    stable = [v for v in versions if "preview" not in v.lower()]
    candidates = stable or versions
    return max(candidates) if candidates else None


def classify_failure(exc: Exception) -> tuple[int | None, bool]:
    """Derive the status code and retry verdict for an SDK failure.

    Network errors and undecodable bodies are retryable. HTTP errors are
    retryable for throttling and server-side status codes. Credential errors
    carry no status and are not retryable.

    Args:
        exc: Exception raised by the SDK client or its credential.

    Returns:
        (status_code, retryable)
    """
    if isinstance(exc, (DecodeError, DeserializationError)):
        return None, True
    if isinstance(exc, (ServiceRequestError, ServiceResponseError)):
        return None, True
    if isinstance(exc, HttpResponseError):
        status_code = exc.status_code
        return status_code, status_code in _RETRYABLE_STATUS_CODES
    return None, False


class ArmTagGateway:
    """Synchronous ARM gateway for resource lookup and tag merges.

    Args:
        credential: azure-core token credential (DefaultAzureCredential in production).
        endpoint: ARM base URL.
        scope: OAuth scope requested for the bearer token.
        timeout_seconds: Connection and read timeout for each request.
        retry_total: Retry budget of the SDK pipeline before a failure surfaces.
        client_factory: Builds the ResourceManagementClient for a subscription id.
            Defaults to a client configured from the arguments above.
    """

    def __init__(
        self,
        credential: TokenCredential,
        endpoint: str = _DEFAULT_ARM_ENDPOINT,
        scope: str = _DEFAULT_ARM_SCOPE,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        retry_total: int = _DEFAULT_RETRY_TOTAL,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._credential = credential
        self._endpoint = endpoint.rstrip("/")
        self._scope = scope
        self._timeout_seconds = timeout_seconds
        self._retry_total = retry_total
        self._client_factory = client_factory or self._build_client
        self._clients: dict[str, ResourceManagementClient] = {}
        self._clients_lock = threading.Lock()
        self._api_versions: dict[tuple[str, str], str] = {}

    def close(self) -> None:
        with self._clients_lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()

    def __enter__(self) -> ArmTagGateway:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # IResourceTagGateway
    # ------------------------------------------------------------------

    def describe(self, resource_id: str) -> ResourceDescriptor:
        """Resolve a resource's type from ARM.

        Args:
            resource_id: ARM URI of the resource.

        Returns:
            ResourceDescriptor normalized across resource groups and typed resources.

        Raises:
            ResourceNotFoundError: If ARM reports the resource (or its type) as missing.
            TransientGatewayError: On network, throttling, or server failures.
            GatewayError: On authentication or other client-side failures.
        """
        client = self._client_for(resource_id)
        if client is None:
            raise ResourceNotFoundError(f"Cannot derive a subscription from {resource_id}")

        if is_resource_group_id(resource_id):
            group_name = _segments(resource_id)[3]
            try:
                group = client.resource_groups.get(group_name)
            except AzureResourceNotFoundError as exc:
                raise ResourceNotFoundError(
                    f"Resource group {resource_id} not found", 404
                ) from exc
            except _SDK_ERRORS as exc:
                raise self._read_error(resource_id, "resource group lookup", exc) from exc
            return ResourceDescriptor(
                resource_id=group.id or resource_id,
                resource_type=RESOURCE_GROUP_TYPE,
                kind=ResourceKind.RESOURCE_GROUP,
            )

        api_version = self._resolve_api_version(client, resource_id)
        try:
            resource = client.resources.get_by_id(resource_id, api_version)
        except AzureResourceNotFoundError as exc:
            raise ResourceNotFoundError(f"Resource {resource_id} not found", 404) from exc
        except _SDK_ERRORS as exc:
            raise self._read_error(resource_id, "resource lookup", exc) from exc

        resource_type = resource.type
        if not resource_type:
            parsed = parse_resource_type(resource_id)
            resource_type = f"{parsed[0]}/{parsed[1]}" if parsed else ""
        return ResourceDescriptor(
            resource_id=resource.id or resource_id,
            resource_type=resource_type,
            kind=ResourceKind.RESOURCE,
        )

    def get_tags(self, resource_id: str) -> TagSet:
        """Read the full tag set at the resource's scope.

        Args:
            resource_id: ARM URI of the resource.

        Returns:
            Tag mapping; empty when the resource has no tags.

        Raises:
            TransientGatewayError: On network, throttling, or server failures.
            GatewayError: On authentication or other client-side failures.
        """
        client = self._client_for(resource_id)
        if client is None:
            raise GatewayError(f"Cannot derive a subscription from {resource_id}")

        try:
            tags_resource = client.tags.get_at_scope(resource_id)
        except AzureResourceNotFoundError:
            return {}
        except _SDK_ERRORS as exc:
            raise self._read_error(resource_id, "tag read", exc) from exc

        properties = tags_resource.properties
        tags = (properties.tags if properties is not None else None) or {}
        return {str(key): str(value) for key, value in tags.items()}

    def merge_tags(self, resource_id: str, patch: TagSet) -> None:
        """Merge the patch into the resource's tags.

        Args:
            resource_id: ARM URI of the resource.
            patch: Tags to upsert.

        Raises:
            TagWriteError: If ARM rejects the write, cannot be reached, or the
                credential cannot produce a token.
        """
        if not patch:
            return

        client = self._client_for(resource_id)
        if client is None:
            raise TagWriteError(
                f"Cannot derive a subscription from {resource_id}", retryable=False
            )

        logger.debug("Merging tags via ARM", resource_id=resource_id, tag_keys=sorted(patch))
        try:
            client.tags.update_at_scope(
                resource_id,
                TagsPatchResource(operation="Merge", properties=Tags(tags=dict(patch))),
            )
        except _SDK_ERRORS as exc:
            status_code, retryable = classify_failure(exc)
            logger.error(
                "ARM tag merge failed",
                resource_id=resource_id,
                status_code=status_code,
                retryable=retryable,
                error_type=type(exc).__name__,
                error=str(exc)[:500],
            )
            raise TagWriteError(
                f"Tag merge failed for {resource_id}: {exc}",
                status_code=status_code,
                retryable=retryable,
            ) from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_client(self, subscription_id: str) -> ResourceManagementClient:
        return ResourceManagementClient(
            self._credential,
            subscription_id,
            base_url=self._endpoint,
            credential_scopes=[self._scope],
            connection_timeout=self._timeout_seconds,
            read_timeout=self._timeout_seconds,
            retry_total=self._retry_total,
        )

    def _client_for(self, resource_id: str) -> ResourceManagementClient | None:
        subscription_id = subscription_of(resource_id)
        if subscription_id is None:
            return None
        key = subscription_id.lower()
        with self._clients_lock:
            client = self._clients.get(key)
            if client is None:
                client = self._client_factory(subscription_id)
                self._clients[key] = client
        return client

    def _read_error(self, resource_id: str, action: str, exc: Exception) -> GatewayError:
        status_code, retryable = classify_failure(exc)
        if retryable:
            logger.warning(
                "ARM read failed transiently",
                action=action,
                resource_id=resource_id,
                status_code=status_code,
                error_type=type(exc).__name__,
            )
            return TransientGatewayError(
                f"ARM {action} failed for {resource_id}: {exc}",
                status_code=status_code,
            )
        logger.error(
            "ARM read failed",
            action=action,
            resource_id=resource_id,
            status_code=status_code,
            error_type=type(exc).__name__,
            error=str(exc)[:500],
        )
        return GatewayError(f"ARM {action} failed for {resource_id}: {exc}", status_code=status_code)

    def _resolve_api_version(self, client: ResourceManagementClient, resource_id: str) -> str:
        parsed = parse_resource_type(resource_id)
        if parsed is None:
            raise ResourceNotFoundError(f"Cannot derive a resource type from {resource_id}")

        namespace, type_path = parsed
        key = (namespace.lower(), type_path.lower())
        cached = self._api_versions.get(key)
        if cached is not None:
            return cached

        try:
            provider = client.providers.get(namespace)
        except AzureResourceNotFoundError as exc:
            raise ResourceNotFoundError(f"Resource provider {namespace} not found", 404) from exc
        except _SDK_ERRORS as exc:
            raise self._read_error(resource_id, "provider lookup", exc) from exc

        for entry in provider.resource_types or []:
            version = _pick_api_version(list(entry.api_versions or []))
            if entry.resource_type and version is not None:
                self._api_versions[(namespace.lower(), entry.resource_type.lower())] = version

        resolved = self._api_versions.get(key)
        if resolved is None:
            raise ResourceNotFoundError(
                f"Resource provider {namespace} does not expose type {type_path}"
            )
        return resolved
