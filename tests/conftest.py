"""Test fixtures for provenance-tagger.

Provides:
- fixed_now: A deterministic invocation timestamp (3/1/2024, 09:30AM Pacific)
- vm_id / rg_id: Resource ids for a typed resource and a resource group
- in_memory_gateway: InMemoryTagGateway seeded with both resources
- mock_gateway: A MagicMock gateway for call assertions
- make_payload(): Raw Event Grid payload builder
- make_event(): ChangeEvent builder that passes every admission check
"""

from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from provenance_tagger.adapters.in_memory import InMemoryTagGateway
from provenance_tagger.core.events import EMAIL_CLAIM
from provenance_tagger.core.models import (
    ChangeEvent,
    Claims,
    PrincipalType,
    ResourceDescriptor,
    ResourceKind,
)

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
RG_ID = f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-app"
VM_ID = f"{RG_ID}/providers/Microsoft.Compute/virtualMachines/vm-01"
VM_TYPE = "Microsoft.Compute/virtualMachines"

_UNSET: Any = object()


def make_payload(
    resource_uri: str = VM_ID,
    subject: str | None = _UNSET,
    operation_name: str = "Microsoft.Compute/virtualMachines/write",
    name: str | None = "alice@contoso.com",
    appid: str | None = None,
    email: str | None = None,
    ipaddr: str | None = "10.0.0.4",
    principal_type: str | None = "User",
) -> dict[str, Any]:
    """Build a raw Event Grid ResourceWriteSuccess payload.

    Claims passed as None are omitted from the payload entirely.
    """
    claims: dict[str, Any] = {}
    if name is not None:
        claims["name"] = name
    if appid is not None:
        claims["appid"] = appid
    if email is not None:
        claims[EMAIL_CLAIM] = email
    if ipaddr is not None:
        claims["ipaddr"] = ipaddr

    data: dict[str, Any] = {
        "resourceUri": resource_uri,
        "operationName": operation_name,
        "claims": claims,
    }
    if principal_type is not None:
        data["authorization"] = {"evidence": {"principalType": principal_type}}

    return {
        "id": "evt-0001",
        "eventType": "Microsoft.Resources.ResourceWriteSuccess",
        "eventTime": "2024-03-01T17:30:00Z",
        "subject": f"{resource_uri}/operations/op-1" if subject is _UNSET else subject,
        "data": data,
    }


def make_event(
    resource_id: str = VM_ID,
    subject: str | None = _UNSET,
    operation_name: str | None = "Microsoft.Compute/virtualMachines/write",
    name: str | None = "alice@contoso.com",
    app_id: str | None = None,
    email: str | None = None,
    ip_address: str | None = "10.0.0.4",
    principal_type: PrincipalType = PrincipalType.USER,
) -> ChangeEvent:
    """Build a ChangeEvent that passes every admission check by default."""
    return ChangeEvent(
        resource_id=resource_id,
        subject=f"{resource_id}/operations/op-1" if subject is _UNSET else subject,
        operation_name=operation_name,
        claims=Claims(name=name, app_id=app_id, email=email, ip_address=ip_address),
        principal_type=principal_type,
        event_id="evt-0001",
    )


@pytest.fixture()
def fixed_now() -> datetime:
    """Return 2024-03-01 17:30 UTC, which is 09:30AM Pacific Standard Time."""
    return datetime(2024, 3, 1, 17, 30, tzinfo=UTC)


@pytest.fixture()
def vm_id() -> str:
    return VM_ID


@pytest.fixture()
def rg_id() -> str:
    return RG_ID


@pytest.fixture()
def in_memory_gateway() -> InMemoryTagGateway:
    """Create an InMemoryTagGateway holding an untagged VM and resource group."""
    gateway = InMemoryTagGateway()
    gateway.add_resource_group(RG_ID)
    gateway.add_resource(VM_ID, VM_TYPE)
    return gateway


@pytest.fixture()
def mock_gateway() -> MagicMock:
    """Create a mock gateway describing VM_ID as an untagged virtual machine."""
    gateway = MagicMock()
    gateway.describe.return_value = ResourceDescriptor(
        resource_id=VM_ID,
        resource_type=VM_TYPE,
        kind=ResourceKind.RESOURCE,
    )
    gateway.get_tags.return_value = {}
    gateway.merge_tags.return_value = None
    return gateway
