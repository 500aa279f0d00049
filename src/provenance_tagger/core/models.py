"""Domain models for the provenance tagger.

All models are immutable. Event fields are explicit and optional rather than
looked up dynamically from the raw payload, so an absent claim (None) stays
distinguishable from an empty one ("").

Tag vocabulary:
- Immutable keys: Creator, DateCreated, TimeCreatedInPST - written once.
- Mutable keys: LastModifiedBy, LastModifiedDate - rewritten on every
  qualifying event.
Any other key on a resource is foreign and never touched.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

TagSet = dict[str, str]

CREATOR_TAG = "Creator"
DATE_CREATED_TAG = "DateCreated"
TIME_CREATED_TAG = "TimeCreatedInPST"
LAST_MODIFIED_BY_TAG = "LastModifiedBy"
LAST_MODIFIED_DATE_TAG = "LastModifiedDate"

IMMUTABLE_TAG_KEYS: tuple[str, ...] = (CREATOR_TAG, DATE_CREATED_TAG, TIME_CREATED_TAG)
MUTABLE_TAG_KEYS: tuple[str, ...] = (LAST_MODIFIED_BY_TAG, LAST_MODIFIED_DATE_TAG)
PROVENANCE_TAG_KEYS: tuple[str, ...] = IMMUTABLE_TAG_KEYS + MUTABLE_TAG_KEYS

RESOURCE_GROUP_TYPE = "Microsoft.Resources/resourceGroups"


class PrincipalType(str, Enum):
    """Kind of identity that performed the audited operation."""

    USER = "User"
    SERVICE_PRINCIPAL = "ServicePrincipal"
    MANAGED_IDENTITY = "ManagedIdentity"
    OTHER = "Other"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> PrincipalType:
        """Map a raw principalType string onto the enum.

        Args:
            value: The raw value from authorization.evidence.principalType.

        Returns:
            The matching member, UNKNOWN when absent, OTHER when unrecognized.
        """
        if value is None:
            return cls.UNKNOWN
        for member in (cls.USER, cls.SERVICE_PRINCIPAL, cls.MANAGED_IDENTITY):
            if member.value == value:
                return member
        return cls.OTHER


class ResourceKind(str, Enum):
    """Control-plane lookup family for a resource."""

    RESOURCE_GROUP = "resource_group"
    RESOURCE = "resource"


class ClaimState(str, Enum):
    """Whether a resource already carries provenance from a previous event."""

    UNCLAIMED = "new"
    CLAIMED = "existing"


class TaggingStatus(str, Enum):
    TAGGED = "tagged"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    """Why an event ended without a tag write."""

    SELF_EVENT = "self_event"
    MISSING_IP_ADDRESS = "missing_ip_address"
    EXCLUDED_OPERATION = "excluded_operation"
    IGNORED_RESOURCE = "ignored_resource"
    UNSUPPORTED_PRINCIPAL = "unsupported_principal"
    UNSUPPORTED_RESOURCE_TYPE = "unsupported_resource_type"
    RESOURCE_NOT_FOUND = "resource_not_found"
    MALFORMED_EVENT = "malformed_event"


class Claims(BaseModel):
    """Identity claims attached to an audited operation.

    Attributes:
        name: Display name of the caller.
        app_id: Application (client) ID for service principals and managed identities.
        email: Email address claim.
        ip_address: Caller IP address. Missing for platform-internal operations.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    app_id: str | None = None
    email: str | None = None
    ip_address: str | None = None


class ChangeEvent(BaseModel):
    """A single resource change notification, consumed once.

    Attributes:
        resource_id: ARM URI of the changed resource.
        subject: Event subject. Equals resource_id for the tag write's own event.
        operation_name: ARM operation, e.g. Microsoft.Compute/virtualMachines/write.
        claims: Caller identity claims.
        principal_type: Caller principal classification.
        event_id: Delivery identifier, for logging only.
        event_type: Event Grid event type, for logging only.
        event_time: Time the event was raised, for logging only.
    """

    model_config = ConfigDict(frozen=True)

    resource_id: str
    subject: str | None = None
    operation_name: str | None = None
    claims: Claims = Field(default_factory=Claims)
    principal_type: PrincipalType = PrincipalType.UNKNOWN
    event_id: str | None = None
    event_type: str | None = None
    event_time: datetime | None = None


class ResourceDescriptor(BaseModel):
    """Normalized control-plane description of a resource."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    resource_type: str
    kind: ResourceKind = ResourceKind.RESOURCE


class ReconcileOutcome(BaseModel):
    """Merge patch computed for one event plus the state it was computed from."""

    model_config = ConfigDict(frozen=True)

    state: ClaimState
    patch: TagSet


class TaggingResult(BaseModel):
    """Outcome of handling one event.

    Attributes:
        status: TAGGED when a merge was committed, SKIPPED otherwise.
        resource_id: Target resource, when known.
        skip_reason: Populated for SKIPPED results.
        state: Claim state observed before the write, for TAGGED results.
        patch: The committed merge patch, for TAGGED results.
        actor: Resolved actor identity, for TAGGED results.
    """

    model_config = ConfigDict(frozen=True)

    status: TaggingStatus
    resource_id: str | None = None
    skip_reason: SkipReason | None = None
    state: ClaimState | None = None
    patch: TagSet = Field(default_factory=dict)
    actor: str | None = None

    @classmethod
    def skipped(cls, reason: SkipReason, resource_id: str | None = None) -> TaggingResult:
        return cls(status=TaggingStatus.SKIPPED, resource_id=resource_id, skip_reason=reason)
