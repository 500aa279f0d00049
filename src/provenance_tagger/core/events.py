"""Parsing of raw resource-change payloads into ChangeEvent.

Accepts the Event Grid schema and the CloudEvents schema used by Azure
Resource Manager system topics. Only the fields the tagger needs are read:

    {
      "subject": "...",
      "data": {
        "resourceUri": "...",
        "operationName": "...",
        "claims": {"name": ..., "appid": ..., "ipaddr": ..., EMAIL_CLAIM: ...},
        "authorization": {"evidence": {"principalType": "..."}}
      }
    }

A missing resourceUri or claims mapping raises MalformedEventError, which the
service turns into a skip.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from provenance_tagger.core.errors import MalformedEventError
from provenance_tagger.core.models import ChangeEvent, Claims, PrincipalType

EMAIL_CLAIM = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"


def _optional_str(source: Mapping[str, Any], key: str) -> str | None:
    value = source.get(key)
    return value if isinstance(value, str) else None


def _parse_time(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_claims(raw: Mapping[str, Any]) -> Claims:
    """Map the raw claims dict onto Claims, keeping absent distinct from empty.

    Args:
        raw: The data.claims object from the payload.

    Returns:
        Claims with None for every claim the payload does not carry.
    """
    return Claims(
        name=_optional_str(raw, "name"),
        app_id=_optional_str(raw, "appid"),
        email=_optional_str(raw, EMAIL_CLAIM),
        ip_address=_optional_str(raw, "ipaddr"),
    )


def _principal_type(data: Mapping[str, Any]) -> PrincipalType:
    authorization = data.get("authorization")
    if not isinstance(authorization, Mapping):
        return PrincipalType.UNKNOWN
    evidence = authorization.get("evidence")
    if not isinstance(evidence, Mapping):
        return PrincipalType.UNKNOWN
    return PrincipalType.parse(_optional_str(evidence, "principalType"))


def parse_change_event(payload: Mapping[str, Any]) -> ChangeEvent:
    """Build a ChangeEvent from one raw event payload.

    Args:
        payload: A single Event Grid or CloudEvents event object.

    Returns:
        The parsed, immutable ChangeEvent.

    Raises:
        MalformedEventError: If data, data.resourceUri or data.claims is
            missing or has the wrong shape.
    """
    if not isinstance(payload, Mapping):
        raise MalformedEventError("Event payload is not an object")

    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise MalformedEventError("Event payload has no data object", field="data")

    resource_id = _optional_str(data, "resourceUri")
    if not resource_id:
        raise MalformedEventError("Event data has no resourceUri", field="data.resourceUri")

    raw_claims = data.get("claims")
    if not isinstance(raw_claims, Mapping):
        raise MalformedEventError("Event data has no claims object", field="data.claims")

    return ChangeEvent(
        resource_id=resource_id,
        subject=_optional_str(payload, "subject"),
        operation_name=_optional_str(data, "operationName"),
        claims=parse_claims(raw_claims),
        principal_type=_principal_type(data),
        event_id=_optional_str(payload, "id"),
        event_type=_optional_str(payload, "eventType") or _optional_str(payload, "type"),
        event_time=_parse_time(payload.get("eventTime") or payload.get("time")),
    )
