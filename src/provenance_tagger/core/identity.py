"""Actor identity resolution.

One precedence rule serves both the Creator tag (written once) and the
LastModifiedBy tag (written on every event):

1. claims.name
2. claims.email
3. "Service Principal ID <appid>" for service principals and managed identities
4. "Unknown"
"""

from provenance_tagger.core.models import Claims, PrincipalType

UNKNOWN_ACTOR = "Unknown"
SERVICE_PRINCIPAL_PREFIX = "Service Principal ID "

_WORKLOAD_PRINCIPALS = (PrincipalType.SERVICE_PRINCIPAL, PrincipalType.MANAGED_IDENTITY)


def resolve_actor(claims: Claims, principal_type: PrincipalType) -> str:
    """Derive a single readable actor string from identity claims.

    Total: always returns a value, never raises. Empty strings count as absent
    for name and email. An absent or empty appid still yields the service
    principal form with nothing after the prefix.

    Args:
        claims: Caller identity claims from the event.
        principal_type: Caller principal classification.

    Returns:
        The actor identity to record in provenance tags.
    """
    if claims.name:
        return claims.name
    if claims.email:
        return claims.email
    if principal_type in _WORKLOAD_PRINCIPALS:
        return SERVICE_PRINCIPAL_PREFIX + (claims.app_id or "")
    return UNKNOWN_ACTOR
