"""Tests for actor identity resolution precedence."""

import pytest

from provenance_tagger.core.identity import UNKNOWN_ACTOR, resolve_actor
from provenance_tagger.core.models import Claims, PrincipalType


def test_name_wins_over_email_and_app_id() -> None:
    claims = Claims(name="A", email="B", app_id="C")
    assert resolve_actor(claims, PrincipalType.SERVICE_PRINCIPAL) == "A"


def test_email_used_when_name_absent() -> None:
    claims = Claims(email="B", app_id="C")
    assert resolve_actor(claims, PrincipalType.SERVICE_PRINCIPAL) == "B"


def test_email_used_when_name_empty() -> None:
    assert resolve_actor(Claims(name="", email="B"), PrincipalType.USER) == "B"


@pytest.mark.parametrize(
    "principal_type",
    [PrincipalType.SERVICE_PRINCIPAL, PrincipalType.MANAGED_IDENTITY],
)
def test_workload_identity_falls_back_to_app_id(principal_type: PrincipalType) -> None:
    assert resolve_actor(Claims(app_id="C"), principal_type) == "Service Principal ID C"


def test_workload_identity_without_app_id_yields_bare_prefix() -> None:
    assert resolve_actor(Claims(), PrincipalType.SERVICE_PRINCIPAL) == "Service Principal ID "
    assert resolve_actor(Claims(app_id=""), PrincipalType.MANAGED_IDENTITY) == "Service Principal ID "


def test_user_without_name_or_email_is_unknown() -> None:
    assert resolve_actor(Claims(), PrincipalType.USER) == UNKNOWN_ACTOR == "Unknown"


def test_user_app_id_is_ignored() -> None:
    assert resolve_actor(Claims(app_id="C", email=""), PrincipalType.USER) == "Unknown"


def test_unknown_principal_without_claims_is_unknown() -> None:
    assert resolve_actor(Claims(app_id="C"), PrincipalType.OTHER) == "Unknown"
