"""Tests for EventFilter admission rules.

Each of the six checks is exercised in isolation (every other field valid)
and in combination, where the first failing check in order must win.

Run with: pytest tests/test_event_filter.py -v
"""

import pytest

from provenance_tagger.core.event_filter import (
    DEFAULT_INCLUDED_RESOURCE_TYPES,
    EventFilter,
    FilterConfig,
)
from provenance_tagger.core.models import RESOURCE_GROUP_TYPE, PrincipalType, SkipReason
from tests.conftest import RG_ID, VM_ID, VM_TYPE, make_event


@pytest.fixture()
def event_filter() -> EventFilter:
    return EventFilter()


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------


def test_valid_event_is_accepted(event_filter: EventFilter) -> None:
    decision = event_filter.evaluate(make_event(), VM_TYPE)
    assert decision.accepted is True
    assert decision.reason is None
    assert event_filter.should_process(make_event(), VM_TYPE) is True


def test_default_allow_list_includes_resource_groups() -> None:
    assert RESOURCE_GROUP_TYPE in DEFAULT_INCLUDED_RESOURCE_TYPES
    assert len(DEFAULT_INCLUDED_RESOURCE_TYPES) >= 30


# ---------------------------------------------------------------------------
# Check 1: self events
# ---------------------------------------------------------------------------


def test_self_event_is_rejected(event_filter: EventFilter) -> None:
    event = make_event(subject=VM_ID)
    decision = event_filter.evaluate(event, VM_TYPE)
    assert decision.accepted is False
    assert decision.reason is SkipReason.SELF_EVENT


def test_absent_subject_is_not_a_self_event(event_filter: EventFilter) -> None:
    assert event_filter.should_process(make_event(subject=None), VM_TYPE) is True


# ---------------------------------------------------------------------------
# Check 2: caller IP address
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("ip_address", [None, ""])
def test_missing_or_empty_ip_address_is_rejected(
    event_filter: EventFilter,
    ip_address: str | None,
) -> None:
    decision = event_filter.evaluate(make_event(ip_address=ip_address), VM_TYPE)
    assert decision.reason is SkipReason.MISSING_IP_ADDRESS


# ---------------------------------------------------------------------------
# Check 3: excluded operations
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "operation_name",
    [
        "Microsoft.Resources/tags/write",
        "Microsoft.EventGrid/eventSubscriptions/write",
        "Microsoft.Compute/virtualMachines/installPatches/action",
        "Microsoft.PolicyInsights/policyStates/write",
    ],
)
def test_excluded_operation_is_rejected(event_filter: EventFilter, operation_name: str) -> None:
    decision = event_filter.evaluate(make_event(operation_name=operation_name), VM_TYPE)
    assert decision.reason is SkipReason.EXCLUDED_OPERATION


def test_backup_operation_matches_prefix_wildcard(event_filter: EventFilter) -> None:
    event = make_event(
        operation_name=(
            "Microsoft.RecoveryServices/vaults/backupFabrics/protectionContainers"
            "/protectedItems/write"
        )
    )
    assert event_filter.evaluate(event, VM_TYPE).reason is SkipReason.EXCLUDED_OPERATION


def test_excluded_operation_match_is_exact(event_filter: EventFilter) -> None:
    # A longer operation sharing an exact entry's prefix is not excluded
    event = make_event(operation_name="Microsoft.Resources/tags/write/extra")
    assert event_filter.should_process(event, VM_TYPE) is True


def test_absent_operation_name_is_not_excluded(event_filter: EventFilter) -> None:
    assert event_filter.should_process(make_event(operation_name=None), VM_TYPE) is True


# ---------------------------------------------------------------------------
# Check 4: ignored resources
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "resource_id",
    [
        f"{RG_ID}/providers/Microsoft.Resources/deployments/deploy-1",
        f"{VM_ID}/providers/Microsoft.Resources/tags/default",
        f"{RG_ID}/providers/Microsoft.Network/frontDoors/fd-1",
        f"{RG_ID}/providers/microsoft.network/frontdoors/fd-2",
    ],
)
def test_ignored_resource_is_rejected(event_filter: EventFilter, resource_id: str) -> None:
    decision = event_filter.evaluate(make_event(resource_id=resource_id), VM_TYPE)
    assert decision.reason is SkipReason.IGNORED_RESOURCE


# ---------------------------------------------------------------------------
# Check 5: principal type
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "principal_type",
    [PrincipalType.USER, PrincipalType.SERVICE_PRINCIPAL, PrincipalType.MANAGED_IDENTITY],
)
def test_supported_principal_types_are_accepted(
    event_filter: EventFilter,
    principal_type: PrincipalType,
) -> None:
    assert event_filter.should_process(make_event(principal_type=principal_type), VM_TYPE) is True


@pytest.mark.parametrize("principal_type", [PrincipalType.OTHER, PrincipalType.UNKNOWN])
def test_unsupported_principal_type_is_rejected(
    event_filter: EventFilter,
    principal_type: PrincipalType,
) -> None:
    decision = event_filter.evaluate(make_event(principal_type=principal_type), VM_TYPE)
    assert decision.reason is SkipReason.UNSUPPORTED_PRINCIPAL


# ---------------------------------------------------------------------------
# Check 6: resource type allow-list
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("resource_type", [None, "", "Microsoft.Web/staticSites"])
def test_unlisted_resource_type_is_rejected(
    event_filter: EventFilter,
    resource_type: str | None,
) -> None:
    decision = event_filter.evaluate(make_event(), resource_type)
    assert decision.reason is SkipReason.UNSUPPORTED_RESOURCE_TYPE


def test_resource_type_match_ignores_case(event_filter: EventFilter) -> None:
    assert event_filter.should_process(make_event(), "microsoft.compute/VIRTUALMACHINES") is True


def test_resource_group_pseudo_type_is_accepted(event_filter: EventFilter) -> None:
    event = make_event(resource_id=RG_ID)
    assert event_filter.should_process(event, RESOURCE_GROUP_TYPE) is True


def test_evaluate_event_skips_type_check(event_filter: EventFilter) -> None:
    assert event_filter.evaluate_event(make_event()).accepted is True


# ---------------------------------------------------------------------------
# Ordering and combinations
# ---------------------------------------------------------------------------


def test_self_event_wins_over_every_other_failure(event_filter: EventFilter) -> None:
    event = make_event(
        subject=f"{RG_ID}/providers/Microsoft.Resources/deployments/d",
        resource_id=f"{RG_ID}/providers/Microsoft.Resources/deployments/d",
        ip_address=None,
        operation_name="Microsoft.Resources/tags/write",
        principal_type=PrincipalType.OTHER,
    )
    assert event_filter.evaluate(event, "Unlisted/type").reason is SkipReason.SELF_EVENT


def test_missing_ip_wins_over_excluded_operation(event_filter: EventFilter) -> None:
    event = make_event(ip_address=None, operation_name="Microsoft.Resources/tags/write")
    assert event_filter.evaluate(event, VM_TYPE).reason is SkipReason.MISSING_IP_ADDRESS


def test_excluded_operation_wins_over_ignored_resource(event_filter: EventFilter) -> None:
    event = make_event(
        resource_id=f"{RG_ID}/providers/Microsoft.Resources/deployments/d",
        operation_name="Microsoft.Resources/tags/write",
    )
    assert event_filter.evaluate(event, VM_TYPE).reason is SkipReason.EXCLUDED_OPERATION


def test_ignored_resource_wins_over_principal_type(event_filter: EventFilter) -> None:
    event = make_event(
        resource_id=f"{RG_ID}/providers/Microsoft.Resources/deployments/d",
        principal_type=PrincipalType.OTHER,
    )
    assert event_filter.evaluate(event, VM_TYPE).reason is SkipReason.IGNORED_RESOURCE


def test_principal_type_wins_over_resource_type(event_filter: EventFilter) -> None:
    event = make_event(principal_type=PrincipalType.UNKNOWN)
    assert event_filter.evaluate(event, "Unlisted/type").reason is SkipReason.UNSUPPORTED_PRINCIPAL


# ---------------------------------------------------------------------------
# Configuration overrides
# ---------------------------------------------------------------------------


def test_custom_config_replaces_default_lists() -> None:
    config = FilterConfig(
        excluded_operations=("Custom.Provider/things/*",),
        ignored_resource_patterns=("sandbox",),
        included_resource_types=("Custom.Provider/things",),
    )
    event_filter = EventFilter(config)

    assert event_filter.config is config
    assert event_filter.should_process(make_event(), VM_TYPE) is False
    assert event_filter.should_process(make_event(), "Custom.Provider/things") is True
    assert (
        event_filter.evaluate(make_event(operation_name="Custom.Provider/things/write"), "x").reason
        is SkipReason.EXCLUDED_OPERATION
    )
    assert (
        event_filter.evaluate(make_event(resource_id=f"{RG_ID}-sandbox"), "x").reason
        is SkipReason.IGNORED_RESOURCE
    )
    # Defaults no longer apply
    assert event_filter.is_excluded_operation("Microsoft.Resources/tags/write") is False
