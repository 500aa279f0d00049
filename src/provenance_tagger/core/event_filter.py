"""Event admission rules for the provenance tagger.

Decides from event metadata, plus the resource type resolved from the control
plane, whether an event should lead to a tag write. Checks run in a fixed
order and stop at the first rejection:

1. Self events - the tag write's own audit event (subject == resource id).
2. Missing caller IP address - platform-internal or incomplete events.
3. Excluded operations - noisy control-plane writes (tags, event
   subscriptions, patching, maintenance, policy state, backup).
4. Ignored resources - deployments, tag sub-resources, Front Door.
5. Principal type - only users, service principals and managed identities.
6. Resource type - only types on the taggable allow-list.

The three lists are static configuration. FilterConfig.from_settings() builds
them from environment-overridable Settings; tests pass FilterConfig directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from provenance_tagger.core.models import (
    RESOURCE_GROUP_TYPE,
    ChangeEvent,
    PrincipalType,
    SkipReason,
)

if TYPE_CHECKING:
    from provenance_tagger.settings import Settings

# Trailing "*" marks a prefix wildcard; everything else matches exactly.
DEFAULT_EXCLUDED_OPERATIONS: tuple[str, ...] = (
    "Microsoft.Resources/tags/write",
    "Microsoft.EventGrid/eventSubscriptions/write",
    "Microsoft.Compute/virtualMachines/installPatches/action",
    "Microsoft.Compute/virtualMachines/assessPatches/action",
    "Microsoft.Compute/restorePointCollections/write",
    "Microsoft.Compute/restorePointCollections/restorePoints/write",
    "Microsoft.Maintenance/configurationAssignments/write",
    "Microsoft.Maintenance/applyUpdates/write",
    "Microsoft.PolicyInsights/policyStates/write",
    "Microsoft.RecoveryServices/vaults/backupFabrics/*",
)

DEFAULT_IGNORED_RESOURCE_PATTERNS: tuple[str, ...] = (
    "/providers/Microsoft.Resources/deployments/",
    "/providers/Microsoft.Resources/tags/",
    "/providers/Microsoft.Network/frontDoors/",
)

DEFAULT_INCLUDED_RESOURCE_TYPES: tuple[str, ...] = (
    RESOURCE_GROUP_TYPE,
    "Microsoft.Compute/virtualMachines",
    "Microsoft.Compute/virtualMachineScaleSets",
    "Microsoft.Compute/disks",
    "Microsoft.Compute/snapshots",
    "Microsoft.Compute/availabilitySets",
    "Microsoft.Network/virtualNetworks",
    "Microsoft.Network/networkInterfaces",
    "Microsoft.Network/publicIPAddresses",
    "Microsoft.Network/loadBalancers",
    "Microsoft.Network/networkSecurityGroups",
    "Microsoft.Network/applicationGateways",
    "Microsoft.Network/privateEndpoints",
    "Microsoft.Network/routeTables",
    "Microsoft.Storage/storageAccounts",
    "Microsoft.KeyVault/vaults",
    "Microsoft.Sql/servers",
    "Microsoft.Sql/servers/databases",
    "Microsoft.DBforPostgreSQL/flexibleServers",
    "Microsoft.DBforMySQL/flexibleServers",
    "Microsoft.DocumentDB/databaseAccounts",
    "Microsoft.Web/sites",
    "Microsoft.Web/serverFarms",
    "Microsoft.ContainerService/managedClusters",
    "Microsoft.ContainerRegistry/registries",
    "Microsoft.App/containerApps",
    "Microsoft.Cache/Redis",
    "Microsoft.EventHub/namespaces",
    "Microsoft.ServiceBus/namespaces",
    "Microsoft.CognitiveServices/accounts",
    "Microsoft.DataFactory/factories",
    "Microsoft.Databricks/workspaces",
    "Microsoft.OperationalInsights/workspaces",
    "Microsoft.Logic/workflows",
)

ALLOWED_PRINCIPAL_TYPES: frozenset[PrincipalType] = frozenset(
    {
        PrincipalType.USER,
        PrincipalType.SERVICE_PRINCIPAL,
        PrincipalType.MANAGED_IDENTITY,
    }
)


@dataclass(frozen=True)
class FilterConfig:
    """Static lists driving EventFilter.

    Attributes:
        excluded_operations: Operation names to drop. Entries ending in "*"
            match by prefix.
        ignored_resource_patterns: Substrings that mark a resource id as ignored.
        included_resource_types: Resource types eligible for tagging.
    """

    excluded_operations: tuple[str, ...] = DEFAULT_EXCLUDED_OPERATIONS
    ignored_resource_patterns: tuple[str, ...] = DEFAULT_IGNORED_RESOURCE_PATTERNS
    included_resource_types: tuple[str, ...] = DEFAULT_INCLUDED_RESOURCE_TYPES

    @classmethod
    def from_settings(cls, settings: Settings) -> FilterConfig:
        """Build a FilterConfig from service settings.

        Args:
            settings: Loaded service settings.

        Returns:
            FilterConfig carrying the configured lists.
        """
        return cls(
            excluded_operations=tuple(settings.excluded_operations),
            ignored_resource_patterns=tuple(settings.ignored_resource_patterns),
            included_resource_types=tuple(settings.included_resource_types),
        )


@dataclass(frozen=True)
class FilterDecision:
    """Result of running the admission checks on one event."""

    accepted: bool
    reason: SkipReason | None = None

    @classmethod
    def accept(cls) -> FilterDecision:
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: SkipReason) -> FilterDecision:
        return cls(accepted=False, reason=reason)


class EventFilter:
    """Pure admission predicate over change events.

    Args:
        config: The static lists to evaluate against. Defaults to the built-in lists.
    """

    def __init__(self, config: FilterConfig | None = None) -> None:
        self._config = config or FilterConfig()
        self._exact_operations: frozenset[str] = frozenset(
            op for op in self._config.excluded_operations if not op.endswith("*")
        )
        self._operation_prefixes: tuple[str, ...] = tuple(
            op[:-1] for op in self._config.excluded_operations if op.endswith("*")
        )
        self._ignored_patterns: tuple[str, ...] = tuple(
            pattern.lower() for pattern in self._config.ignored_resource_patterns
        )
        self._included_types: frozenset[str] = frozenset(
            resource_type.lower() for resource_type in self._config.included_resource_types
        )

    @property
    def config(self) -> FilterConfig:
        return self._config

    def should_process(self, event: ChangeEvent, resource_type: str | None) -> bool:
        """Return True when the event passes every admission check.

        Args:
            event: The change event under evaluation.
            resource_type: Resource type resolved from the control plane.

        Returns:
            True if a tag write should follow, False otherwise.
        """
        return self.evaluate(event, resource_type).accepted

    def evaluate(self, event: ChangeEvent, resource_type: str | None) -> FilterDecision:
        """Run all six checks in order and report the first rejection.

        Args:
            event: The change event under evaluation.
            resource_type: Resource type resolved from the control plane.

        Returns:
            FilterDecision with the SkipReason of the first failing check.
        """
        decision = self.evaluate_event(event)
        if not decision.accepted:
            return decision
        if not self.is_included_type(resource_type):
            return FilterDecision.reject(SkipReason.UNSUPPORTED_RESOURCE_TYPE)
        return FilterDecision.accept()

    def evaluate_event(self, event: ChangeEvent) -> FilterDecision:
        """Run the checks that need only the event itself (1 through 5).

        Args:
            event: The change event under evaluation.

        Returns:
            FilterDecision with the SkipReason of the first failing check.
        """
        if event.subject == event.resource_id:
            return FilterDecision.reject(SkipReason.SELF_EVENT)
        if not event.claims.ip_address:
            return FilterDecision.reject(SkipReason.MISSING_IP_ADDRESS)
        if self.is_excluded_operation(event.operation_name):
            return FilterDecision.reject(SkipReason.EXCLUDED_OPERATION)
        if self.is_ignored_resource(event.resource_id):
            return FilterDecision.reject(SkipReason.IGNORED_RESOURCE)
        if event.principal_type not in ALLOWED_PRINCIPAL_TYPES:
            return FilterDecision.reject(SkipReason.UNSUPPORTED_PRINCIPAL)
        return FilterDecision.accept()

    def is_excluded_operation(self, operation_name: str | None) -> bool:
        if operation_name is None:
            return False
        if operation_name in self._exact_operations:
            return True
        return any(operation_name.startswith(prefix) for prefix in self._operation_prefixes)

    def is_ignored_resource(self, resource_id: str) -> bool:
        # ARM resource ids are case-insensitive
        lowered = resource_id.lower()
        return any(pattern in lowered for pattern in self._ignored_patterns)

    def is_included_type(self, resource_type: str | None) -> bool:
        if not resource_type:
            return False
        return resource_type.lower() in self._included_types
