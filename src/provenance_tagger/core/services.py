"""Per-event orchestration for the provenance tagger.

ProvenanceTaggingService composes EventFilter, the tag gateway,
resolve_actor and TagReconciler for a single invocation:

1. Run the event-only admission checks (no control-plane call yet).
2. Resolve the resource type; a missing resource is a skip.
3. Run the full admission checks with the resolved type.
4. Read current tags, resolve the actor, compute the merge patch.
5. Commit the patch with one merge call.

The service holds no state between invocations. Gateway errors other than
not-found propagate so the trigger can request redelivery; the whole
operation is idempotent per key, so redelivery is safe.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from provenance_tagger.core.errors import MalformedEventError, ResourceNotFoundError
from provenance_tagger.core.event_filter import EventFilter
from provenance_tagger.core.events import parse_change_event
from provenance_tagger.core.identity import resolve_actor
from provenance_tagger.core.interfaces import IResourceTagGateway
from provenance_tagger.core.models import (
    ChangeEvent,
    SkipReason,
    TaggingResult,
    TaggingStatus,
)
from provenance_tagger.core.reconciler import TagReconciler
from provenance_tagger.observability import get_logger

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ProvenanceTaggingService:
    """Stamps provenance tags on the resource named by a change event.

    Args:
        gateway: Control-plane adapter used to describe, read and merge tags.
        event_filter: Admission rules. Defaults to the built-in lists.
        reconciler: Patch calculator. Defaults to a Pacific-time reconciler.
        clock: Returns the invocation timestamp. Defaults to UTC now.
    """

    def __init__(
        self,
        gateway: IResourceTagGateway,
        event_filter: EventFilter | None = None,
        reconciler: TagReconciler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._gateway = gateway
        self._filter = event_filter or EventFilter()
        self._reconciler = reconciler or TagReconciler()
        self._clock = clock or _utc_now

    def handle_payload(self, payload: Mapping[str, Any]) -> TaggingResult:
        """Parse a raw event payload and handle it.

        Args:
            payload: One raw Event Grid or CloudEvents event object.

        Returns:
            The TaggingResult. Malformed payloads are skipped, not raised.
        """
        try:
            event = parse_change_event(payload)
        except MalformedEventError as exc:
            logger.info(
                "Skipping malformed event",
                reason=SkipReason.MALFORMED_EVENT.value,
                field=exc.field,
                error=str(exc),
            )
            return TaggingResult.skipped(SkipReason.MALFORMED_EVENT)
        return self.handle(event)

    def handle(self, event: ChangeEvent) -> TaggingResult:
        """Apply provenance tags for one change event.

        Args:
            event: The parsed change event.

        Returns:
            TAGGED with the committed patch, or SKIPPED with the reason.

        Raises:
            TransientGatewayError: If the control plane could not be read.
            TagWriteError: If the merge patch could not be committed.
        """
        decision = self._filter.evaluate_event(event)
        if not decision.accepted:
            return self._skip(event, decision.reason)

        try:
            descriptor = self._gateway.describe(event.resource_id)
        except ResourceNotFoundError:
            return self._skip(event, SkipReason.RESOURCE_NOT_FOUND)

        decision = self._filter.evaluate(event, descriptor.resource_type)
        if not decision.accepted:
            return self._skip(event, decision.reason, resource_type=descriptor.resource_type)

        current_tags = self._gateway.get_tags(descriptor.resource_id)
        actor = resolve_actor(event.claims, event.principal_type)
        outcome = self._reconciler.reconcile(current_tags, actor, self._clock())

        self._gateway.merge_tags(descriptor.resource_id, outcome.patch)

        logger.info(
            "Provenance tags applied",
            resource_id=descriptor.resource_id,
            resource_type=descriptor.resource_type,
            resource_kind=descriptor.kind.value,
            state=outcome.state.value,
            actor=actor,
            tag_keys=sorted(outcome.patch),
            operation_name=event.operation_name,
            event_id=event.event_id,
        )
        return TaggingResult(
            status=TaggingStatus.TAGGED,
            resource_id=descriptor.resource_id,
            state=outcome.state,
            patch=outcome.patch,
            actor=actor,
        )

    def _skip(
        self,
        event: ChangeEvent,
        reason: SkipReason | None,
        resource_type: str | None = None,
    ) -> TaggingResult:
        skip_reason = reason or SkipReason.MALFORMED_EVENT
        logger.info(
            "Skipping event",
            reason=skip_reason.value,
            resource_id=event.resource_id,
            resource_type=resource_type,
            operation_name=event.operation_name,
            principal_type=event.principal_type.value,
            event_id=event.event_id,
        )
        return TaggingResult.skipped(skip_reason, resource_id=event.resource_id)
