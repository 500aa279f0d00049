"""API router for provenance-tagger.

The router is the event trigger: Event Grid (or any webhook-style delivery)
POSTs resource change events here and each event is handed to
ProvenanceTaggingService. Routes are thin; all decisions live in core.

Endpoints:
- POST    /events  - deliver one event or an Event Grid batch
- OPTIONS /events  - CloudEvents webhook validation handshake
- GET     /health  - liveness check

Delivery semantics: a non-2xx response makes Event Grid redeliver the whole
batch. Tagging is idempotent per key, so redelivery is safe. Retryable gateway
failures return 503; permanent ones return 500.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from provenance_tagger.api.schemas import (
    EventBatchResponse,
    HealthResponse,
    SubscriptionValidationResponse,
)
from provenance_tagger.core.errors import GatewayError
from provenance_tagger.core.models import TaggingStatus
from provenance_tagger.core.services import ProvenanceTaggingService
from provenance_tagger.observability import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["provenance"])

SUBSCRIPTION_VALIDATION_EVENT = "Microsoft.EventGrid.SubscriptionValidationEvent"


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


def get_tagging_service(request: Request) -> ProvenanceTaggingService:
    """Return the service wired at startup (see main.lifespan).

    Args:
        request: The incoming request.

    Returns:
        The shared ProvenanceTaggingService.
    """
    return request.app.state.tagging_service


def _is_validation_event(event: Any) -> bool:
    return isinstance(event, dict) and event.get("eventType") == SUBSCRIPTION_VALIDATION_EVENT


def _validation_code(events: list[Any]) -> str | None:
    # A batch is a handshake only when it holds nothing but validation events
    if not events or not all(_is_validation_event(event) for event in events):
        return None
    data = events[0].get("data")
    if isinstance(data, dict) and isinstance(data.get("validationCode"), str):
        return data["validationCode"]
    return None


# ---------------------------------------------------------------------------
# Event delivery
# ---------------------------------------------------------------------------


@router.post(
    "/events",
    response_model=EventBatchResponse,
    summary="Deliver resource change events",
)
def receive_events(
    service: Annotated[ProvenanceTaggingService, Depends(get_tagging_service)],
    payload: Annotated[list[Any] | dict[str, Any], Body()],
) -> EventBatchResponse | JSONResponse:
    """Handle a single event or a batch of events.

    Declared sync so FastAPI runs it in the threadpool; gateway calls block on
    network I/O.

    Args:
        service: The tagging service.
        payload: One event object or a list of event objects.

    Returns:
        The subscription validation echo, or per-event results.

    Raises:
        HTTPException: 503 for retryable gateway failures, 500 otherwise.
    """
    events = payload if isinstance(payload, list) else [payload]

    validation_code = _validation_code(events)
    if validation_code is not None:
        logger.info("Answering Event Grid subscription validation")
        answer = SubscriptionValidationResponse(validationResponse=validation_code)
        return JSONResponse(content=answer.model_dump())

    change_events = [event for event in events if not _is_validation_event(event)]
    if len(change_events) != len(events):
        logger.warning(
            "Ignoring validation events delivered alongside change events",
            ignored=len(events) - len(change_events),
        )

    response = EventBatchResponse()
    for event in change_events:
        try:
            result = service.handle_payload(event if isinstance(event, dict) else {})
        except GatewayError as exc:
            logger.error(
                "Tagging failed, requesting redelivery",
                error=exc.message,
                status_code=exc.status_code,
                retryable=exc.retryable,
            )
            raise HTTPException(
                status_code=503 if exc.retryable else 500,
                detail=exc.message,
            ) from exc

        response.results.append(result)
        if result.status is TaggingStatus.TAGGED:
            response.tagged += 1
        else:
            response.skipped += 1

    return response


@router.options("/events", summary="CloudEvents webhook validation")
def validate_webhook(
    webhook_request_origin: Annotated[str | None, Header()] = None,
) -> Response:
    """Answer the CloudEvents 1.0 abuse-protection handshake.

    Args:
        webhook_request_origin: Origin asking for permission to deliver.

    Returns:
        Empty 200 response allowing the origin.
    """
    headers = {"WebHook-Allowed-Rate": "*"}
    if webhook_request_origin:
        headers["WebHook-Allowed-Origin"] = webhook_request_origin
    return Response(status_code=200, headers=headers)


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    settings = getattr(request.app.state, "settings", None)
    service_name = settings.service_name if settings is not None else "provenance-tagger"
    return HealthResponse(service=service_name)
