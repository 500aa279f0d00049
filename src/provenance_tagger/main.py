"""Provenance tagger service entry point.

Initializes the FastAPI application with:
- structlog configuration
- An ARM tag gateway authenticated through azure-identity
- The ProvenanceTaggingService shared by all requests

Run with: uvicorn provenance_tagger.main:app
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from azure.identity import DefaultAzureCredential
from fastapi import FastAPI

from provenance_tagger import __version__
from provenance_tagger.adapters.arm_gateway import ArmTagGateway
from provenance_tagger.api.router import router
from provenance_tagger.core.event_filter import EventFilter, FilterConfig
from provenance_tagger.core.interfaces import IResourceTagGateway
from provenance_tagger.core.reconciler import TagReconciler
from provenance_tagger.core.services import ProvenanceTaggingService
from provenance_tagger.observability import configure_logging, get_logger
from provenance_tagger.settings import Settings

logger = get_logger(__name__)


def build_arm_gateway(settings: Settings) -> ArmTagGateway:
    """Construct the ARM gateway from settings.

    Args:
        settings: Loaded service settings.

    Returns:
        ArmTagGateway using DefaultAzureCredential (managed identity in Azure,
        developer credentials locally).
    """
    return ArmTagGateway(
        credential=DefaultAzureCredential(),
        endpoint=settings.arm_endpoint,
        scope=settings.arm_scope,
        timeout_seconds=settings.arm_timeout_seconds,
        retry_total=settings.arm_retry_total,
    )


def build_service(settings: Settings, gateway: IResourceTagGateway) -> ProvenanceTaggingService:
    """Wire the tagging service from settings and a gateway.

    Args:
        settings: Loaded service settings.
        gateway: Control-plane adapter.

    Returns:
        Fully wired ProvenanceTaggingService.
    """
    return ProvenanceTaggingService(
        gateway=gateway,
        event_filter=EventFilter(FilterConfig.from_settings(settings)),
        reconciler=TagReconciler(pacific_timezone=settings.pacific_timezone),
    )


def create_app(
    settings: Settings | None = None,
    gateway: IResourceTagGateway | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Service settings. Loaded from the environment when None.
        gateway: Control-plane adapter. An ArmTagGateway is built at startup when None.

    Returns:
        The configured FastAPI application.
    """
    app_settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(level=app_settings.log_level, json_logs=app_settings.log_json)

        owned_gateway: ArmTagGateway | None = None
        active_gateway = gateway
        if active_gateway is None:
            logger.info("Initializing ARM tag gateway", arm_endpoint=app_settings.arm_endpoint)
            owned_gateway = build_arm_gateway(app_settings)
            active_gateway = owned_gateway

        app.state.settings = app_settings
        app.state.tagging_service = build_service(app_settings, active_gateway)
        logger.info(
            "Provenance tagger startup complete",
            service=app_settings.service_name,
            included_resource_types=len(app_settings.included_resource_types),
            excluded_operations=len(app_settings.excluded_operations),
        )

        yield

        logger.info("Shutting down provenance tagger")
        if owned_gateway is not None:
            owned_gateway.close()

    app = FastAPI(title=app_settings.service_name, version=__version__, lifespan=lifespan)
    app.include_router(router, prefix="/api/v1")
    return app


app: FastAPI = create_app()
