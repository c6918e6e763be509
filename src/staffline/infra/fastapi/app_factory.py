"""FastAPI application factory and composition root.

The lifespan wires concrete adapters into the provisioning orchestrator.
Capabilities are derived once, here, from the configured identity keys and
handed to the orchestrator explicitly.

Usage:
    uvicorn staffline.infra.fastapi.app_factory:create_app --factory
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from staffline.domain.provisioning.orchestrator import ProvisioningOrchestrator
from staffline.domain.provisioning.settings import get_provisioning_settings
from staffline.infra.fastapi.error_handlers import register_exception_handlers
from staffline.infra.fastapi.router import router
from staffline.infra.fastapi.settings import AppSettings
from staffline.infra.identity.client import GoTrueIdentityProvider
from staffline.infra.identity.settings import get_identity_settings
from staffline.infra.observability.logging import configure_logging
from staffline.infra.persistence.database import get_database_manager
from staffline.infra.persistence.profile_store import SqlOrgUnitDirectory, SqlProfileStore
from staffline.infra.taskiq.settings import get_taskiq_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from staffline.foundation.domain.ports.event_publisher import EventPublisherPort

logger = logging.getLogger(__name__)


async def _build_orchestrator(stack: AsyncExitStack) -> ProvisioningOrchestrator:
    """Create adapters from settings, registering their cleanup on ``stack``."""
    identity_settings = get_identity_settings()
    capabilities = identity_settings.capabilities()

    identity_provider = GoTrueIdentityProvider.from_settings(identity_settings)
    stack.push_async_callback(identity_provider.aclose)

    database = get_database_manager()
    stack.push_async_callback(database.dispose)
    session_factory = database.get_session_factory()

    publisher: EventPublisherPort | None = None
    if get_taskiq_settings().publish_events:
        from staffline.infra.taskiq.broker import get_broker
        from staffline.infra.taskiq.publisher import TaskIQEventPublisher

        broker = get_broker()
        await broker.startup()
        stack.push_async_callback(broker.shutdown)
        publisher = TaskIQEventPublisher()

    logger.info(
        "orchestrator_configured",
        extra={
            "identity_path": str(capabilities.identity_path),
            "publish_events": publisher is not None,
        },
    )
    return ProvisioningOrchestrator(
        identity_provider=identity_provider,
        profile_store=SqlProfileStore(session_factory),
        org_unit_directory=SqlOrgUnitDirectory(session_factory),
        capabilities=capabilities,
        settings=get_provisioning_settings(),
        event_publisher=publisher,
    )


def create_app(
    settings: AppSettings | None = None,
    *,
    orchestrator: ProvisioningOrchestrator | None = None,
) -> FastAPI:
    """Create the staff API.

    Args:
        settings: Application settings. If ``None``, loaded from environment.
        orchestrator: Pre-built orchestrator; when given, the lifespan skips
            adapter construction (used by tests and embedding applications).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or AppSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if orchestrator is not None:
            app.state.orchestrator = orchestrator
            yield
            return

        configure_logging()
        async with AsyncExitStack() as stack:
            app.state.orchestrator = await _build_orchestrator(stack)
            yield

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        description=settings.description,
        docs_url=settings.docs_url,
        openapi_url=settings.openapi_url,
        debug=settings.debug,
        lifespan=lifespan,
    )
    register_exception_handlers(app)
    app.include_router(router)
    return app
