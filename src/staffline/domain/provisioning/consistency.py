"""Wait for a new identity to become visible to the profile store."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from staffline.domain.provisioning.models import Capabilities, IdentityPath
from staffline.domain.provisioning.settings import ProvisioningSettings

if TYPE_CHECKING:
    from uuid import UUID

    from staffline.domain.provisioning.retry import Sleep
    from staffline.foundation.domain.ports.identity_provider import IdentityProviderPort

logger = logging.getLogger(__name__)


class ConsistencyWaiter:
    """Single suspension point between identity creation and profile write.

    Lowers the odds of an identity foreign-key violation; it does not remove
    them. The profile write retry loop remains responsible for consistency,
    so this step never fails.
    """

    def __init__(
        self,
        provider: IdentityProviderPort,
        capabilities: Capabilities,
        settings: ProvisioningSettings | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._capabilities = capabilities
        self._settings = settings or ProvisioningSettings()
        self._sleep = sleep

    async def wait_until_visible(self, identity_id: UUID, path: IdentityPath) -> bool:
        """Wait the path's fixed interval, then re-verify when possible.

        Args:
            identity_id: Newly created identity.
            path: Path the identity was created through.

        Returns:
            True only if a privileged lookup confirmed the identity. False
            means "unknown", and the caller proceeds optimistically.
        """
        if path is IdentityPath.PUBLIC:
            await self._sleep(self._settings.public_visibility_wait)
            return False

        await self._sleep(self._settings.privileged_visibility_wait)
        if not self._capabilities.privileged_available:
            return False
        try:
            identity = await self._provider.get_by_id(identity_id)
        except Exception:
            logger.warning(
                "identity_visibility_check_failed",
                extra={"identity_id": str(identity_id)},
                exc_info=True,
            )
            return False

        visible = identity is not None
        if not visible:
            logger.info("identity_not_yet_visible", extra={"identity_id": str(identity_id)})
        return visible
