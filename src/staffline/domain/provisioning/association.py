"""Best-effort validation of the optional org unit association.

Org unit assignment must never block staff creation: every failure mode is
turned into "no association" plus a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from staffline.domain.provisioning.errors import FailureCause
from staffline.domain.provisioning.models import ProvisioningWarning
from staffline.foundation.domain.identifiers import OrgUnitId

if TYPE_CHECKING:
    from staffline.foundation.domain.ports.profile_store import OrgUnitDirectoryPort

logger = logging.getLogger(__name__)

WARNING_ASSOCIATION_INVALID = str(FailureCause.ASSOCIATION_INVALID)
WARNING_ORG_UNIT_INACTIVE = "org_unit_inactive"


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving a requested org unit.

    Attributes:
        org_unit_id: Id to attach, or None.
        requested: Raw id the caller asked for, or None.
        warnings: Non-fatal conditions found while resolving.
    """

    org_unit_id: str | None
    requested: str | None = None
    warnings: tuple[ProvisioningWarning, ...] = ()

    @property
    def dropped(self) -> bool:
        """Whether a requested association was discarded."""
        return self.requested is not None and self.org_unit_id is None


class AssociationResolver:
    """Validates format, existence, and active state of an org unit."""

    def __init__(self, directory: OrgUnitDirectoryPort) -> None:
        self._directory = directory

    async def resolve(self, raw_org_unit_id: str | None) -> Resolution:
        """Resolve ``raw_org_unit_id`` to an attachable id or None.

        Blank input means no association was requested. Malformed, missing,
        or unreadable org units resolve to None with an
        ``association_invalid`` warning. An inactive org unit keeps its id
        and adds an ``org_unit_inactive`` warning.
        """
        if raw_org_unit_id is None or not raw_org_unit_id.strip():
            return Resolution(org_unit_id=None)

        requested = raw_org_unit_id.strip()
        if not OrgUnitId.is_well_formed(requested):
            logger.warning("association_invalid_format", extra={"org_unit_id": requested})
            return self._dropped(requested, f"Org unit id {requested!r} is not well formed.")

        try:
            org_unit = await self._directory.get_org_unit(requested)
        except Exception:
            logger.warning(
                "association_lookup_failed",
                extra={"org_unit_id": requested},
                exc_info=True,
            )
            return self._dropped(requested, f"Org unit {requested!r} could not be read.")

        if org_unit is None:
            logger.warning("association_org_unit_not_found", extra={"org_unit_id": requested})
            return self._dropped(requested, f"Org unit {requested!r} does not exist.")

        if not org_unit.is_active:
            logger.warning("association_org_unit_inactive", extra={"org_unit_id": requested})
            return Resolution(
                org_unit_id=org_unit.id,
                requested=requested,
                warnings=(
                    ProvisioningWarning(
                        code=WARNING_ORG_UNIT_INACTIVE,
                        message=f"Org unit {org_unit.name!r} is inactive; assigned anyway.",
                    ),
                ),
            )

        return Resolution(org_unit_id=org_unit.id, requested=requested)

    @staticmethod
    def _dropped(requested: str, message: str) -> Resolution:
        return Resolution(
            org_unit_id=None,
            requested=requested,
            warnings=(ProvisioningWarning(code=WARNING_ASSOCIATION_INVALID, message=message),),
        )
