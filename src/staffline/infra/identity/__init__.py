"""Staffline Infra Identity -- GoTrue-compatible identity provider adapter."""

from staffline.infra.identity.client import GoTrueIdentityProvider
from staffline.infra.identity.settings import IdentityProviderSettings, get_identity_settings

__all__ = [
    "GoTrueIdentityProvider",
    "IdentityProviderSettings",
    "get_identity_settings",
]
