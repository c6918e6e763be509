"""Unit tests for staffline.domain.provisioning.settings."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from staffline.domain.provisioning.settings import (
    ProvisioningSettings,
    get_provisioning_settings,
)


class TestProvisioningSettings:
    @pytest.mark.unit
    def test_default_values(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
            assert settings.identity_max_attempts == 3
            assert settings.profile_retry_delays == (1.0, 2.0, 3.0, 4.0, 5.0)
            assert settings.deadline_seconds is None
            assert settings.resume_orphaned_identity is False

    @pytest.mark.unit
    def test_comma_separated_delays_from_env(self) -> None:
        env = {"PROVISIONING_PROFILE_RETRY_DELAYS": "1, 2,3"}
        with patch.dict("os.environ", env, clear=True):
            settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
            assert settings.profile_retry_delays == (1.0, 2.0, 3.0)
            assert settings.profile_retry_policy().delay_after(5) == 3.0

    @pytest.mark.unit
    def test_bracketed_delays_from_env(self) -> None:
        env = {"PROVISIONING_PROFILE_RETRY_DELAYS": "[0.5,1.5]"}
        with patch.dict("os.environ", env, clear=True):
            settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
            assert settings.profile_retry_delays == (0.5, 1.5)

    @pytest.mark.unit
    def test_single_delay_from_env(self) -> None:
        with patch.dict("os.environ", {"PROVISIONING_PROFILE_RETRY_DELAYS": "2"}, clear=True):
            settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
            assert settings.profile_retry_delays == (2.0,)

    @pytest.mark.unit
    def test_tuple_passed_directly(self) -> None:
        settings = ProvisioningSettings(  # type: ignore[call-arg]
            _env_file=None, profile_retry_delays=(4, 8)
        )
        assert settings.profile_retry_delays == (4.0, 8.0)

    @pytest.mark.unit
    def test_invalid_delays_rejected(self) -> None:
        env = {"PROVISIONING_PROFILE_RETRY_DELAYS": "1,soon"}
        with patch.dict("os.environ", env, clear=True), pytest.raises(ValueError):
            ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]

    @pytest.mark.unit
    def test_scalar_values_from_env(self) -> None:
        env = {
            "PROVISIONING_DEADLINE_SECONDS": "30",
            "PROVISIONING_RESUME_ORPHANED_IDENTITY": "true",
            "PROVISIONING_PROFILE_MAX_ATTEMPTS": "7",
        }
        with patch.dict("os.environ", env, clear=True):
            settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
            assert settings.deadline_seconds == 30.0
            assert settings.resume_orphaned_identity is True
            assert settings.profile_retry_policy().max_attempts == 7

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("retry_after", "expected"),
        [(10.0, 12.0), (300.0, 65.0), (None, 62.0)],
    )
    def test_rate_limit_delay(self, retry_after: float | None, expected: float) -> None:
        settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
        assert settings.rate_limit_delay(retry_after) == expected

    @pytest.mark.unit
    def test_identity_policy_is_linear(self) -> None:
        settings = ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]
        assert settings.identity_retry_policy().delays == (2.0, 4.0)

    @pytest.mark.unit
    def test_getter_is_cached(self) -> None:
        get_provisioning_settings.cache_clear()
        try:
            with patch.dict("os.environ", {}, clear=True):
                assert get_provisioning_settings() is get_provisioning_settings()
        finally:
            get_provisioning_settings.cache_clear()
