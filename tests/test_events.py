"""Tests for BaseEvent and the ProfileProvisioned event."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from staffline.domain.provisioning.events import ProfileProvisioned
from staffline.foundation.domain.events import BaseEvent
from staffline.foundation.domain.staff_records import Profile


@dataclass(frozen=True, kw_only=True)
class SampleEvent(BaseEvent):
    """Test event subclass."""

    title: str = "test"


def _make_event(**overrides: object) -> ProfileProvisioned:
    """Create a ProfileProvisioned with sensible defaults."""
    defaults: dict[str, object] = {
        "originator_id": uuid4(),
        "originator_version": 1,
        "timestamp": datetime.now(UTC),
        "email": "jane@example.com",
        "role": "staff",
    }
    defaults.update(overrides)
    return ProfileProvisioned(**defaults)  # type: ignore[arg-type]


@pytest.mark.unit
class TestBaseEvent:
    def test_topic_is_module_and_class(self) -> None:
        assert SampleEvent.get_topic() == f"{__name__}:SampleEvent"

    def test_to_dict_serializes_base_fields(self) -> None:
        originator_id = uuid4()
        evt = SampleEvent(
            originator_id=originator_id,
            originator_version=3,
            timestamp=datetime(2024, 1, 2, tzinfo=UTC),
            correlation_id="req-1",
        )
        data = evt.to_dict()
        assert data["originator_id"] == str(originator_id)
        assert data["originator_version"] == 3
        assert data["timestamp"] == "2024-01-02T00:00:00+00:00"
        assert data["correlation_id"] == "req-1"
        assert data["causation_id"] is None


@pytest.mark.unit
class TestProfileProvisioned:
    def test_builds_with_required_fields(self) -> None:
        evt = _make_event()
        assert evt.email == "jane@example.com"
        assert evt.role == "staff"
        assert evt.degraded is False
        assert evt.org_unit_id is None

    def test_topic(self) -> None:
        assert ProfileProvisioned.get_topic() == (
            "staffline.domain.provisioning.events:ProfileProvisioned"
        )

    def test_rejects_missing_email(self) -> None:
        with pytest.raises(ValueError, match="email"):
            _make_event(email="")

    def test_rejects_missing_role(self) -> None:
        with pytest.raises(ValueError, match="role"):
            _make_event(role="")

    def test_is_frozen(self) -> None:
        evt = _make_event()
        with pytest.raises(dataclasses.FrozenInstanceError):
            evt.role = "admin"  # type: ignore[misc]

    def test_from_profile(self) -> None:
        profile = Profile(
            id=uuid4(),
            email="jane@example.com",
            role="manager",
            last_name="Doe",
            org_unit_id="org-1",
        )
        evt = ProfileProvisioned.from_profile(profile, degraded=False, correlation_id="c-9")

        assert evt.originator_id == profile.id
        assert evt.originator_version == 1
        assert evt.profile_id == str(profile.id)
        data = evt.to_dict()
        assert data["role"] == "manager"
        assert data["last_name"] == "Doe"
        assert data["org_unit_id"] == "org-1"
        assert data["correlation_id"] == "c-9"
        assert data["degraded"] is False
