"""Unit tests for the bounded retry combinator."""

from __future__ import annotations

import pytest

from staffline.domain.provisioning.retry import (
    AttemptTracker,
    Degrade,
    Fatal,
    Retry,
    RetryExhaustedError,
    RetryPolicy,
    retry_with_classifier,
)


class Transient(Exception):
    pass


class Permanent(Exception):
    pass


def _classify(exc: Exception) -> Retry | Fatal | Degrade:
    if isinstance(exc, Transient):
        return Retry()
    return Fatal(exc)


class TestRetryPolicy:
    @pytest.mark.unit
    def test_linear_schedule(self) -> None:
        policy = RetryPolicy.linear(3, 2.0)
        assert policy.delays == (2.0, 4.0)
        assert policy.total_delay() == 6.0

    @pytest.mark.unit
    def test_last_delay_repeats(self) -> None:
        policy = RetryPolicy(max_attempts=5, delays=(1.0, 2.0))
        assert [policy.delay_after(n) for n in range(1, 5)] == [1.0, 2.0, 2.0, 2.0]

    @pytest.mark.unit
    def test_empty_schedule_means_no_delay(self) -> None:
        assert RetryPolicy(max_attempts=2).delay_after(1) == 0.0

    @pytest.mark.unit
    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            RetryPolicy(max_attempts=0)

    @pytest.mark.unit
    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError, match="delays"):
            RetryPolicy(max_attempts=2, delays=(-1.0,))


class TestRetryWithClassifier:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_first_success(self, clock) -> None:
        async def operation(attempt: int) -> str:
            return f"ok-{attempt}"

        result = await retry_with_classifier(
            operation,
            policy=RetryPolicy(max_attempts=3),
            classify=_classify,
            sleep=clock.sleep,
            clock=clock,
        )
        assert result == "ok-1"
        assert clock.sleeps == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retries_with_schedule_until_success(self, clock) -> None:
        async def operation(attempt: int) -> int:
            if attempt < 3:
                raise Transient
            return attempt

        result = await retry_with_classifier(
            operation,
            policy=RetryPolicy(max_attempts=5, delays=(1.0, 2.0, 3.0)),
            classify=_classify,
            sleep=clock.sleep,
            clock=clock,
        )
        assert result == 3
        assert clock.sleeps == [1.0, 2.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_decision_delay_overrides_schedule(self, clock) -> None:
        async def operation(attempt: int) -> int:
            if attempt == 1:
                raise Transient
            return attempt

        await retry_with_classifier(
            operation,
            policy=RetryPolicy(max_attempts=2, delays=(1.0,)),
            classify=lambda exc: Retry(delay=7.5),
            sleep=clock.sleep,
            clock=clock,
        )
        assert clock.sleeps == [7.5]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fatal_stops_after_one_attempt(self, clock) -> None:
        calls = 0

        async def operation(attempt: int) -> None:
            nonlocal calls
            calls += 1
            raise Permanent("nope")

        with pytest.raises(Permanent, match="nope"):
            await retry_with_classifier(
                operation,
                policy=RetryPolicy(max_attempts=5),
                classify=_classify,
                sleep=clock.sleep,
                clock=clock,
            )
        assert calls == 1
        assert clock.sleeps == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fatal_with_replacement_error_chains(self, clock) -> None:
        async def operation(attempt: int) -> None:
            raise Permanent("raw")

        with pytest.raises(RuntimeError, match="translated") as exc_info:
            await retry_with_classifier(
                operation,
                policy=RetryPolicy(max_attempts=2),
                classify=lambda exc: Fatal(RuntimeError("translated")),
                sleep=clock.sleep,
                clock=clock,
            )
        assert isinstance(exc_info.value.__cause__, Permanent)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhaustion_reports_attempts_and_elapsed(self, clock) -> None:
        async def operation(attempt: int) -> None:
            raise Transient(f"attempt {attempt}")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_with_classifier(
                operation,
                policy=RetryPolicy(max_attempts=4, delays=(1.0, 2.0, 3.0)),
                classify=_classify,
                sleep=clock.sleep,
                clock=clock,
            )
        error = exc_info.value
        assert error.attempts == 4
        assert error.elapsed_seconds == 6.0
        assert str(error.last_error) == "attempt 4"
        # no sleep after the final attempt
        assert clock.sleeps == [1.0, 2.0, 3.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_degrade_runs_hook_once_without_consuming_attempt(self, clock) -> None:
        seen: list[int] = []
        hooks: list[Exception] = []
        state = {"degraded": False}

        async def operation(attempt: int) -> int:
            seen.append(attempt)
            if not state["degraded"]:
                raise Permanent("bad org")
            return attempt

        def on_degrade(exc: Exception) -> None:
            hooks.append(exc)
            state["degraded"] = True

        result = await retry_with_classifier(
            operation,
            policy=RetryPolicy(max_attempts=1),
            classify=lambda exc: Degrade(),
            on_degrade=on_degrade,
            sleep=clock.sleep,
            clock=clock,
        )
        assert result == 1
        assert seen == [1, 1]
        assert len(hooks) == 1
        assert clock.sleeps == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_degrade_reraises(self, clock) -> None:
        hooks = 0

        async def operation(attempt: int) -> None:
            raise Permanent("still bad")

        def on_degrade(exc: Exception) -> None:
            nonlocal hooks
            hooks += 1

        with pytest.raises(Permanent):
            await retry_with_classifier(
                operation,
                policy=RetryPolicy(max_attempts=3),
                classify=lambda exc: Degrade(),
                on_degrade=on_degrade,
                sleep=clock.sleep,
                clock=clock,
            )
        assert hooks == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_degrade_without_hook_reraises(self, clock) -> None:
        async def operation(attempt: int) -> None:
            raise Permanent("x")

        with pytest.raises(Permanent):
            await retry_with_classifier(
                operation,
                policy=RetryPolicy(max_attempts=3),
                classify=lambda exc: Degrade(),
                sleep=clock.sleep,
                clock=clock,
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tracker_follows_attempts(self, clock) -> None:
        tracker = AttemptTracker()
        tracker.begin("profile_write")
        observed: list[int] = []

        async def operation(attempt: int) -> int:
            observed.append(tracker.attempts)
            if attempt < 2:
                raise Transient
            return attempt

        await retry_with_classifier(
            operation,
            policy=RetryPolicy(max_attempts=3),
            classify=_classify,
            tracker=tracker,
            sleep=clock.sleep,
            clock=clock,
        )
        assert observed == [1, 2]
        assert tracker.step == "profile_write"
        assert tracker.attempts == 2

    @pytest.mark.unit
    def test_tracker_begin_resets_attempts(self) -> None:
        tracker = AttemptTracker(step="identity_create", attempts=3)
        tracker.begin("profile_write")
        assert tracker.step == "profile_write"
        assert tracker.attempts == 0
