from __future__ import annotations

import pytest

from src.utils.retry import RetryExhaustedError, RetryPolicy


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


def flaky(failures, exc_type=Transient, result="ok"):
    calls = []

    def action():
        calls.append(1)
        if len(calls) <= failures:
            raise exc_type(f"failure {len(calls)}")
        return result

    return action, calls


def make_policy(sleeps, **kwargs):
    return RetryPolicy(is_transient=lambda err: isinstance(err, Transient), sleep=sleeps.append, **kwargs)


def test_default_schedule_is_two_then_four_seconds():
    assert RetryPolicy().delays() == [2.0, 4.0]
    assert RetryPolicy(max_attempts=4, base_delay=1.0, multiplier=3.0).delays() == [1.0, 3.0, 9.0]


def test_success_on_first_try_does_not_sleep():
    sleeps = []
    action, calls = flaky(0)
    assert make_policy(sleeps).call(action) == "ok"
    assert len(calls) == 1
    assert sleeps == []


def test_transient_errors_are_retried_with_backoff():
    sleeps = []
    action, calls = flaky(2)
    assert make_policy(sleeps).call(action) == "ok"
    assert len(calls) == 3
    assert sleeps == [2.0, 4.0]


def test_exhaustion_raises_chained_error():
    sleeps = []
    action, calls = flaky(5)
    with pytest.raises(RetryExhaustedError) as info:
        make_policy(sleeps).call(action)
    assert len(calls) == 3
    assert info.value.attempts == 3
    assert isinstance(info.value.__cause__, Transient)
    assert sleeps == [2.0, 4.0]


def test_non_transient_error_fails_fast():
    sleeps = []
    action, calls = flaky(1, exc_type=Fatal)
    with pytest.raises(Fatal):
        make_policy(sleeps).call(action)
    assert len(calls) == 1
    assert sleeps == []


def test_default_predicate_retries_nothing():
    action, calls = flaky(1)
    with pytest.raises(Transient):
        RetryPolicy(sleep=lambda _: None).call(action)
    assert len(calls) == 1


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
