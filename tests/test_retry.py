"""Tests for the retry policy."""
import pytest

from bunkr_uploader.errors import ErrorKind
from bunkr_uploader.models import UploadConfig
from bunkr_uploader.orchestrator.retry import GIVE_UP, Retry, RetryPolicy


def test_transient_errors_back_off_exponentially():
    policy = RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0)
    assert policy.decide(1, ErrorKind.TRANSIENT) == Retry(1.0)
    assert policy.decide(2, ErrorKind.TRANSIENT) == Retry(2.0)
    assert policy.decide(3, ErrorKind.TRANSIENT) == Retry(4.0)


def test_gives_up_after_max_retries():
    policy = RetryPolicy(max_retries=3)
    assert policy.decide(4, ErrorKind.TRANSIENT) is GIVE_UP


def test_delay_is_capped():
    policy = RetryPolicy(max_retries=10, base_delay=1.0, max_delay=5.0)
    assert policy.decide(4, ErrorKind.TRANSIENT) == Retry(5.0)
    assert policy.decide(10, ErrorKind.TRANSIENT) == Retry(5.0)


@pytest.mark.parametrize("kind", [ErrorKind.PERMANENT, ErrorKind.PREPROCESS])
def test_non_transient_errors_never_retry(kind):
    policy = RetryPolicy(max_retries=5)
    assert policy.decide(1, kind) is GIVE_UP


def test_zero_retries_gives_up_immediately():
    assert RetryPolicy(max_retries=0).decide(1, ErrorKind.TRANSIENT) is GIVE_UP


def test_decide_is_pure():
    policy = RetryPolicy()
    first = [policy.decide(n, ErrorKind.TRANSIENT) for n in range(1, 6)]
    second = [policy.decide(n, ErrorKind.TRANSIENT) for n in range(1, 6)]
    assert first == second


def test_attempt_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy().decide(0, ErrorKind.TRANSIENT)


def test_from_config():
    config = UploadConfig(max_retries=5, retry_base_delay=0.5, retry_max_delay=8.0)
    policy = RetryPolicy.from_config(config)
    assert policy == RetryPolicy(max_retries=5, base_delay=0.5, max_delay=8.0)
