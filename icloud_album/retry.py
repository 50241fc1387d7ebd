# icloud_album/retry.py
"""
Generic retry executor used for every request against the service.

The executor takes a no-argument operation plus a `RetryPolicy`, classifies
each failure (transport, HTTP status, decode, schema), sleeps between
attempts according to the policy's backoff strategy and gives up with a
`RetryExhaustedError` once the attempt budget is spent. Delay computation is
a pure function so it can be tested without any network call.
"""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional, TypeVar

from .exceptions import RetryExhaustedError, StatusError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})
DEFAULT_PERMANENT_STATUS_CODES = frozenset({400, 401, 403, 404, 410})


def config_value(config, key: str, convert: Callable[[Any], T], default: T) -> T:
    """Reads ``key`` through ``convert``; missing or unusable values give ``default``."""
    raw = config.get(key, None)
    if raw is None:
        return default
    try:
        return convert(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring invalid config value {key}={raw!r} ({e}); using {default!r}.")
        return default


def non_negative(convert: Callable[[Any], T]) -> Callable[[Any], T]:
    def parse(value: Any) -> T:
        number = convert(value)
        if number < 0:
            raise ValueError("must be >= 0")
        return number
    return parse


def _status_codes(value: Any) -> FrozenSet[int]:
    if isinstance(value, (str, bytes)):
        raise TypeError("expected a list of status codes")
    return frozenset(int(code) for code in value)


class BackoffStrategy(Enum):
    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_WITH_JITTER = "exponential_jitter"

    @classmethod
    def parse(cls, value: Any) -> BackoffStrategy:
        """Accepts an enum member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown backoff strategy: {value!r}")


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently a request is retried.

    ``permanent_status_codes`` wins over ``retryable_status_codes`` when a
    code appears in both.
    """
    max_retries: int = 3
    base_delay: float = 0.5
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL_WITH_JITTER
    max_delay: float = 10.0
    retryable_status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES
    permanent_status_codes: FrozenSet[int] = DEFAULT_PERMANENT_STATUS_CODES

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        # Normalise whatever iterable was passed in.
        object.__setattr__(self, 'retryable_status_codes', frozenset(self.retryable_status_codes))
        object.__setattr__(self, 'permanent_status_codes', frozenset(self.permanent_status_codes))
        object.__setattr__(self, 'backoff_strategy', BackoffStrategy.parse(self.backoff_strategy))

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_config(cls, config) -> RetryPolicy:
        """
        Builds a policy from the ``retry`` section of the application config.

        A value that cannot be used is logged and replaced by the default, so
        a bad config.yaml never stops the package from importing.
        """
        return cls(
            max_retries=config_value(config, 'retry.max_retries', non_negative(int), cls.max_retries),
            base_delay=config_value(config, 'retry.base_delay_seconds', non_negative(float), cls.base_delay),
            backoff_strategy=config_value(config, 'retry.strategy', BackoffStrategy.parse, cls.backoff_strategy),
            max_delay=config_value(config, 'retry.max_delay_seconds', non_negative(float), cls.max_delay),
            retryable_status_codes=config_value(config, 'retry.retryable_status_codes', _status_codes,
                                                DEFAULT_RETRYABLE_STATUS_CODES),
            permanent_status_codes=config_value(config, 'retry.permanent_status_codes', _status_codes,
                                                DEFAULT_PERMANENT_STATUS_CODES),
        )


@dataclass
class RetryStats:
    """Per-call record of what the executor did. Never shared between calls."""
    attempts: int = 0
    total_delay: float = 0.0
    succeeded: bool = False
    last_error: Optional[str] = None
    delays: list = field(default_factory=list)


def compute_delay(policy: RetryPolicy, attempt: int, rng: Optional[random.Random] = None) -> float:
    """
    Returns the sleep before retry number ``attempt`` (1 for the first retry).

    The result always lies in ``[0, policy.max_delay]``.
    """
    if attempt < 1:
        raise ValueError("attempt numbers start at 1")
    base = policy.base_delay
    strategy = policy.backoff_strategy

    if strategy is BackoffStrategy.CONSTANT:
        delay = base
    elif strategy is BackoffStrategy.LINEAR:
        delay = base * attempt
    else:
        # Float exponent: 2.0 ** 1024 would overflow, and the cap is long reached by then.
        delay = base * (2.0 ** min(attempt, 1023))
    delay = min(delay, policy.max_delay)

    if strategy is BackoffStrategy.EXPONENTIAL_WITH_JITTER:
        delay = (rng or random).uniform(0, delay)
    return max(0.0, delay)


def is_retryable(error: BaseException, policy: RetryPolicy) -> bool:
    """Transport failures and 5xx/listed statuses are worth another attempt; nothing else is."""
    if isinstance(error, TransportError):
        return True
    if isinstance(error, StatusError):
        if error.code in policy.permanent_status_codes:
            return False
        return error.code in policy.retryable_status_codes or error.code >= 500
    return False


def execute_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    description: str = "request",
    stats: Optional[RetryStats] = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> T:
    """
    Runs ``operation`` up to ``policy.max_retries + 1`` times.

    Args:
        operation: Idempotent callable producing the result or raising one of
            the library's exceptions.
        policy: Retry budget, backoff and status classification.
        description: Used in log messages only.
        stats: Optional per-call statistics object, filled in place.
        sleep: Sleep function, injectable for tests.
        rng: Random source for jittered backoff.

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        RetryExhaustedError: If every attempt failed with a retryable error.
        Any non-retryable error raised by ``operation``, unchanged.
    """
    stats = stats if stats is not None else RetryStats()

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1:
            delay = compute_delay(policy, attempt - 1, rng)
            stats.delays.append(delay)
            stats.total_delay += delay
            logger.warning(f"Retrying {description} in {delay:.2f}s "
                           f"(attempt {attempt}/{policy.max_attempts}).")
            sleep(delay)

        stats.attempts = attempt
        try:
            result = operation()
        except (TransportError, StatusError) as e:
            stats.last_error = str(e)
            if not is_retryable(e, policy):
                logger.error(f"{description} failed permanently: {e}")
                raise
            logger.warning(f"Attempt {attempt}/{policy.max_attempts} of {description} failed: {e}")
            last_error = e
            continue
        except Exception as e:
            # Decode and schema failures will not change on retry.
            stats.last_error = str(e)
            raise

        stats.succeeded = True
        return result

    logger.error(f"All {policy.max_attempts} attempts of {description} failed.")
    raise RetryExhaustedError(last_error, stats.attempts) from last_error
