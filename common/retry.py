from __future__ import annotations

import time
from typing import Callable, Tuple, Type, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from common.config import yaml_config
from common.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def _log_retry(name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        log.warning(
            "%s failed (attempt %d/%d): %s; retrying in %.1fs",
            name,
            state.attempt_number,
            max_attempts,
            exc,
            delay,
        )

    return before_sleep


def with_retry(
    name: str,
    operation: Callable[[], T],
    max_attempts: int | None = None,
    base_delay: float | None = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    retry_if: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `operation` with bounded exponential backoff.

    The delay before attempt k+1 is base_delay * 2**(k-1). Once attempts are
    exhausted the last error is re-raised unchanged. Errors outside `retry_on`,
    or rejected by `retry_if`, are raised immediately.
    """
    max_attempts = max_attempts or yaml_config.retry.max_attempts
    base_delay = yaml_config.retry.base_delay if base_delay is None else base_delay

    retry = retry_if_exception_type(retry_on)
    if retry_if is not None:
        retry = retry & retry_if_exception(retry_if)

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        retry=retry,
        before_sleep=_log_retry(name, max_attempts),
        sleep=sleep,
        reraise=True,
    )
    return retrying(operation)
