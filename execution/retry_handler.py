import asyncio
from typing import Any, Awaitable, Callable, Tuple, Type, Union

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried operation has failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Operation failed after {attempts} attempts: {last_error}")


class BackoffExecutor:
    """Runs an async operation, retrying with delay ``initial_delay * 2 ** (attempt - 1)``."""

    def __init__(
        self,
        max_attempts: int = config.RETRY_MAX_ATTEMPTS,
        initial_delay: float = config.RETRY_INITIAL_DELAY_SECONDS,
        retry_on: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = Exception,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.retry_on = retry_on
        self.sleep = sleep

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.max_attempts} failed ({error}); "
            f"retrying in {delay:.2f}s"
        )

    async def run(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay, exp_base=2),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._log_retry,
            sleep=self.sleep,
        )
        try:
            return await retrying(operation)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(f"Giving up after {self.max_attempts} attempts: {last_error}")
            raise RetryExhaustedError(self.max_attempts, last_error) from last_error
