"""loguru integration: the TRAINING level and opt-in stderr output.

forestkit never prints unless asked. The package logger is disabled on
import; `enable_logging` turns it on and returns a `LoggingHandle` whose
`disable` (or context exit) removes the stderr sink again. The package logger
goes quiet once the last open handle is released.

Records carry structured context in `extra`, so a DEBUG session shows which
tree was fortified or planted and with which features:

    >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
    ...     forest.train(batch)

Importing this module drops loguru's default stderr sink (handler 0), which
would otherwise duplicate every enabled record.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal, Self

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

TRAINING_LEVEL: Final[str] = "TRAINING"
TRAINING_LEVEL_NUMBER: Final[int] = 25

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "TRAINING", "WARNING", "ERROR", "CRITICAL"]

type LogFormat = Literal["short", "full"]

_PREFIX: Final[str] = "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <8}</level>"  # noqa: RUF027

_FORMATS: Final[dict[LogFormat, str]] = {
    "short": _PREFIX + " <cyan>{function}</cyan> | <level>{message}</level> {extra}",
    "full": _PREFIX + " <cyan>{name}:{function}:{line}</cyan> | <level>{message}</level> {extra}",
}

with contextlib.suppress(ValueError):
    logger.remove(0)


def _register_training_level() -> None:
    """Add the TRAINING level (between INFO and WARNING) unless it already exists.

    loguru cannot renumber a level, so a clash with an existing TRAINING level
    of another severity only warns.
    """
    try:
        registered = logger.level(TRAINING_LEVEL)
    except ValueError:
        logger.level(TRAINING_LEVEL, no=TRAINING_LEVEL_NUMBER, color="<magenta><bold>", icon="🌲")
        return
    if registered.no != TRAINING_LEVEL_NUMBER:
        warnings.warn(
            f"{TRAINING_LEVEL} level already registered with numeric value {registered.no};"
            f" forestkit expects {TRAINING_LEVEL_NUMBER}",
            stacklevel=2,
        )


_register_training_level()


class LoggingHandle:
    """An open stderr sink created by `enable_logging`.

    Attributes:
        handler_id (int | None): The loguru handler ID, or `None` once released.
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with self._lock:
            self._active_ids.add(handler_id)

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return how many handles are still open."""
        with cls._lock:
            return len(cls._active_ids)

    def disable(self) -> None:
        """Release the sink; safe to call more than once."""
        with self._lock:
            handler_id, self.handler_id = self.handler_id, None
            if handler_id is None:
                return
            self._active_ids.discard(handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(handler_id)
            if not self._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()


def enable_logging(*, level: LogLevel = TRAINING_LEVEL, log_format: LogFormat = "short") -> LoggingHandle:
    """Send forestkit records to stderr.

    Args:
        level (LogLevel): Lowest level shown. The default, "TRAINING", prints
            one line per `train`/`fit` call; "DEBUG" adds per-tree events,
            reseeding and hyperparameter fall-backs.
        log_format (LogFormat): "short" names the calling function; "full"
            adds the module and line number.

    Returns:
        LoggingHandle: Releases the sink on `disable()` or context exit.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(sys.stderr, level=level, format=_FORMATS[log_format], filter=_is_forestkit_record)
    return LoggingHandle(handler_id)


def _is_forestkit_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
