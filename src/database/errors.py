"""Translation of storage connectivity failures into domain errors."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from src.exceptions import UnavailableException

logger = logging.getLogger(__name__)


def is_connectivity_error(exc: BaseException) -> bool:
    """True when the driver reports a lost or refused connection."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


@contextmanager
def translate_storage_errors(operation: str) -> Iterator[None]:
    """Re-raise connectivity failures as UnavailableException.

    Integrity and programming errors propagate untouched; only the
    "database is not reachable" family becomes a retryable error.
    """
    try:
        yield
    except DBAPIError as exc:
        if not is_connectivity_error(exc):
            raise
        logger.error("Storage unavailable during %s: %s", operation, exc.orig)
        raise UnavailableException(
            "The message store is temporarily unavailable. Please try again."
        ) from exc
