"""
Transaction helpers for the state-changing services.

Every operation that moves a car between availability states runs inside
one ``transaction.atomic()`` block and takes a row lock on the car, so the
availability check, the overlap check and the writes see one consistent
snapshot.
"""

from __future__ import annotations

import functools
import logging

from django.db import OperationalError, connection, transaction

from .conf import get_setting
from .exceptions import ConflictError, InternalError, RentacarError

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
LOCK_SQLSTATES = {"55P03", "40P01", "40001"}
# SQLite reports lock contention only through the message.
SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def _is_lock_failure(exc: OperationalError) -> bool:
    cause = exc.__cause__
    code = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if code in LOCK_SQLSTATES:
        return True
    return str(exc).lower().startswith(SQLITE_LOCK_MESSAGES)


def apply_lock_timeout() -> None:
    """Bound how long the current transaction waits on row locks."""
    if connection.vendor != "postgresql":
        return
    timeout_ms = int(get_setting("LOCK_TIMEOUT_MS"))
    with connection.cursor() as cursor:
        cursor.execute("SET LOCAL lock_timeout = %d" % timeout_ms)


def service_operation(description: str, *, atomic: bool = True):
    """Run the wrapped service call, by default in a single transaction.

    Domain errors propagate unchanged. Lock timeouts and deadlocks become
    ``ConflictError``; anything else is logged and replaced by an opaque
    ``InternalError``. In every failure case the transaction is rolled back.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                if not atomic:
                    return func(*args, **kwargs)
                with transaction.atomic():
                    return func(*args, **kwargs)
            except RentacarError:
                raise
            except OperationalError as exc:
                if not _is_lock_failure(exc):
                    logger.exception("Failed to %s", description)
                    raise InternalError(f"Failed to {description}.") from exc
                logger.warning("Lock not acquired while trying to %s: %s", description, exc)
                raise ConflictError(
                    "The car is being updated by another request, try again."
                ) from exc
            except Exception as exc:
                logger.exception("Failed to %s", description)
                raise InternalError(f"Failed to {description}.") from exc

        return wrapper

    return decorator
