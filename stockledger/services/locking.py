"""
Row-lock helpers shared by the ledger, the projection and fractionation.

Every stock mutation runs inside transaction.atomic() and locks the
touched Stock rows with select_for_update(), always in primary key order.
"""

from contextlib import contextmanager

from django.db import DEFAULT_DB_ALIAS, OperationalError, connections

from stockledger.conf import stockledger_settings
from stockledger.exceptions import LockTimeout

# lock_not_available, deadlock_detected
_LOCK_SQLSTATES = {'55P03', '40P01'}


def set_lock_timeout(using: str = DEFAULT_DB_ALIAS) -> None:
    """
    Bound lock waits for the rest of the current transaction.

    PostgreSQL only; other backends keep their own busy timeout.
    """
    timeout = stockledger_settings.LOCK_TIMEOUT_MS
    connection = connections[using]
    if not timeout or connection.vendor != 'postgresql':
        return
    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{int(timeout)}ms"])


def is_lock_error(exc: BaseException) -> bool:
    cause = exc.__cause__ or exc
    sqlstate = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if sqlstate in _LOCK_SQLSTATES:
        return True
    return 'database is locked' in str(exc).lower()


@contextmanager
def translate_lock_errors(**context):
    """Re-raise lock wait failures as LockTimeout."""
    try:
        yield
    except OperationalError as exc:
        if is_lock_error(exc):
            raise LockTimeout(**context) from exc
        raise
