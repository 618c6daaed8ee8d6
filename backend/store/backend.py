"""
Setup-phase checks run by the management commands before any query.
"""
import logging

from django.db import DatabaseError, connections

from .exceptions import ConnectionError

logger = logging.getLogger(__name__)


def check_backend(using, models=()):
    """
    Make sure the database behind ``using`` is reachable and that the
    tables for ``models`` exist. Raises ConnectionError otherwise.
    """
    connection = connections[using]
    try:
        connection.ensure_connection()
        tables = set(connection.introspection.table_names())
    except DatabaseError as exc:
        raise ConnectionError(f"Could not connect to database {using!r}: {exc}") from exc

    missing = [m._meta.db_table for m in models if m._meta.db_table not in tables]
    if missing:
        raise ConnectionError(
            f"Missing table(s) {', '.join(missing)} in database {using!r}; "
            f"run `manage.py migrate` first"
        )

    logger.info("Connected to database %r (%s)", using, connection.vendor)
