"""
Error taxonomy for the data-access layer, plus the DRF exception handler
that turns it into HTTP responses.

Hierarchy:
----------
    ConnectionError    setup-phase failure, fatal for the management commands
    QueryError         a backend failure, wrapped with context
      NotFoundError    zero rows where absence is exceptional
      ConstraintError  uniqueness / referential-integrity violation

The underlying backend exception is always chained (``raise ... from exc``),
so ``exc.__cause__`` carries the driver error unchanged.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ConnectionError(Exception):
    """The storage backend could not be reached or is not set up."""


class QueryError(Exception):
    """A query or mutation failed in the storage backend."""


class NotFoundError(QueryError):
    """A lookup that requires at least one row matched nothing."""


class ConstraintError(QueryError):
    """The backend rejected a write on an integrity constraint."""


def custom_exception_handler(exc, context):
    """
    Same contract as the DRF default handler, extended with the
    data-access errors:

    NotFoundError   -> 404
    ConstraintError -> 409
    ValueError      -> 400
    QueryError      -> 500
    """
    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, NotFoundError):
        return Response({'error': str(exc)}, status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, ConstraintError):
        logger.warning("Constraint violation: %s", exc)
        return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)

    if isinstance(exc, ValueError):
        return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, QueryError):
        logger.error("Query failed: %s", exc)
        return Response(
            {'error': 'A database error occurred.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.exception("Unhandled exception: %s", exc)
    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
