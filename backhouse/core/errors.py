"""
Error taxonomy for the availability engine.

Every failure raised by the services, processors and monitor is one of these.
The HTTP layer maps them to responses in `backhouse.core.exception_handlers`;
batch operations catch them per item and report them in a `BatchReport`.
"""
from contextlib import contextmanager

from tortoise.exceptions import (
    DBConnectionError,
    IntegrityError,
    OperationalError,
    TransactionManagementError,
)


class BackhouseError(Exception):
    status_code = 500
    code = "server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BackhouseError):
    """Unknown menu item, inventory item, order, entry or notification."""
    status_code = 404
    code = "not_found"


class ValidationFailure(BackhouseError):
    """Rejected before any mutation (negative stock, malformed requirement, bad transition)."""
    status_code = 400
    code = "validation_error"


class ConflictError(ValidationFailure):
    status_code = 409
    code = "conflict"


class TransientPersistenceFailure(BackhouseError):
    """The transaction aborted and was rolled back; the caller may retry."""
    status_code = 503
    code = "persistence_unavailable"


@contextmanager
def persistence_errors(action: str):
    """Translates Tortoise failures raised inside the block into the taxonomy."""
    try:
        yield
    except BackhouseError:
        raise
    except IntegrityError as e:
        raise ConflictError(f"{action}: {e}") from e
    except (OperationalError, TransactionManagementError, DBConnectionError) as e:
        raise TransientPersistenceFailure(f"{action}: {e}") from e
