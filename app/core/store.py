from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import TransactionError
from app.core.extensions import db

log = structlog.get_logger(__name__)


@contextmanager
def transaction() -> Iterator[Session]:
    """Run a unit of work on the request session: commit all of it or none of it.

    Storage failures (constraint violations, lost connections) are rolled back
    and re-raised as :class:`TransactionError`; domain errors are rolled back
    and propagate unchanged. Nothing here retries.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.error("transaction_rolled_back", error_type=type(exc).__name__, detail=str(exc))
        raise TransactionError("The operation could not be completed") from exc
    except Exception:
        session.rollback()
        raise
