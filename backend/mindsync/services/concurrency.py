# Overview: Unit-of-work helpers: row locks, retry on lock/version conflicts, store-failure wrapping.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """The database rejected or failed a read/write. The unit of work was rolled back."""


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows a unit of work is about to change.

    SQLite ignores the clause; the version_id check still catches lost updates there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute one unit of work, rolling back on any failure.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic version conflicts) with exponential backoff. Any other
    SQLAlchemyError is rolled back and re-raised as StoreError; domain
    errors (ValidationError, ConflictError, NotFoundError) propagate as-is.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise StoreError("Database is busy, please retry") from exc
            logger.info("Retrying unit of work after %s (attempt %d)", type(exc).__name__, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Store failure: %s", exc)
            raise StoreError("Database operation failed") from exc
        except Exception:
            db.session.rollback()
            raise
