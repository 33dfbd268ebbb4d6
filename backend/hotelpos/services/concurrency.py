# Overview: Transaction boundary and retry helpers shared by every mutating service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import PosError, OperationFailedError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Every retry starts from a rolled-back session,
    so func must re-read whatever it checks.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def unit_of_work(func, *, operation: str, attempts: int = 3):
    """
    Run func as one atomic transaction.

    Commits when func returns, rolls back when it raises. Business errors
    (PosError) propagate unchanged; storage failures are logged and surfaced as
    OperationFailedError("Failed to <operation>").
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except PosError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError):
            # run_with_retry rolls back and decides whether to try again
            raise
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to %s", operation)
            raise OperationFailedError(f"Failed to {operation}")
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts)
    except (OperationalError, StaleDataError):
        current_app.logger.exception("Failed to %s after %d attempts", operation, attempts)
        raise OperationFailedError(f"Failed to {operation}")
