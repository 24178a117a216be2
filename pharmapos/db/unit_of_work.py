# pharmapos/db/unit_of_work.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pharmapos.core.config import settings
from pharmapos.core.errors import ConcurrencyConflict, PersistenceFailure, PharmacyError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# lost optimistic version check, lock wait timeout / deadlock, unique collision
RETRYABLE_ERRORS = (StaleDataError, OperationalError, IntegrityError)


def run_unit_of_work(
    db: Session,
    work: Callable[[], T],
    *,
    label: str,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run ``work`` and commit it as one transaction.

    Any failure rolls the whole transaction back. Conflicts with concurrent
    writers are retried from scratch up to ``max_attempts`` times; domain
    errors (PharmacyError) are never retried.
    """
    attempts = max(1, int(max_attempts or settings.CHECKOUT_MAX_ATTEMPTS))
    last_exc: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except PharmacyError:
            db.rollback()
            raise
        except RETRYABLE_ERRORS as exc:
            db.rollback()
            last_exc = exc
            logger.warning(
                "%s: conflict on attempt %d/%d (%s)",
                label, attempt, attempts, exc.__class__.__name__,
            )
            if attempt < attempts:
                time.sleep(settings.RETRY_BACKOFF_SECONDS * attempt)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("%s: database failure, rolled back", label)
            raise PersistenceFailure(
                f"{label} could not be saved; nothing was written",
                details={"reason": exc.__class__.__name__},
            ) from exc
        except Exception:
            db.rollback()
            raise

    if isinstance(last_exc, IntegrityError):
        raise PersistenceFailure(
            f"{label} could not be saved after {attempts} attempts; nothing was written",
            details={"attempts": attempts, "reason": "IntegrityError"},
        ) from last_exc

    raise ConcurrencyConflict(
        f"{label} conflicted with concurrent updates {attempts} times; please retry",
        details={"attempts": attempts},
    ) from last_exc
