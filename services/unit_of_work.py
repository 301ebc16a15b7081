"""
Commit-or-rollback wrapper shared by every write path.

Stock writes read the item row with ``FOR UPDATE`` and then update it with a
compare-and-swap on the value they read. PostgreSQL serialises on the row
lock; SQLite ignores ``FOR UPDATE`` so the swap is what catches a lost
update there. A failed swap raises ``StaleWriteError`` and
``run_in_transaction`` replays the whole unit from a fresh read.
"""
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from exceptions import StaleWriteError, TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaction rolled back after database error")
        raise TransactionError() from exc
    except Exception:
        db.rollback()
        raise


def run_in_transaction(
        db: Session,
        work: Callable[[Session], T],
        attempts: Optional[int] = None,
) -> T:
    attempts = attempts or settings.STOCK_WRITE_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            with unit_of_work(db):
                return work(db)
        except StaleWriteError as exc:
            logger.warning("Concurrent write detected (attempt %s/%s): %s", attempt, attempts, exc.message)
            if attempt == attempts:
                raise TransactionError("Stock changed concurrently, please retry") from exc
    raise TransactionError()
