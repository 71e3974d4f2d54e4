# Overview: Transaction-scope helpers shared by the sale engine and the inventory ledger.

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import SaleEngineError, TransactionFailed

logger = logging.getLogger(__name__)


def is_sqlite(session: Session) -> bool:
    return session.get_bind().dialect.name == "sqlite"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; write scopes there start
    with BEGIN IMMEDIATE instead (see begin_write).
    """
    return query.with_for_update()


def begin_write(session: Session) -> None:
    """
    Take the database write lock up front on SQLite.

    A deferred SQLite transaction that reads first and writes later can
    deadlock against another writer; BEGIN IMMEDIATE makes concurrent
    write scopes queue on the busy timeout instead. Server databases rely
    on row locks and the conditional stock UPDATE.
    """
    if not is_sqlite(session):
        return
    raw = session.connection().connection.dbapi_connection
    if not getattr(raw, "in_transaction", False):
        session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def write_scope(session: Session, *, operation: str, **context) -> Iterator[Session]:
    """
    One indivisible unit of work: commit on success, full rollback otherwise.

    Engine errors (InvalidInput, NotFound, InsufficientStock) propagate
    unchanged after the rollback. Storage faults become TransactionFailed.
    Nothing is retried here; a caller may re-issue the whole operation.
    """
    try:
        begin_write(session)
        yield session
        session.commit()
    except SaleEngineError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Transaction failed during %s context=%s", operation, context)
        raise TransactionFailed(
            f"{operation} failed; no changes were applied",
            details={"operation": operation, **context},
        ) from exc
    except Exception:
        session.rollback()
        raise
