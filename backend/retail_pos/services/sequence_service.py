# Overview: Allocation of human-readable sale numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models import SaleSequence
from ..models.sales import SALE_NUMBER_START

SALE_SEQUENCE = "sale"


def ensure_sale_sequence(session: Session) -> SaleSequence:
    """Create the counter row if missing. Caller commits."""
    seq = session.get(SaleSequence, SALE_SEQUENCE)
    if seq is None:
        seq = SaleSequence(name=SALE_SEQUENCE, next_number=SALE_NUMBER_START)
        session.add(seq)
        session.flush()
    return seq


def next_sale_number(session: Session) -> int:
    """
    Atomically allocate the next sale number.

    Must run inside the caller's write scope: the UPDATE takes the row lock,
    so the number is released only if the sale commits.
    """
    stmt = (
        update(SaleSequence)
        .where(SaleSequence.name == SALE_SEQUENCE)
        .values(next_number=SaleSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = session.execute(stmt)
    if result.rowcount:
        current = (
            session.query(SaleSequence.next_number)
            .filter(SaleSequence.name == SALE_SEQUENCE)
            .scalar()
        )
        return current - 1

    # First sale ever: the row is created inside the same scope
    session.add(SaleSequence(name=SALE_SEQUENCE, next_number=SALE_NUMBER_START + 1))
    session.flush()
    return SALE_NUMBER_START
