# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


SERIES_PREFIXES = {
    "invoice": "INV-",
    "quotation": "QUO-",
    "demand_notice": "DN-",
}

NUMBER_PAD = 6


def format_document_number(series: str, number: int) -> str:
    prefix = SERIES_PREFIXES.get(series)
    if prefix is None:
        raise DocumentSequenceError(f"Unknown document series: {series}")
    return f"{prefix}{number:0{NUMBER_PAD}d}"


def next_document_number(series: str) -> str:
    """
    Allocate the next number for a series inside the caller's transaction.

    The counter row is bumped with a single UPDATE so concurrent writers serialize
    on the row. The first allocation for a series inserts the row; a concurrent
    first insert fails on uq_document_sequences_series with IntegrityError and the
    caller's transaction is rolled back.
    """
    if series not in SERIES_PREFIXES:
        raise DocumentSequenceError(f"Unknown document series: {series}")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.series == series)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = db.session.query(DocumentSequence.next_number).filter_by(series=series).scalar()
        return format_document_number(series, current - 1)

    db.session.add(DocumentSequence(series=series, next_number=2))
    db.session.flush()
    return format_document_number(series, 1)
