# Overview: Per-organization document number allocation (ADJ-00001, SALE-00001).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


DOCUMENT_PREFIXES = {
    "stock_adjustment": "ADJ",
    "sale": "SALE",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def format_document_number(prefix: str, number: int, pad: int = 5) -> str:
    return f"{prefix}-{number:0{pad}d}"


def _bump(organization_id: int, document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.organization_id == organization_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(organization_id=organization_id, document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(
    *,
    organization_id: int,
    document_type: str,
    prefix: str | None = None,
    pad: int = 5,
) -> str:
    """
    Allocate the next document number for an organization/type.

    Runs inside the caller's transaction and does not commit. The UPDATE
    takes a row lock on the sequence row, so a concurrent allocation waits
    until the caller commits or rolls back; a rollback releases the number.
    """
    if not organization_id:
        raise DocumentSequenceError("organization_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    prefix = prefix or DOCUMENT_PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"No prefix configured for {document_type}")

    number = _bump(organization_id, document_type)
    if number is None:
        # First allocation: create the row inside a savepoint so a racing
        # insert only undoes this step.
        try:
            with db.session.begin_nested():
                db.session.add(
                    DocumentSequence(
                        organization_id=organization_id,
                        document_type=document_type,
                        next_number=2,
                    )
                )
            number = 1
        except IntegrityError:
            number = _bump(organization_id, document_type)
            if number is None:
                raise DocumentSequenceError("Could not allocate document number")

    return format_document_number(prefix, number, pad)
