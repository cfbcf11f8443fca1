"""Single-row reads and writes against the metadata store.

Every write commits on its own. Multi-row consistency is the job of the saga
layer, which pairs each write with a compensating write.
"""
from __future__ import annotations

from typing import Any, TypeVar

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from .errors import CollaboratorFailure


Row = TypeVar("Row", bound=db.Model)


def _fail(operation: str, error: SQLAlchemyError) -> CollaboratorFailure:
    db.session.rollback()
    current_app.logger.warning("Metadata store %s failed: %s", operation, error)
    return CollaboratorFailure("metadata_store", operation)


def insert(row: Row) -> Row:
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as error:
        raise _fail("insert", error) from error
    return row


def update(row: Row, **values: Any) -> Row:
    try:
        for key, value in values.items():
            setattr(row, key, value)
        db.session.commit()
    except SQLAlchemyError as error:
        raise _fail("update", error) from error
    return row


def delete(row: db.Model) -> None:
    try:
        db.session.delete(row)
        db.session.commit()
    except SQLAlchemyError as error:
        raise _fail("delete", error) from error


def execute(statement: Any) -> int:
    """Run a single write statement and return the number of matched rows."""
    try:
        result = db.session.execute(statement)
        db.session.commit()
    except SQLAlchemyError as error:
        raise _fail("execute", error) from error
    return result.rowcount


def scalar(statement: Any) -> Any:
    """Run a single-value read against the metadata store."""
    try:
        return db.session.execute(statement).scalar()
    except SQLAlchemyError as error:
        raise _fail("read", error) from error
