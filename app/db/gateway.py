"""
Persistence gateway primitives.

The engine never locks in-process. Every state transition is one of:

  insert_if_absent(db, row)                  — INSERT guarded by a unique constraint
  update_if(db, Model, *conditions, **patch) — UPDATE ... WHERE <still in expected state>

Both report a lost race distinctly (False) from success (True) so callers can
branch into re-read or no-op handling.

insert_if_absent commits on its own (it is always the single write of its
operation). update_if only executes; the caller commits once, after every
write of the logical operation has been issued.

Driver / connection failures surface as UnavailableError via
@surfaces_unavailable.
"""
from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.orm import Session

from app.core.errors import UnavailableError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def insert_if_absent(db: Session, row: Any) -> bool:
    """
    Insert and commit `row`. Returns False (after rolling back) when a unique
    constraint rejects it.
    """
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    db.refresh(row)
    return True


def update_if(db: Session, model: type, *conditions: Any, **patch: Any) -> bool:
    """
    Apply `patch` to the single row matching all `conditions`.
    Returns True iff exactly one row was updated.
    """
    stmt = (
        update(model)
        .where(*conditions)
        .values(**patch)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def surfaces_unavailable(fn: F) -> F:
    """Translate transient driver errors raised inside `fn` into UnavailableError."""

    @functools.wraps(fn)
    def wrapper(db: Session, *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(db, *args, **kwargs)
        except _TRANSIENT_ERRORS as exc:
            logger.warning("gateway failure in %s: %s", fn.__name__, exc)
            db.rollback()
            raise UnavailableError() from exc

    return wrapper  # type: ignore[return-value]
