"""Briques communes aux services : transaction métier, enums."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.services.errors import (
    AtelierError,
    ConflictError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session) -> Iterator[None]:
    """
    Transaction métier : commit à la sortie, rollback sur n'importe quelle erreur.
    Les erreurs SQLAlchemy sont traduites en erreurs métier.
    """
    try:
        yield
        db.commit()
    except AtelierError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Unique or integrity constraint violated: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("storage failure, transaction rolled back")
        raise PersistenceError(f"Storage failure: {exc}") from exc
    except Exception:
        db.rollback()
        raise


def coerce_enum(enum_cls, value: Any, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}' (allowed: {allowed})", field=field) from None
