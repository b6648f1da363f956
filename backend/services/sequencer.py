"""
Numérotation des commandes : ORD-YYYYMMDD-NNN.

NNN = compteur journalier stocké dans order_sequences (une ligne par jour).
L'incrément est un UPDATE atomique dans la transaction de création :
- deux créations concurrentes le même jour ne peuvent pas lire la même valeur
- si la création est rollback, l'incrément l'est aussi
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.config import ORDER_TIMEZONE
from backend.app.db.models.models_v1 import Order, OrderSequence
from backend.services.errors import ConflictError

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"
MAX_COUNTER_ATTEMPTS = 3


def order_day(now: datetime | None = None) -> date:
    """Jour calendaire (ORDER_TIMEZONE) ; un datetime naïf est pris tel quel."""
    tz = ZoneInfo(ORDER_TIMEZONE)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(tz).date()


def format_order_number(day: date, seq: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{day:%Y%m%d}-{seq:03d}"


def _orders_already_numbered(db: Session, day: date) -> int:
    """
    Nombre de commandes déjà créées ce jour-là.
    Si des commandes ont été supprimées (trous), on repart du plus grand
    suffixe pour ne jamais réattribuer un numéro existant.
    """
    prefix = f"{ORDER_NUMBER_PREFIX}-{day:%Y%m%d}-"
    numbers = db.execute(
        select(Order.order_number).where(Order.order_number.like(f"{prefix}%"))
    ).scalars().all()

    highest = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return max(len(numbers), highest)


def _increment(db: Session, day: date) -> bool:
    result = db.execute(
        update(OrderSequence)
        .where(OrderSequence.day == day)
        .values(last_seq=OrderSequence.last_seq + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def next_order_number(db: Session, now: datetime | None = None) -> str:
    """
    Réserve le prochain numéro du jour.

    Première commande du jour : la ligne compteur est créée à partir du
    nombre de commandes déjà présentes pour ce jour (1 + count).
    Doit être appelé dans la transaction qui persiste la commande.
    """
    day = order_day(now)

    for _ in range(MAX_COUNTER_ATTEMPTS):
        if _increment(db, day):
            break

        seed = _orders_already_numbered(db, day) + 1
        try:
            with db.begin_nested():
                db.add(OrderSequence(day=day, last_seq=seed))
            break
        except IntegrityError:
            # une autre transaction a créé la ligne du jour entre-temps
            logger.info("order sequence row for %s created concurrently, retrying", day)
    else:
        raise ConflictError(f"Could not reserve an order number for {day:%Y-%m-%d}", day=day.isoformat())

    seq = db.execute(select(OrderSequence.last_seq).where(OrderSequence.day == day)).scalar_one()
    return format_order_number(day, int(seq))
