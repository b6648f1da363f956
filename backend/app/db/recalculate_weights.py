"""
Recalcule le poids de toutes les commandes avec les poids catalogue actuels.

    python -m backend.app.db.recalculate_weights --actor-id 1
"""

from __future__ import annotations

import argparse
import logging

from backend.app.core.log_config import configure_logging
from backend.app.db.session import SessionLocal
from backend.services.orders import RecalculationSummary, recalculate_all_order_weights

logger = logging.getLogger(__name__)


def run_recalculation(actor_id: int) -> RecalculationSummary:
    db = SessionLocal()
    try:
        return recalculate_all_order_weights(db, actor_id=actor_id)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--actor-id", type=int, required=True, help="user recorded as updated_by")
    args = parser.parse_args()

    configure_logging()
    summary = run_recalculation(args.actor_id)
    logger.info("success=%s skipped=%s errors=%s", summary.success, summary.skipped, summary.errors)
