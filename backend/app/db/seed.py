from __future__ import annotations

import logging

from sqlalchemy import select

from backend.app.core.log_config import configure_logging
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import Design, Paper, Stone, User
from backend.app.db.models.core_types import InventoryType, Role
from backend.services import catalog

logger = logging.getLogger(__name__)


def run_seed():
    db = SessionLocal()
    try:
        # 1) Admin
        admin = db.scalar(select(User).where(User.email == "admin@atelier.local"))
        if not admin:
            admin = User(name="ADMIN", email="admin@atelier.local", role=Role.admin, active=True)
            db.add(admin)
            db.commit()

        # 2) Un design de démo
        design = db.scalar(select(Design).where(Design.number == "D-0001"))
        if not design:
            design = Design(name="Demo design", number="D-0001", created_by=admin.id)
            db.add(design)
            db.commit()

        # 3) Matières (via le catalogue, pour garder les mêmes validations)
        if not db.scalar(select(Stone).where(Stone.name == "Crystal 4mm")):
            catalog.create_stone(db, name="Crystal 4mm", quantity=5000, weight_per_piece=0.05, actor_id=admin.id)
        if not db.scalar(select(Stone).where(Stone.name == "Pearl 6mm")):
            catalog.create_stone(db, name="Pearl 6mm", quantity=1200, weight_per_piece=0.2, actor_id=admin.id)
        if not db.scalar(
            select(Paper).where(Paper.name == "Kraft 30cm", Paper.inventory_type == InventoryType.internal)
        ):
            catalog.create_paper(
                db,
                name="Kraft 30cm",
                width=30,
                quantity=20,
                pieces_per_roll=100,
                weight_per_piece=1.5,
                actor_id=admin.id,
            )

        logger.info("SEED OK: admin=%s, design=%s", admin.email, design.number)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
