import os

import pytest
from sqlalchemy.orm import Session

# l'engine module-level (backend.app.db.session) ne doit jamais viser la base de dev
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from backend.app.db.base import Base  # noqa: E402
from backend.app.db.session import build_engine, build_sessionmaker  # noqa: E402
from backend.app.db.models.models_v1 import Design, Paper, Stone, User  # noqa: E402
from backend.app.db.models.core_types import InventoryType, Role  # noqa: E402


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Base SQLite jetable par test (fichier dans tmp_path).

    Même fabrique d'engine que la prod : foreign keys + BEGIN IMMEDIATE,
    donc plusieurs sessions/threads se sérialisent comme avec FOR UPDATE.
    """
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'atelier.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- master data ----------
@pytest.fixture
def admin(db_session) -> User:
    user = User(name="ADMIN", email="admin@test.local", role=Role.admin, active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def operator(db_session) -> User:
    user = User(name="OPERATOR", email="operator@test.local", role=Role.user, active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def design(db_session, admin) -> Design:
    d = Design(name="Rosace", number="D-001", created_by=admin.id)
    db_session.add(d)
    db_session.commit()
    return d


@pytest.fixture
def make_stone(db_session):
    def _make(name="Crystal", quantity=100, weight_per_piece=0.5) -> Stone:
        stone = Stone(name=name, quantity=quantity, weight_per_piece=weight_per_piece)
        db_session.add(stone)
        db_session.commit()
        return stone

    return _make


@pytest.fixture
def make_paper(db_session):
    def _make(
        name="Kraft",
        quantity=3,
        pieces_per_roll=50,
        weight_per_piece=2.0,
        inventory_type=InventoryType.internal,
    ) -> Paper:
        paper = Paper(
            name=name,
            width=30,
            quantity=quantity,
            pieces_per_roll=pieces_per_roll,
            weight_per_piece=weight_per_piece,
            inventory_type=inventory_type,
        )
        db_session.add(paper)
        db_session.commit()
        return paper

    return _make
