from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import User
from backend.app.db.session import SessionLocal

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    user_id: int | None = Header(default=None, alias="X-User-Id"),
) -> User:
    """
    Identité de l'appelant.
    L'authentification (JWT, session...) est faite en amont ; ici on ne
    fait que résoudre l'utilisateur transmis par le proxy.
    """
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = db.get(User, user_id)
    if not user or not user.active:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
