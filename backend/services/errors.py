"""
Erreurs métier.

Toutes portent un `code` stable + un `context` (entité, identifiant, chiffres)
pour que la couche HTTP puisse construire un message sans parser le texte.
"""

from __future__ import annotations

from typing import Any


class AtelierError(Exception):
    code = "error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "error": self.code, **self.context}


class ValidationError(AtelierError):
    code = "validation_error"

    def __init__(self, message: str, *, field: str | None = None, **context: Any) -> None:
        super().__init__(message, field=field, **context)
        self.field = field


class NotFoundError(AtelierError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity.capitalize()} {entity_id} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(AtelierError):
    code = "insufficient_stock"

    def __init__(
        self,
        *,
        material: str,
        material_id: int,
        name: str,
        available: int,
        requested: int,
    ) -> None:
        super().__init__(
            f"Insufficient stock for {material} '{name}'. Available: {available}, Required: {requested}",
            material=material,
            material_id=material_id,
            name=name,
            available=available,
            requested=requested,
        )
        self.material = material
        self.material_id = material_id
        self.name = name
        self.available = available
        self.requested = requested


class ConflictError(AtelierError):
    code = "conflict"


class PermissionDeniedError(AtelierError):
    code = "permission_denied"


class PersistenceError(AtelierError):
    code = "persistence_error"
