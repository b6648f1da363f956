from pydantic import BaseModel, Field

from backend.app.db.models.core_types import InventoryType, StoneUnit


class StoneCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(ge=0)
    unit: StoneUnit = StoneUnit.pieces
    weight_per_piece: float = Field(gt=0)
    description: str | None = None


class StoneUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    unit: StoneUnit | None = None
    weight_per_piece: float | None = Field(default=None, gt=0)
    description: str | None = None


class StoneRead(BaseModel):
    id: int
    name: str
    quantity: int  # READ ONLY : modifié uniquement par les commandes
    unit: StoneUnit
    weight_per_piece: float
    description: str | None

    class Config:
        from_attributes = True


class PaperCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    width: float = Field(gt=0)
    quantity: int = Field(ge=0)  # rouleaux
    pieces_per_roll: int = Field(gt=0)
    weight_per_piece: float = Field(gt=0)
    inventory_type: InventoryType = InventoryType.internal


class PaperUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    width: float | None = Field(default=None, gt=0)
    pieces_per_roll: int | None = Field(default=None, gt=0)
    weight_per_piece: float | None = Field(default=None, gt=0)


class PaperRead(BaseModel):
    id: int
    name: str
    width: float
    quantity: int  # READ ONLY : rouleaux
    pieces_per_roll: int
    weight_per_piece: float
    inventory_type: InventoryType
    total_pieces: int

    class Config:
        from_attributes = True
