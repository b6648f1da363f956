import enum

class Role(str, enum.Enum):
    admin = "admin"
    user = "user"

class DesignStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"

class OrderType(str, enum.Enum):
    internal = "internal"
    out = "out"

class OrderStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"

class StoneUnit(str, enum.Enum):
    pieces = "pieces"
    kg = "kg"
    grams = "grams"

class InventoryType(str, enum.Enum):
    internal = "internal"
    out = "out"
