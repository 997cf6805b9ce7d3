"""Order related pydantic models.

- OrderState is an Enum so only the four known states round-trip through memory.
- OrderLine enforces quantity >= 1.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderState(str, Enum):
    empty = "empty"
    building = "building"
    awaiting_confirmation = "awaiting_confirmation"
    handed_off = "handed_off"


class OrderLine(BaseModel):
    item: str
    price: float = 0.0
    quantity: int = Field(default=1, ge=1)


class ItemMention(BaseModel):
    item: str
    quantity: Optional[int] = None


class OrderExtraction(BaseModel):
    """What the model extracts from the latest user turn."""
    items: List[ItemMention] = Field(default_factory=list)
    wants_to_finish: bool = False
