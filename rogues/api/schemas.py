from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field

class StartRequest(BaseModel):
    """Battle start request schema."""
    seed: Optional[int] = None

class ArmyIn(BaseModel):
    counts: Dict[str, int]

class PlaceIn(BaseModel):
    type: str
    x: int
    y: int

class TileIn(BaseModel):
    x: int
    y: int

class UnitIn(BaseModel):
    unit_id: str

class SpellIn(BaseModel):
    spell_id: str

class RewardIn(BaseModel):
    """Reward selection schema."""
    category: Literal["recruit", "buff", "magic"]
    option_id: str
    unit_id: Optional[str] = None

class ActionResponse(BaseModel):
    accepted: bool
    events: int = Field(default=0, description="Events produced by the action")

class EventsResponse(BaseModel):
    """Events response schema."""
    next_offset: int
    events: list[dict]
