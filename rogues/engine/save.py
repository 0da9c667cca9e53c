from typing import Dict, List
from pydantic import BaseModel, Field
from .model import SpecialAttack, State, StatusKind, Unit

class StatusIn(BaseModel):
    value: float
    rounds: int  # -1 = permanent

class RosterEntry(BaseModel):
    """One surviving player unit as carried between battles."""
    id: str
    type: str
    x: int
    y: int
    health: int
    permanent_modifiers: Dict[str, int] = Field(default_factory=dict)
    bloodlust_stacks: int = 0
    special_abilities: List[str] = Field(default_factory=list)
    statuses: Dict[str, StatusIn] = Field(default_factory=dict)

class SaveState(BaseModel):
    """Persisted campaign: battle number, player roster and meta buffs."""
    battle_number: int = 1
    roster: List[RosterEntry] = Field(default_factory=list)
    meta_buffs: Dict[str, int] = Field(default_factory=dict)

def to_entry(unit: Unit) -> RosterEntry:
    return RosterEntry(
        id=unit.id,
        type=unit.unit_type_id,
        x=unit.x,
        y=unit.y,
        health=unit.health,
        permanent_modifiers=dict(unit.stat_modifiers),
        bloodlust_stacks=unit.bloodlust_stacks,
        special_abilities=sorted(s.value for s in unit.special_abilities),
        statuses={k.value: StatusIn(value=s.value, rounds=s.rounds)
                  for k, s in unit.statuses.items()},
    )

def from_entry(entry: RosterEntry) -> Unit:
    """Rebuild a unit from its template plus the saved deltas."""
    unit = Unit.from_type(entry.id, entry.type, entry.x, entry.y)
    unit.stat_modifiers = dict(entry.permanent_modifiers)
    unit.bloodlust_stacks = entry.bloodlust_stacks
    unit.special_abilities = {SpecialAttack(s) for s in entry.special_abilities}
    for kind, s in entry.statuses.items():
        unit.apply_status(StatusKind(kind), s.value, s.rounds)
    unit.health = max(1, min(entry.health, unit.max_health))
    return unit

def roster_from_state(state: State) -> List[RosterEntry]:
    return [to_entry(u) for u in state.living("PLAYER")]
