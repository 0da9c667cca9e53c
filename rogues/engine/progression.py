import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from .model import BOSS_TYPE, OPPONENT_POOL, UNIT_TYPES, Cell, Event, State, Unit
from .rng import DRNG
from .session import META_BUFFS, Session

logger = logging.getLogger(__name__)

RECRUITABLE = ["PALADIN", "RANGER", "BERSERKER", "CLERIC", "ROGUE", "SORCERER"]
CHOICES_PER_CATEGORY = 3
LEGENDARY = "legendary"

@dataclass(frozen=True)
class StatBuff:
    """Permanent per-unit upgrade offered after a victory"""
    id: str
    name: str
    description: str
    modifiers: Dict[str, int] = field(default_factory=dict)

STAT_BUFFS: Dict[str, StatBuff] = {
    "veteran": StatBuff("veteran", "Veteran Training", "+10 Damage", {"damage": 10}),
    "toughness": StatBuff("toughness", "Enhanced Toughness", "+30 Max HP", {"max_health": 30}),
    "agility": StatBuff("agility", "Greater Agility", "+1 Movement", {"move_range": 1}),
    "precision": StatBuff("precision", "Precision Strikes", "+5 Initiative & +5 Damage",
                          {"initiative": 5, "damage": 5}),
    "ranged_training": StatBuff("ranged_training", "Ranged Training",
                                "Gain a ranged attack (range 3), or +2 range"),
    "heroic": StatBuff("heroic", "Heroic Status", "+20 HP, +5 DMG, +1 MOV",
                       {"max_health": 20, "damage": 5, "move_range": 1}),
}

def enemy_budget(battle_number: int, settings) -> int:
    return settings.enemy_base_points + (battle_number - 1) * settings.enemy_points_per_battle

def stat_scale(battle_number: int, settings) -> float:
    return 1 + (battle_number - 1) * settings.enemy_scale_per_battle

def is_boss_battle(battle_number: int, settings) -> bool:
    return settings.boss_interval > 0 and battle_number % settings.boss_interval == 0

def spawn_cells(state: State, settings) -> List[Cell]:
    """Free cells of the spawn zone (rightmost columns), row by row."""
    first = state.width - settings.spawn_columns
    return [(x, y) for y in range(state.height) for x in range(first, state.width)
            if state.unit_at(x, y) is None]

def generate_opponent_roster(state: State, battle_number: int, rng: DRNG, settings,
                             types: Sequence[str] = OPPONENT_POOL,
                             budget: Optional[int] = None) -> List[Unit]:
    """Spend the battle's point budget on randomly chosen, randomly placed opponents."""
    remaining = enemy_budget(battle_number, settings) if budget is None else budget
    scale = stat_scale(battle_number, settings)
    free = spawn_cells(state, settings)
    spawned: List[Unit] = []

    if is_boss_battle(battle_number, settings):
        free_set = set(free)
        blocks = [(x, y) for x, y in free
                  if {(x + 1, y), (x, y + 1), (x + 1, y + 1)} <= free_set]
        if blocks:
            bx, by = rng.choice(blocks)
            boss = state.add_unit(Unit.from_type(f"o{battle_number}_boss", BOSS_TYPE, bx, by, scale))
            spawned.append(boss)
            remaining -= UNIT_TYPES[BOSS_TYPE].cost
            claimed = set(boss.occupied_cells())
            free = [c for c in free if c not in claimed]
            logger.info(f"Battle {battle_number}: {boss.name} takes the field at {(bx, by)}")

    cells = rng.shuffled(free)
    while cells:
        affordable = [t for t in types if UNIT_TYPES[t].cost <= remaining]
        if not affordable:
            break
        type_id = rng.choice(affordable)
        x, y = cells.pop()
        unit = Unit.from_type(f"o{battle_number}_{len(spawned) + 1}", type_id, x, y, scale)
        spawned.append(state.add_unit(unit))
        remaining -= UNIT_TYPES[type_id].cost

    logger.info(f"Battle {battle_number}: spawned {len(spawned)} opponents, "
                f"{remaining} points unspent, stats x{scale:.2f}")
    return spawned

def stat_buff_modifiers(buff_id: str, unit: Unit) -> Dict[str, int]:
    if buff_id == "ranged_training":
        return {"ranged_range": 3 if unit.ranged_range == 0 else 2}
    return dict(STAT_BUFFS[buff_id].modifiers)

def legendary_eligible(unit: Unit) -> bool:
    special = unit.get_type().legendary
    return (not unit.is_dead and unit.side == "PLAYER" and special is not None
            and special not in unit.special_abilities)

@dataclass
class RewardOffer:
    """Choices presented after a victory; nothing is applied until confirmed."""
    battle_number: int
    recruits: List[str] = field(default_factory=list)
    buffs: List[str] = field(default_factory=list)
    magic: List[str] = field(default_factory=list)
    selections: Dict[str, Tuple[str, Optional[str]]] = field(default_factory=dict)

    def options(self, category: str) -> List[str]:
        return {"recruit": self.recruits, "buff": self.buffs, "magic": self.magic}.get(category, [])

    @property
    def categories(self) -> List[str]:
        return [c for c in ("recruit", "buff", "magic") if self.options(c)]

    def select(self, category: str, option_id: str, unit: Optional[Unit] = None) -> bool:
        """Record one choice. Buffs must name a living player unit."""
        if option_id not in self.options(category):
            return False
        unit_id = None
        if category == "buff":
            if unit is None or unit.is_dead or unit.side != "PLAYER":
                return False
            if option_id == LEGENDARY and not legendary_eligible(unit):
                return False
            unit_id = unit.id
        self.selections[category] = (option_id, unit_id)
        return True

    @property
    def is_complete(self) -> bool:
        return all(c in self.selections for c in self.categories)

    def to_dict(self) -> Dict:
        return {
            "battle_number": self.battle_number,
            "recruit": self.recruits,
            "buff": self.buffs,
            "magic": self.magic,
            "selections": {c: list(s) for c, s in self.selections.items()},
        }

def generate_rewards(session: Session, rng: DRNG, settings) -> RewardOffer:
    n = session.battle_number
    offer = RewardOffer(battle_number=n)
    if n >= 2 and n % 2 == 0:
        offer.recruits = rng.sample(RECRUITABLE, CHOICES_PER_CATEGORY)
    offer.buffs = rng.sample(list(STAT_BUFFS), CHOICES_PER_CATEGORY)
    if any(legendary_eligible(u) for u in session.state.living("PLAYER")) \
            and rng.bernoulli(settings.legendary_chance):
        offer.buffs[rng.choice(range(len(offer.buffs)))] = LEGENDARY
    offer.magic = rng.sample(session.available_metas(), CHOICES_PER_CATEGORY)
    logger.info(f"Rewards for battle {n}: {offer.to_dict()}")
    return offer

def recruit_cell(state: State, settings) -> Optional[Cell]:
    """First free row of column 0, else any free cell of the placement zone."""
    for y in range(state.height):
        if state.unit_at(0, y) is None:
            return 0, y
    for x in range(settings.placement_columns):
        for y in range(state.height):
            if state.unit_at(x, y) is None:
                return x, y
    return None

def apply_rewards(session: Session, offer: RewardOffer, recruit_id: str, settings) -> List[Event]:
    """Apply every selection of a complete offer."""
    state = session.state
    evts: List[Event] = []

    if "recruit" in offer.selections:
        type_id, _ = offer.selections["recruit"]
        cell = recruit_cell(state, settings)
        if cell is None:
            logger.warning(f"No room to place recruit {type_id}")
        else:
            unit = state.add_unit(Unit.from_type(recruit_id, type_id, *cell))
            evts.append(state.event("UnitPlaced", {"unit_id": unit.id, "type": type_id,
                                                   "x": unit.x, "y": unit.y, "side": unit.side}))

    if "buff" in offer.selections:
        buff_id, unit_id = offer.selections["buff"]
        unit = state.units[unit_id]
        if buff_id == LEGENDARY:
            special = unit.get_type().legendary
            unit.special_abilities.add(special)
            label = special.value.replace("_", " ").upper() + "!"
        else:
            unit.apply_modifiers(stat_buff_modifiers(buff_id, unit))
            label = STAT_BUFFS[buff_id].name
        evts.append(state.event("Buff", {"unit_id": unit.id, "label": label, "color": "#6B8B5B"}))

    if "magic" in offer.selections:
        meta_id, _ = offer.selections["magic"]
        session.acquire_meta(meta_id)
        evts.append(state.event("Notice", {"text": f"{META_BUFFS[meta_id].name} Acquired!",
                                           "x": None, "y": None, "color": "#A68966"}))
    evts.append(state.event("RewardsConfirmed", {k: list(v) for k, v in offer.selections.items()}))
    return evts
