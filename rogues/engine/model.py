import math
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Set, Tuple
from enum import Enum

Side = Literal["PLAYER", "OPPONENT"]
Cell = Tuple[int, int]  # (x, y) grid coordinates

PERMANENT = -1  # Status duration that never counts down

def opposing(side: Side) -> Side:
    return "OPPONENT" if side == "PLAYER" else "PLAYER"

class EffectKind(Enum):
    """Kinds of always-on passive effects a unit type can carry"""
    RANGED_DEFENSE = "ranged_defense"  # value = fraction of ranged damage ignored
    DAMAGE_TAKEN = "damage_taken"      # value = multiplier on incoming damage
    HEALING_AURA = "healing_aura"      # value = heal spell bonus per living unit
    MANA_REGEN = "mana_regen"          # value = extra mana per round per living unit
    SPELL_POWER = "spell_power"        # value = spell power bonus per living unit
    BLOODLUST = "bloodlust"            # value = permanent damage per killing blow
    SELF_REGEN = "self_regen"          # value = health restored at turn start
    HIT_AND_RUN = "hit_and_run"        # returns to turn-start cell after attacking
    ON_HIT_CRIPPLE = "on_hit_cripple"  # value = move penalty, rounds = duration

class SpecialAttack(Enum):
    """Special attack flags, native to a type or unlocked as legendary rewards"""
    DOUBLE_STRIKE = "double_strike"
    CLEAVE = "cleave"
    RICOCHET = "ricochet"
    PIERCING = "piercing"

class StatusKind(Enum):
    """Timed (or permanent) per-unit modifiers"""
    SHIELD = "shield"          # value = fraction of damage blocked
    BLESS = "bless"            # value = damage multiplier
    HASTE = "haste"            # value = move bonus
    REGENERATE = "regenerate"  # value = heal per turn
    SLOW = "slow"              # value = move penalty
    CRIPPLE = "cripple"        # value = move penalty

# Statuses whose counters tick down after regeneration, in this order
TIMED_STATUSES = (StatusKind.HASTE, StatusKind.SHIELD, StatusKind.BLESS,
                  StatusKind.SLOW, StatusKind.CRIPPLE)

@dataclass(frozen=True)
class PassiveEffect:
    kind: EffectKind
    value: float = 0.0
    rounds: int = 0

@dataclass(frozen=True)
class Passive:
    """A named passive; always a list of effects, even when there is one."""
    name: str
    description: str
    effects: Tuple[PassiveEffect, ...] = ()

@dataclass(frozen=True)
class UnitType:
    """Template defining characteristics of a unit type"""
    name: str
    side: Side
    health: int
    damage: int
    move_range: int
    initiative: int
    cost: int
    ranged_range: int = 0
    size: int = 1  # Footprint is size x size cells
    passives: Tuple[Passive, ...] = ()
    specials: Tuple[SpecialAttack, ...] = ()  # Always-on special attacks
    legendary: Optional[SpecialAttack] = None  # Unlockable as a reward
    boss_spells: Tuple[str, ...] = ()
    mana: int = 0
    mana_regen: int = 0

    def effects(self, kind: EffectKind) -> List[PassiveEffect]:
        return [e for p in self.passives for e in p.effects if e.kind == kind]

    def has_effect(self, kind: EffectKind) -> bool:
        return bool(self.effects(kind))

    def effect_total(self, kind: EffectKind) -> float:
        return sum(e.value for e in self.effects(kind))

# Predefined unit types
UNIT_TYPES: Dict[str, UnitType] = {
    "KNIGHT": UnitType(
        name="Knight", side="PLAYER",
        health=100, damage=25, move_range=4, initiative=12, cost=200,
        passives=(Passive("Heavy Armor", "-50% damage from ranged attacks",
                          (PassiveEffect(EffectKind.RANGED_DEFENSE, 0.5),)),),
        legendary=SpecialAttack.CLEAVE,
    ),
    "ARCHER": UnitType(
        name="Archer", side="PLAYER",
        health=60, damage=35, move_range=2, ranged_range=6, initiative=15, cost=300,
        legendary=SpecialAttack.RICOCHET,
    ),
    "WIZARD": UnitType(
        name="Wizard", side="PLAYER",
        health=40, damage=45, move_range=2, ranged_range=4, initiative=10, cost=400,
        passives=(Passive("Arcane Channeling", "Each Wizard increases mana regen by +1 per turn",
                          (PassiveEffect(EffectKind.MANA_REGEN, 1),)),),
        legendary=SpecialAttack.RICOCHET,
    ),
    "PALADIN": UnitType(
        name="Paladin", side="PLAYER",
        health=150, damage=50, move_range=4, initiative=9, cost=800,
        passives=(Passive("Divine Protection", "-50% ranged damage taken, +50% healing received",
                          (PassiveEffect(EffectKind.RANGED_DEFENSE, 0.5),
                           PassiveEffect(EffectKind.HEALING_AURA, 0.5))),),
        legendary=SpecialAttack.CLEAVE,
    ),
    "RANGER": UnitType(
        name="Ranger", side="PLAYER",
        health=70, damage=50, move_range=2, ranged_range=10, initiative=13, cost=800,
        passives=(Passive("Eagle Eye", "10 tile range"),),
        legendary=SpecialAttack.PIERCING,
    ),
    "BERSERKER": UnitType(
        name="Berserker", side="PLAYER",
        health=90, damage=50, move_range=4, initiative=11, cost=800,
        passives=(
            Passive("Reckless", "Damage taken is +50%",
                    (PassiveEffect(EffectKind.DAMAGE_TAKEN, 1.5),)),
            Passive("Bloodlust", "Killing blow permanently increases damage by 15",
                    (PassiveEffect(EffectKind.BLOODLUST, 15),)),
            Passive("Fury", "Strikes twice in melee"),
        ),
        specials=(SpecialAttack.DOUBLE_STRIKE,),
        legendary=SpecialAttack.CLEAVE,
    ),
    "CLERIC": UnitType(
        name="Cleric", side="PLAYER",
        health=80, damage=15, move_range=2, ranged_range=4, initiative=10, cost=500,
        passives=(Passive("Blessed Touch", "+50% healing done, ranged attacks (4 tiles)",
                          (PassiveEffect(EffectKind.HEALING_AURA, 0.5),)),),
    ),
    "ROGUE": UnitType(
        name="Rogue", side="PLAYER",
        health=55, damage=40, move_range=8, initiative=16, cost=500,
        passives=(Passive("Shadow Step", "Returns to starting position after attack",
                          (PassiveEffect(EffectKind.HIT_AND_RUN),)),),
        legendary=SpecialAttack.DOUBLE_STRIKE,
    ),
    "SORCERER": UnitType(
        name="Sorcerer", side="PLAYER",
        health=50, damage=55, move_range=2, ranged_range=4, initiative=14, cost=800,
        passives=(Passive("Arcane Mastery", "+50% spell damage",
                          (PassiveEffect(EffectKind.SPELL_POWER, 0.5),)),),
        legendary=SpecialAttack.PIERCING,
    ),
    # Opponent types with point costs
    "ORC_WARRIOR": UnitType(
        name="Orc Warrior", side="OPPONENT",
        health=50, damage=25, move_range=4, initiative=10, cost=250,
    ),
    "ORC_BRUTE": UnitType(
        name="Orc Brute", side="OPPONENT",
        health=200, damage=50, move_range=2, initiative=6, cost=500,
        passives=(Passive("Crushing Blow", "Hits reduce movement by 1 for 2 turns",
                          (PassiveEffect(EffectKind.ON_HIT_CRIPPLE, 1, 2),)),),
    ),
    "ORC_ROGUE": UnitType(
        name="Orc Rogue", side="OPPONENT",
        health=60, damage=35, move_range=6, initiative=16, cost=500,
        passives=(Passive("Hit & Run", "Returns to starting position after attack",
                          (PassiveEffect(EffectKind.HIT_AND_RUN),)),),
    ),
    "GOBLIN_STONE_THROWER": UnitType(
        name="Goblin Stone Thrower", side="OPPONENT",
        health=40, damage=15, move_range=3, ranged_range=4, initiative=12, cost=200,
    ),
    "ORC_WARLORD": UnitType(
        name="Orc Warlord", side="OPPONENT",
        health=400, damage=40, move_range=2, initiative=8, cost=750, size=2,
        passives=(Passive("Warlord's Vigor", "Regenerates 10 health at the start of each turn",
                          (PassiveEffect(EffectKind.SELF_REGEN, 10),)),),
        boss_spells=("fireball", "chain_lightning"),
        mana=50, mana_regen=10,
    ),
}

PLAYER_TYPES = [k for k, t in UNIT_TYPES.items() if t.side == "PLAYER"]
OPPONENT_POOL = ["ORC_WARRIOR", "ORC_BRUTE", "ORC_ROGUE", "GOBLIN_STONE_THROWER"]
BOSS_TYPE = "ORC_WARLORD"

@dataclass
class StatusEffect:
    value: float
    rounds: int  # PERMANENT (-1) never expires

@dataclass
class Hit:
    """Outcome of a single take_damage call."""
    amount: int
    killed: bool = False
    debuff: Optional[StatusKind] = None
    bloodlust: bool = False

@dataclass
class Unit:
    id: str
    unit_type_id: str  # Key into UNIT_TYPES
    side: Side
    x: int
    y: int
    health: int
    base_max_health: int
    base_damage: int
    base_move_range: int
    base_ranged_range: int
    base_initiative: int
    size: int = 1
    has_moved: bool = False
    has_attacked: bool = False
    is_dead: bool = False
    statuses: Dict[StatusKind, StatusEffect] = field(default_factory=dict)
    stat_modifiers: Dict[str, int] = field(default_factory=dict)  # Permanent reward deltas
    bloodlust_stacks: int = 0
    special_abilities: Set[SpecialAttack] = field(default_factory=set)
    mana: int = 0  # Own mana pool (boss casters only)
    turn_start: Optional[Cell] = None
    killed_by: Optional[str] = None

    @classmethod
    def from_type(cls, unit_id: str, unit_type_id: str, x: int, y: int,
                  scale: float = 1.0) -> "Unit":
        """Create a unit from its template, scaling health and damage."""
        t = UNIT_TYPES[unit_type_id]
        max_health = floor_mul(t.health, scale)
        return cls(
            id=unit_id,
            unit_type_id=unit_type_id,
            side=t.side,
            x=x,
            y=y,
            health=max_health,
            base_max_health=max_health,
            base_damage=floor_mul(t.damage, scale),
            base_move_range=t.move_range,
            base_ranged_range=t.ranged_range,
            base_initiative=t.initiative,
            size=t.size,
            mana=t.mana,
        )

    def get_type(self) -> UnitType:
        """Get the UnitType definition for this unit"""
        return UNIT_TYPES[self.unit_type_id]

    @property
    def name(self) -> str:
        return self.get_type().name

    @property
    def max_health(self) -> int:
        return self.base_max_health + self.stat_modifiers.get("max_health", 0)

    @property
    def damage(self) -> int:
        per_kill = int(self.get_type().effect_total(EffectKind.BLOODLUST))
        return (self.base_damage + self.stat_modifiers.get("damage", 0)
                + self.bloodlust_stacks * per_kill)

    @property
    def initiative(self) -> int:
        return self.base_initiative + self.stat_modifiers.get("initiative", 0)

    @property
    def ranged_range(self) -> int:
        return self.base_ranged_range + self.stat_modifiers.get("ranged_range", 0)

    @property
    def move_range(self) -> int:
        bonus = self.status_value(StatusKind.HASTE)
        penalty = self.status_value(StatusKind.SLOW) + self.status_value(StatusKind.CRIPPLE)
        base = self.base_move_range + self.stat_modifiers.get("move_range", 0)
        return max(1, int(base + bonus - penalty))

    @property
    def shield_value(self) -> float:
        return self.status_value(StatusKind.SHIELD)

    @property
    def bless_multiplier(self) -> float:
        s = self.statuses.get(StatusKind.BLESS)
        return s.value if s else 1.0

    def status_value(self, kind: StatusKind) -> float:
        s = self.statuses.get(kind)
        return s.value if s else 0.0

    def has_special(self, special: SpecialAttack) -> bool:
        return special in self.special_abilities or special in self.get_type().specials

    def can_move(self) -> bool:
        return not self.has_moved and not self.is_dead

    def can_attack(self) -> bool:
        return not self.has_attacked and not self.is_dead

    def occupied_cells(self) -> List[Cell]:
        """Return the footprint: one cell, or the size x size block."""
        return [(self.x + dx, self.y + dy)
                for dy in range(self.size) for dx in range(self.size)]

    def apply_status(self, kind: StatusKind, value: float, rounds: int) -> None:
        """Set a status, replacing any existing instance of the same kind."""
        self.statuses[kind] = StatusEffect(value=value, rounds=rounds)

    def apply_modifiers(self, mods: Dict[str, int]) -> None:
        """Accumulate permanent stat deltas. Max health gains also heal."""
        for stat, delta in mods.items():
            self.stat_modifiers[stat] = self.stat_modifiers.get(stat, 0) + delta
        self.health += mods.get("max_health", 0)

    def take_damage(self, amount: int, is_ranged: bool = False,
                    attacker: Optional["Unit"] = None) -> Hit:
        """Run incoming damage through shield, passives and on-hit effects."""
        t = self.get_type()
        if StatusKind.SHIELD in self.statuses:
            amount = floor_mul(amount, 1 - self.shield_value)
        if is_ranged and t.has_effect(EffectKind.RANGED_DEFENSE):
            amount = floor_mul(amount, 1 - t.effect_total(EffectKind.RANGED_DEFENSE))
        for e in t.effects(EffectKind.DAMAGE_TAKEN):
            amount = floor_mul(amount, e.value)
        amount = max(0, int(amount))

        self.health = max(0, self.health - amount)
        hit = Hit(amount=amount)

        if attacker is not None:
            for e in attacker.get_type().effects(EffectKind.ON_HIT_CRIPPLE):
                self.apply_status(StatusKind.CRIPPLE, e.value, e.rounds)
                hit.debuff = StatusKind.CRIPPLE

        if self.health <= 0 and not self.is_dead:
            self.is_dead = True
            self.health = 0
            hit.killed = True
            if attacker is not None:
                self.killed_by = attacker.id
                if not attacker.is_dead and attacker.get_type().has_effect(EffectKind.BLOODLUST):
                    attacker.bloodlust_stacks += 1
                    hit.bloodlust = True
        return hit

    def heal(self, amount: int) -> int:
        """Restore health up to max_health; returns the amount restored."""
        if self.is_dead:
            return 0
        before = self.health
        self.health = min(self.max_health, self.health + amount)
        return self.health - before

    def reset_for_new_turn(self) -> int:
        """Start-of-turn upkeep. Returns health restored by regeneration."""
        self.has_moved = False
        self.has_attacked = False
        self.turn_start = (self.x, self.y)

        healed = 0
        regen = int(self.get_type().effect_total(EffectKind.SELF_REGEN))
        if regen:
            healed += self.heal(regen)

        r = self.statuses.get(StatusKind.REGENERATE)
        if r is not None:
            healed += self.heal(int(r.value))
            if r.rounds > 0:
                r.rounds -= 1
                if r.rounds == 0:
                    del self.statuses[StatusKind.REGENERATE]

        for kind in TIMED_STATUSES:
            s = self.statuses.get(kind)
            if s is None or s.rounds == PERMANENT:
                continue
            s.rounds -= 1
            if s.rounds <= 0:
                del self.statuses[kind]
        return healed

def floor_mul(value: float, factor: float) -> int:
    """floor(value * factor), tolerant of binary float error."""
    return math.floor(round(value * factor, 6))

def manhattan(a: Cell, b: Cell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])

def unit_distance(a: Unit, b: Unit) -> int:
    """Minimum Manhattan distance over all pairs of occupied cells."""
    return min(manhattan(ca, cb) for ca in a.occupied_cells() for cb in b.occupied_cells())

def chebyshev_distance(a: Unit, b: Unit) -> int:
    """Minimum Chebyshev (king-move) distance between two footprints."""
    return min(max(abs(ca[0] - cb[0]), abs(ca[1] - cb[1]))
               for ca in a.occupied_cells() for cb in b.occupied_cells())

def touches_square(unit: Unit, center: Cell, radius: int) -> bool:
    """True if any occupied cell lies in the square of the given radius."""
    return any(abs(cx - center[0]) <= radius and abs(cy - center[1]) <= radius
               for cx, cy in unit.occupied_cells())

@dataclass
class Event:
    kind: str
    ts_ms: int
    data: Dict

@dataclass
class State:
    ts_ms: int = 0  # Presentation clock; deferred visuals are stamped ahead of it
    width: int = 10
    height: int = 8
    units: Dict[str, Unit] = field(default_factory=dict)
    battle_id: str = "local"

    def add_unit(self, unit: Unit) -> Unit:
        self.units[unit.id] = unit
        return unit

    def living(self, side: Optional[Side] = None) -> List[Unit]:
        """Living units in roster order, optionally filtered by side."""
        return [u for u in self.units.values()
                if not u.is_dead and u.health > 0 and (side is None or u.side == side)]

    def unit_at(self, x: int, y: int) -> Optional[Unit]:
        for u in self.living():
            if (x, y) in u.occupied_cells():
                return u
        return None

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def is_valid_placement(self, x: int, y: int, size: int = 1,
                           ignore: Optional[Unit] = None) -> bool:
        """Every footprint cell in bounds and free of other living units."""
        for dy in range(size):
            for dx in range(size):
                cx, cy = x + dx, y + dy
                if not self.in_bounds(cx, cy):
                    return False
                other = self.unit_at(cx, cy)
                if other is not None and other is not ignore:
                    return False
        return True

    def count_effect(self, side: Side, kind: EffectKind) -> float:
        """Sum a passive effect over the living units of one side."""
        return sum(u.get_type().effect_total(kind) for u in self.living(side))

    def event(self, kind: str, data: Dict, delay_ms: int = 0) -> Event:
        return Event(kind, self.ts_ms + delay_ms, data)
