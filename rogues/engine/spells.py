from dataclasses import dataclass
from typing import Dict, Optional
from enum import Enum

class TargetMode(Enum):
    """What a spell must be pointed at"""
    TILE = "tile"
    ENEMY_UNIT = "enemy_unit"
    ALLY_UNIT = "ally_unit"
    ALLY_THEN_TILE = "ally_then_tile"  # Pick an ally, then a destination

class SpellEffect(Enum):
    SINGLE_DAMAGE = "single_damage"
    AOE_DAMAGE = "aoe_damage"
    ICE_STORM = "ice_storm"
    CHAIN = "chain"
    HEAL = "heal"
    HASTE = "haste"
    SHIELD = "shield"
    BLESS = "bless"
    REGENERATE = "regenerate"
    TELEPORT = "teleport"

# Effects that mass enchantment broadens to every living ally
ALLY_EFFECTS = (SpellEffect.HEAL, SpellEffect.HASTE, SpellEffect.SHIELD,
                SpellEffect.BLESS, SpellEffect.REGENERATE)

@dataclass(frozen=True)
class SpellDef:
    id: str
    name: str
    mana_cost: int
    target_mode: TargetMode
    effect: SpellEffect
    power: float
    range: int
    description: str = ""
    duration: Optional[int] = None
    chains: int = 0
    radius: int = 0
    slow: int = 0

SPELLS: Dict[str, SpellDef] = {
    "fireball": SpellDef(
        id="fireball", name="Fireball", mana_cost=25,
        target_mode=TargetMode.TILE, effect=SpellEffect.AOE_DAMAGE,
        power=30, range=5, radius=1,
        description="Explodes in a 3x3 area dealing 30 damage to all enemies",
    ),
    "lightning_bolt": SpellDef(
        id="lightning_bolt", name="Lightning Bolt", mana_cost=15,
        target_mode=TargetMode.ENEMY_UNIT, effect=SpellEffect.SINGLE_DAMAGE,
        power=45, range=6,
        description="Strikes a single enemy for 45 damage",
    ),
    "heal": SpellDef(
        id="heal", name="Heal", mana_cost=20,
        target_mode=TargetMode.ALLY_UNIT, effect=SpellEffect.HEAL,
        power=40, range=5,
        description="Restores 40 HP to a friendly unit",
    ),
    "haste": SpellDef(
        id="haste", name="Haste", mana_cost=15,
        target_mode=TargetMode.ALLY_UNIT, effect=SpellEffect.HASTE,
        power=2, range=5, duration=3,
        description="Increases movement range by 2 for 3 turns",
    ),
    "shield": SpellDef(
        id="shield", name="Shield", mana_cost=15,
        target_mode=TargetMode.ALLY_UNIT, effect=SpellEffect.SHIELD,
        power=0.5, range=5, duration=2,
        description="Reduces damage taken by 50% for 2 turns",
    ),
    "ice_storm": SpellDef(
        id="ice_storm", name="Ice Storm", mana_cost=30,
        target_mode=TargetMode.TILE, effect=SpellEffect.ICE_STORM,
        power=20, range=4, radius=1, duration=2, slow=1,
        description="Deals 20 damage and reduces enemy movement by 1 for 2 turns",
    ),
    "meteor": SpellDef(
        id="meteor", name="Meteor", mana_cost=50,
        target_mode=TargetMode.TILE, effect=SpellEffect.AOE_DAMAGE,
        power=60, range=6, radius=2,
        description="Devastating 5x5 area attack dealing 60 damage",
    ),
    "bless": SpellDef(
        id="bless", name="Bless", mana_cost=25,
        target_mode=TargetMode.ALLY_UNIT, effect=SpellEffect.BLESS,
        power=1.5, range=5, duration=3,
        description="Increases damage dealt by 50% for 3 turns",
    ),
    "cure_wounds": SpellDef(
        id="cure_wounds", name="Cure Wounds", mana_cost=35,
        target_mode=TargetMode.ALLY_UNIT, effect=SpellEffect.HEAL,
        power=80, range=4,
        description="Powerful healing that restores 80 HP",
    ),
    "teleport": SpellDef(
        id="teleport", name="Teleport", mana_cost=30,
        target_mode=TargetMode.ALLY_THEN_TILE, effect=SpellEffect.TELEPORT,
        power=0, range=8,
        description="Instantly moves a unit to any empty tile",
    ),
    "chain_lightning": SpellDef(
        id="chain_lightning", name="Chain Lightning", mana_cost=40,
        target_mode=TargetMode.ENEMY_UNIT, effect=SpellEffect.CHAIN,
        power=35, range=5, chains=2,
        description="Hits target and chains to 2 nearby enemies for 35 damage each",
    ),
    "regenerate": SpellDef(
        id="regenerate", name="Regenerate", mana_cost=25,
        target_mode=TargetMode.ALLY_UNIT, effect=SpellEffect.REGENERATE,
        power=15, range=5, duration=4,
        description="Heals 15 HP at the start of each turn for 4 turns",
    ),
}
