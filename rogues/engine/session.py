import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from .model import EffectKind, Side, State, floor_mul
from .spells import SpellDef

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class MetaBuff:
    """Session-level permanent modifier offered as a magic reward"""
    id: str
    name: str
    description: str
    max_stacks: Optional[int] = None  # None = stacks without limit

META_BUFFS: Dict[str, MetaBuff] = {
    "mana_pool": MetaBuff("mana_pool", "Expanded Mana Pool", "+30 Max Mana"),
    "mana_flow": MetaBuff("mana_flow", "Mana Flow", "+2 Mana Regen per turn"),
    "arcane_power": MetaBuff("arcane_power", "Arcane Power", "+20% Spell Damage", max_stacks=5),
    "efficient_casting": MetaBuff("efficient_casting", "Efficient Casting",
                                  "-20% Mana Cost for all spells", max_stacks=3),
    "mana_surge": MetaBuff("mana_surge", "Mana Surge", "Fully restore mana now & +20 max"),
    "twin_cast": MetaBuff("twin_cast", "Twin Cast", "Cast 2 spells per round", max_stacks=1),
    "everlasting_enchantments": MetaBuff("everlasting_enchantments", "Everlasting Enchantments",
                                         "Buff spells never expire", max_stacks=1),
    "mass_enchantment": MetaBuff("mass_enchantment", "Mass Enchantment",
                                 "Heal and buff spells affect every ally", max_stacks=1),
}

@dataclass
class Session:
    """All mutable battle-wide state, passed explicitly to every engine component.

    Mana-cost reduction stacks multiplicatively (x0.8 per stack) while spell
    power stacks additively (+0.2 per stack); both are capped in META_BUFFS.
    """
    state: State
    battle_number: int = 1
    round_number: int = 1
    mana: int = 100
    max_mana: int = 100
    mana_regen: int = 1
    mana_cost_multiplier: float = 1.0
    spell_power_multiplier: float = 1.0
    spells_per_round: int = 1
    spells_cast_this_round: int = 0
    permanent_buffs: bool = False
    mass_enchantment: bool = False
    meta_buffs: Dict[str, int] = field(default_factory=dict)  # id -> stacks
    winner: Optional[Side] = None

    @classmethod
    def from_settings(cls, settings, state: Optional[State] = None) -> "Session":
        if state is None:
            state = State(width=settings.grid_width, height=settings.grid_height)
        return cls(
            state=state,
            mana=settings.starting_mana,
            max_mana=settings.max_mana,
            mana_regen=settings.mana_regen,
            spells_per_round=settings.spells_per_round,
        )

    @property
    def battle_over(self) -> bool:
        return self.winner is not None

    def effective_cost(self, spell: SpellDef) -> int:
        return floor_mul(spell.mana_cost, self.mana_cost_multiplier)

    def can_cast(self, spell: SpellDef) -> bool:
        """Per-round cap first, then mana."""
        if self.spells_cast_this_round >= self.spells_per_round:
            return False
        return self.mana >= self.effective_cost(spell)

    def pay_for(self, spell: SpellDef) -> int:
        cost = self.effective_cost(spell)
        self.mana = max(0, self.mana - cost)
        self.spells_cast_this_round += 1
        return cost

    def spell_power(self, side: Side, base_power: float) -> int:
        """Effective spell power for a caster on the given side."""
        multiplier = self.spell_power_multiplier if side == "PLAYER" else 1.0
        multiplier += self.state.count_effect(side, EffectKind.SPELL_POWER)
        return floor_mul(base_power, multiplier)

    def regeneration_amount(self) -> int:
        return self.mana_regen + int(self.state.count_effect("PLAYER", EffectKind.MANA_REGEN))

    def regenerate_mana(self) -> int:
        """Round-start mana tick; returns mana actually gained."""
        if self.mana >= self.max_mana:
            return 0
        before = self.mana
        self.mana = min(self.max_mana, self.mana + self.regeneration_amount())
        return self.mana - before

    def start_round(self, round_number: int) -> int:
        self.round_number = round_number
        self.spells_cast_this_round = 0
        return self.regenerate_mana()

    def can_acquire(self, meta_id: str) -> bool:
        buff = META_BUFFS.get(meta_id)
        if buff is None:
            return False
        stacks = self.meta_buffs.get(meta_id, 0)
        return buff.max_stacks is None or stacks < buff.max_stacks

    def available_metas(self) -> List[str]:
        return [m for m in META_BUFFS if self.can_acquire(m)]

    def acquire_meta(self, meta_id: str) -> bool:
        if not self.can_acquire(meta_id):
            logger.debug(f"Meta buff {meta_id} unavailable")
            return False
        self.meta_buffs[meta_id] = self.meta_buffs.get(meta_id, 0) + 1
        self._apply_meta(meta_id)
        logger.info(f"Acquired {META_BUFFS[meta_id].name} (x{self.meta_buffs[meta_id]})")
        return True

    def restore_metas(self, meta_buffs: Dict[str, int]) -> None:
        """Re-apply saved meta buff stacks onto a fresh session."""
        for meta_id, stacks in meta_buffs.items():
            if meta_id not in META_BUFFS:
                logger.warning(f"Ignoring unknown meta buff {meta_id}")
                continue
            cap = META_BUFFS[meta_id].max_stacks
            if cap is not None:
                stacks = min(stacks, cap)
            for _ in range(stacks):
                self._apply_meta(meta_id)
            self.meta_buffs[meta_id] = stacks

    def _apply_meta(self, meta_id: str) -> None:
        if meta_id == "mana_pool":
            self.max_mana += 30
            self.mana = self.max_mana
        elif meta_id == "mana_flow":
            self.mana_regen += 2
        elif meta_id == "arcane_power":
            self.spell_power_multiplier = round(self.spell_power_multiplier + 0.2, 6)
        elif meta_id == "efficient_casting":
            self.mana_cost_multiplier = round(self.mana_cost_multiplier * 0.8, 6)
        elif meta_id == "mana_surge":
            self.max_mana += 20
            self.mana = self.max_mana
        elif meta_id == "twin_cast":
            self.spells_per_round += 1
        elif meta_id == "everlasting_enchantments":
            self.permanent_buffs = True
        elif meta_id == "mass_enchantment":
            self.mass_enchantment = True
