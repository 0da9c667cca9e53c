import logging
from typing import List, Optional
from .combat import CombatEngine
from .model import (Cell, EffectKind, Event, PERMANENT, Side, StatusKind, Unit, floor_mul,
                    manhattan, opposing, touches_square, unit_distance)
from .session import Session
from .spells import ALLY_EFFECTS, SPELLS, SpellDef, SpellEffect, TargetMode

logger = logging.getLogger(__name__)

CHAIN_RADIUS = 2

# Presentation offsets (ms)
IMPACT_MS = 200
CHAIN_TICK_MS = 300

BUFF_STATUS = {
    SpellEffect.HASTE: (StatusKind.HASTE, "HASTE!", "#ffff00"),
    SpellEffect.SHIELD: (StatusKind.SHIELD, "SHIELD!", "#4A5E7E"),
    SpellEffect.BLESS: (StatusKind.BLESS, "BLESSED!", "#A68966"),
    SpellEffect.REGENERATE: (StatusKind.REGENERATE, "REGENERATE!", "#00ff00"),
}

class SpellEngine:
    """Arms, targets and resolves spells for the player and for board casters."""

    def __init__(self, session: Session, combat: CombatEngine):
        self.session = session
        self.combat = combat
        self.active_spell: Optional[SpellDef] = None
        self.teleport_unit: Optional[Unit] = None

    @property
    def state(self):
        return self.session.state

    def cast_spell(self, spell_id: str) -> bool:
        """Arm a spell for targeting if the round cap and mana allow it."""
        spell = SPELLS.get(spell_id)
        if spell is None or self.session.battle_over:
            return False
        if not self.session.can_cast(spell):
            logger.debug(f"Cannot cast {spell_id}: mana {self.session.mana}, "
                         f"cast {self.session.spells_cast_this_round}/{self.session.spells_per_round}")
            return False
        self.active_spell = spell
        self.teleport_unit = None
        return True

    def cancel(self) -> bool:
        if self.active_spell is None:
            return False
        self.active_spell = None
        self.teleport_unit = None
        return True

    def target_tile(self, x: int, y: int) -> List[Event]:
        """Point the armed spell at a tile. Empty list means nothing happened."""
        spell = self.active_spell
        if spell is None or not self.state.in_bounds(x, y):
            return []
        unit = self.state.unit_at(x, y)
        if spell.target_mode == TargetMode.TILE:
            return self._cast(spell, center=(x, y))
        if spell.target_mode == TargetMode.ALLY_THEN_TILE and self.teleport_unit is not None:
            if unit is not None:
                return []
            return self._cast(spell, target=self.teleport_unit, destination=(x, y))
        if unit is None:
            return []
        return self.target_unit(unit)

    def target_unit(self, unit: Unit) -> List[Event]:
        """Point the armed spell at a unit. Incompatible targets are ignored."""
        spell = self.active_spell
        if spell is None or unit.is_dead:
            return []
        mode = spell.target_mode
        if mode == TargetMode.TILE:
            return self._cast(spell, center=(unit.x, unit.y))
        if mode == TargetMode.ENEMY_UNIT and unit.side == "OPPONENT":
            return self._cast(spell, target=unit)
        if mode == TargetMode.ALLY_UNIT and unit.side == "PLAYER":
            return self._cast(spell, target=unit)
        if mode == TargetMode.ALLY_THEN_TILE and unit.side == "PLAYER" \
                and self.teleport_unit is None:
            self.teleport_unit = unit
            return [self.state.event("Notice", {"text": "Now select destination",
                                                "x": unit.x, "y": unit.y, "color": "#A68966"})]
        return []

    def _cast(self, spell: SpellDef, target: Optional[Unit] = None,
              center: Optional[Cell] = None, destination: Optional[Cell] = None) -> List[Event]:
        if spell.effect == SpellEffect.TELEPORT and target is not None and destination is not None:
            if not self.state.is_valid_placement(destination[0], destination[1], target.size,
                                                 ignore=target):
                return []
        if not self.session.can_cast(spell):
            return []
        cost = self.session.pay_for(spell)
        logger.info(f"Player casts {spell.name} for {cost} mana (round {self.session.round_number})")
        self.active_spell = None
        self.teleport_unit = None
        evts = [
            self.state.event("SpellCast", {"spell_id": spell.id, "caster": None, "side": "PLAYER",
                                           "target": target.id if target else None,
                                           "center": list(center) if center else None,
                                           "cost": cost}),
            self.state.event("ManaChanged", {"mana": self.session.mana,
                                             "max_mana": self.session.max_mana}),
        ]
        return evts + self.resolve(spell, "PLAYER", target=target, center=center,
                                   destination=destination)

    def can_cast_as(self, caster: Unit, spell: SpellDef, target: Optional[Unit] = None,
                    center: Optional[Cell] = None) -> bool:
        """Mana and range check for an on-board caster."""
        if caster.is_dead or caster.mana < spell.mana_cost:
            return False
        if center is not None:
            return min(manhattan(c, center) for c in caster.occupied_cells()) <= spell.range
        if target is not None:
            return not target.is_dead and unit_distance(caster, target) <= spell.range
        return False

    def cast_as(self, caster: Unit, spell: SpellDef, target: Optional[Unit] = None,
                center: Optional[Cell] = None, delay_ms: int = 0) -> List[Event]:
        """Cast from an on-board caster's own mana pool (boss abilities)."""
        if self.session.battle_over or not self.can_cast_as(caster, spell, target, center):
            return []
        caster.mana -= spell.mana_cost
        logger.info(f"{caster.id} casts {spell.name}")
        evts = [self.state.event("SpellCast", {"spell_id": spell.id, "caster": caster.id,
                                               "side": caster.side,
                                               "target": target.id if target else None,
                                               "center": list(center) if center else None,
                                               "cost": spell.mana_cost}, delay_ms)]
        return evts + self.resolve(spell, caster.side, target=target, center=center,
                                   delay_ms=delay_ms)

    def resolve(self, spell: SpellDef, caster_side: Side, target: Optional[Unit] = None,
                center: Optional[Cell] = None, destination: Optional[Cell] = None,
                delay_ms: int = 0) -> List[Event]:
        """Apply a paid-for spell's effect."""
        effect = spell.effect
        power = self.session.spell_power(caster_side, spell.power)
        t = delay_ms + IMPACT_MS

        if effect == SpellEffect.SINGLE_DAMAGE:
            return self.combat.apply_hit(target, power, caster_side, delay_ms=t)

        if effect in (SpellEffect.AOE_DAMAGE, SpellEffect.ICE_STORM):
            victims = self.area_targets(center, spell.radius, caster_side)
            evts: List[Event] = []
            for u in victims:
                evts += self.combat.apply_hit(u, power, caster_side, delay_ms=t)
                if effect == SpellEffect.ICE_STORM and not u.is_dead:
                    u.apply_status(StatusKind.SLOW, spell.slow, spell.duration or 0)
                    evts.append(self.state.event("Buff", {"unit_id": u.id, "label": "SLOWED!",
                                                          "color": "#5B6B8B"}, t))
            return evts

        if effect == SpellEffect.CHAIN:
            evts = []
            for i, u in enumerate(self.chain_targets(target, caster_side, spell.chains)):
                evts += self.combat.apply_hit(u, power, caster_side,
                                              delay_ms=delay_ms + i * CHAIN_TICK_MS)
            return evts

        if effect == SpellEffect.TELEPORT:
            target.x, target.y = destination
            return [
                self.state.event("Buff", {"unit_id": target.id, "label": "TELEPORT!",
                                          "color": "#6B5B8B"}, delay_ms),
                self.state.event("UnitMoved", {"unit_id": target.id, "x": target.x,
                                               "y": target.y, "reason": "teleport"}, delay_ms),
            ]

        if effect in ALLY_EFFECTS:
            recipients = [target]
            if self.session.mass_enchantment and caster_side == "PLAYER":
                recipients = self.state.living(caster_side)
            evts = []
            for u in recipients:
                evts += self._enchant(spell, u, caster_side, delay_ms)
            return evts

        logger.warning(f"Unhandled spell effect {effect}")
        return []

    def _enchant(self, spell: SpellDef, unit: Unit, caster_side: Side,
                 delay_ms: int) -> List[Event]:
        if spell.effect == SpellEffect.HEAL:
            bonus = self.state.count_effect(caster_side, EffectKind.HEALING_AURA)
            amount = unit.heal(floor_mul(spell.power, 1 + bonus))
            return [self.state.event("Healed", {"unit_id": unit.id, "amount": amount,
                                                "hp": unit.health}, delay_ms)]
        kind, label, color = BUFF_STATUS[spell.effect]
        rounds = spell.duration or 0
        if self.session.permanent_buffs and caster_side == "PLAYER":
            rounds = PERMANENT
        unit.apply_status(kind, spell.power, rounds)
        return [self.state.event("Buff", {"unit_id": unit.id, "label": label, "color": color,
                                          "rounds": rounds}, delay_ms)]

    def area_targets(self, center: Cell, radius: int, caster_side: Side) -> List[Unit]:
        """Non-caster-side units with any footprint cell inside the square."""
        return [u for u in self.state.living(opposing(caster_side))
                if touches_square(u, center, radius)]

    def chain_targets(self, primary: Unit, caster_side: Side, chains: int) -> List[Unit]:
        """Primary plus up to `chains` enemies, each within reach of an earlier link.

        Candidates are scanned in roster order so the result is stable.
        """
        targets = [primary]
        candidates = [u for u in self.state.living(opposing(caster_side)) if u is not primary]
        while len(targets) < chains + 1:
            nxt = next((u for u in candidates if u not in targets
                        and any(unit_distance(u, t) <= CHAIN_RADIUS for t in targets)), None)
            if nxt is None:
                break
            targets.append(nxt)
        return targets
