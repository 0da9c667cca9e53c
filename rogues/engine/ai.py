import logging
from typing import List, Optional, Tuple
from .casting import SpellEngine
from .combat import CombatEngine
from .model import Cell, Event, Unit, manhattan, unit_distance
from .rng import DRNG
from .session import Session
from .spells import SPELLS, SpellDef, SpellEffect, TargetMode

logger = logging.getLogger(__name__)

THINK_MS = 500
STEP_MS = 150
AI_VANISH_MS = 600
MIN_SPELL_HITS = 2  # A boss spell must hit at least one more unit than a plain attack

DIRECTIONS = ((1, 0), (-1, 0), (0, 1), (0, -1))

class DecisionEngine:
    """Rule-based opponent turns: boss spell, ranged, melee, then advance and attack.

    The first rule that acts ends the decision. Each rule returns the events it
    produced, or an empty list if it did not apply.
    """

    def __init__(self, session: Session, combat: CombatEngine, spells: SpellEngine, rng: DRNG):
        self.session = session
        self.combat = combat
        self.spells = spells
        self.rng = rng

    @property
    def state(self):
        return self.session.state

    def take_turn(self, unit: Unit, delay_ms: int = THINK_MS) -> List[Event]:
        """Run one opponent turn."""
        if unit.is_dead or self.session.battle_over:
            return []
        self.channel_mana(unit)
        for rule in (self.try_boss_spell, self.try_ranged_attack,
                     self.try_melee_attack, self.advance):
            evts = rule(unit, delay_ms)
            if evts:
                logger.debug(f"{unit.id} acts via {rule.__name__}")
                return evts
        logger.debug(f"{unit.id} has nothing to do")
        return []

    def channel_mana(self, unit: Unit) -> None:
        t = unit.get_type()
        if t.boss_spells:
            unit.mana = min(t.mana, unit.mana + t.mana_regen)

    def try_boss_spell(self, unit: Unit, delay_ms: int = 0) -> List[Event]:
        """Cast the boss spell and target covering the most player units."""
        if not unit.get_type().boss_spells or not unit.can_attack():
            return []
        best: Optional[Tuple[int, SpellDef, Optional[Unit], Optional[Cell]]] = None
        for spell_id in unit.get_type().boss_spells:
            spell = SPELLS[spell_id]
            if unit.mana < spell.mana_cost:
                continue
            for hits, target, center in self._spell_options(unit, spell):
                if best is None or hits > best[0]:
                    best = (hits, spell, target, center)
        if best is None or best[0] < MIN_SPELL_HITS:
            return []
        hits, spell, target, center = best
        unit.has_attacked = True
        logger.info(f"{unit.id} casts {spell.name} expecting {hits} hits")
        return self.spells.cast_as(unit, spell, target=target, center=center, delay_ms=delay_ms)

    def _spell_options(self, unit: Unit, spell: SpellDef):
        if spell.target_mode == TargetMode.TILE:
            for y in range(self.state.height):
                for x in range(self.state.width):
                    if self.spells.can_cast_as(unit, spell, center=(x, y)):
                        yield len(self.spells.area_targets((x, y), spell.radius, unit.side)), None, (x, y)
        elif spell.target_mode == TargetMode.ENEMY_UNIT:
            for target in self.state.living("PLAYER"):
                if not self.spells.can_cast_as(unit, spell, target=target):
                    continue
                if spell.effect == SpellEffect.CHAIN:
                    yield len(self.spells.chain_targets(target, unit.side, spell.chains)), target, None
                else:
                    yield 1, target, None

    def try_ranged_attack(self, unit: Unit, delay_ms: int = 0) -> List[Event]:
        target = self._closest(unit, [p for p in self.state.living("PLAYER")
                                      if self.combat.can_shoot(unit, p)])
        if target is None:
            return []
        return self.combat.ranged_attack(unit, target, delay_ms)

    def try_melee_attack(self, unit: Unit, delay_ms: int = 0) -> List[Event]:
        target = next((p for p in self.state.living("PLAYER")
                       if self.combat.can_melee(unit, p)), None)
        if target is None:
            return []
        return self.combat.melee_attack(unit, target, delay_ms, vanish_ms=AI_VANISH_MS)

    def advance(self, unit: Unit, delay_ms: int = 0) -> List[Event]:
        """Walk toward the nearest player, then attack if anything is in reach."""
        if not unit.can_move():
            return []
        target = self.nearest_player(unit)
        if target is None:
            return []
        path: List[Cell] = []
        while len(path) < unit.move_range and not self._can_attack_any(unit):
            step = self.next_step(unit, target)
            if step is None:
                break
            unit.x, unit.y = step
            path.append(step)

        evts: List[Event] = []
        t = delay_ms
        if path:
            unit.has_moved = True
            t += STEP_MS * len(path)
            evts.append(self.state.event("UnitMoved", {
                "unit_id": unit.id, "x": unit.x, "y": unit.y, "reason": "advance",
                "path": [list(c) for c in path]}, delay_ms))
        evts += self.try_ranged_attack(unit, t) or self.try_melee_attack(unit, t)
        return evts

    def nearest_player(self, unit: Unit) -> Optional[Unit]:
        return self._closest(unit, self.state.living("PLAYER"))

    def _closest(self, unit: Unit, candidates: List[Unit]) -> Optional[Unit]:
        # min() keeps the first of equal keys, so ties go to roster order
        if not candidates:
            return None
        return min(candidates, key=lambda p: unit_distance(unit, p))

    def _can_attack_any(self, unit: Unit) -> bool:
        return any(self.combat.can_shoot(unit, p) or self.combat.can_melee(unit, p)
                   for p in self.state.living("PLAYER"))

    def _distance_at(self, unit: Unit, x: int, y: int, target: Unit) -> int:
        cells = [(x + dx, y + dy) for dy in range(unit.size) for dx in range(unit.size)]
        return min(manhattan(c, tc) for c in cells for tc in target.occupied_cells())

    def _is_valid_step(self, unit: Unit, x: int, y: int, target: Unit) -> bool:
        if not self.state.is_valid_placement(x, y, unit.size, ignore=unit):
            return False
        return self._distance_at(unit, x, y, target) < unit_distance(unit, target)

    def next_step(self, unit: Unit, target: Unit) -> Optional[Cell]:
        """One cell toward the target along the larger gap axis (x on ties).

        Falls back to a random valid cell that strictly reduces the distance.
        """
        own, theirs = min(((c, tc) for c in unit.occupied_cells() for tc in target.occupied_cells()),
                          key=lambda pair: manhattan(*pair))
        dx, dy = theirs[0] - own[0], theirs[1] - own[1]
        sx = (dx > 0) - (dx < 0)
        sy = (dy > 0) - (dy < 0)
        preferred = [(unit.x + sx, unit.y), (unit.x, unit.y + sy)]
        if abs(dy) > abs(dx):
            preferred.reverse()
        for x, y in preferred:
            if (x, y) != (unit.x, unit.y) and self._is_valid_step(unit, x, y, target):
                return x, y

        fallback = [(unit.x + ox, unit.y + oy) for ox, oy in DIRECTIONS
                    if self._is_valid_step(unit, unit.x + ox, unit.y + oy, target)]
        if not fallback:
            return None
        return self.rng.choice(fallback)
