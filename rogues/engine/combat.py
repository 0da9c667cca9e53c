import logging
import math
from typing import List, Optional, Tuple
from .model import (Event, EffectKind, Side, SpecialAttack, StatusKind, Unit,
                    chebyshev_distance, floor_mul, opposing, unit_distance)
from .session import Session

logger = logging.getLogger(__name__)

RANGED_FACTOR = 0.8
SPLASH_FACTOR = 0.5  # Cleave and ricochet secondary hits
RICOCHET_RADIUS = 2

# Presentation offsets (ms) relative to the start of the action
LUNGE_MS = 200
SECOND_STRIKE_MS = 300
VANISH_MS = 400
ARROW_MS = 300
BOUNCE_MS = 150

class CombatEngine:
    """Resolves attacks and damage against the shared session state."""

    def __init__(self, session: Session):
        self.session = session

    @property
    def state(self):
        return self.session.state

    def can_melee(self, attacker: Unit, defender: Unit) -> bool:
        if self.session.battle_over or not attacker.can_attack():
            return False
        if defender.is_dead or defender.side == attacker.side:
            return False
        return unit_distance(attacker, defender) == 1

    def can_shoot(self, attacker: Unit, defender: Unit) -> bool:
        if self.session.battle_over or not attacker.can_attack():
            return False
        if defender.is_dead or defender.side == attacker.side or attacker.ranged_range <= 0:
            return False
        return 1 < unit_distance(attacker, defender) <= attacker.ranged_range

    def melee_attack(self, attacker: Unit, defender: Unit, delay_ms: int = 0,
                     vanish_ms: int = VANISH_MS) -> List[Event]:
        """Melee strike with cleave, double strike and hit-and-run. Empty list if rejected."""
        if not self.can_melee(attacker, defender):
            logger.debug(f"Melee {attacker.id} -> {defender.id} rejected")
            return []
        attacker.has_attacked = True
        evts = [self.state.event("Attack", {"attacker": attacker.id, "target": defender.id,
                                            "kind": "melee"}, delay_ms)]
        evts += self._strike(attacker, defender, delay_ms + LUNGE_MS)

        t = delay_ms + LUNGE_MS
        if attacker.has_special(SpecialAttack.DOUBLE_STRIKE) and not defender.is_dead \
                and not attacker.is_dead:
            t += SECOND_STRIKE_MS
            evts.append(self._buff_text(attacker, "FURY!", "#ff0000", t))
            evts += self._strike(attacker, defender, t)

        evts += self.hit_and_run(attacker, t + vanish_ms)
        return evts

    def _strike(self, attacker: Unit, defender: Unit, delay_ms: int) -> List[Event]:
        damage = floor_mul(attacker.damage, attacker.bless_multiplier)
        targets: List[Tuple[Unit, int]] = [(defender, damage)]
        if attacker.has_special(SpecialAttack.CLEAVE):
            splash = floor_mul(damage, SPLASH_FACTOR)
            for other in self.state.living(opposing(attacker.side)):
                if other is not defender and chebyshev_distance(other, defender) <= 1:
                    targets.append((other, splash))
        evts: List[Event] = []
        for target, amount in targets:
            evts += self.apply_hit(target, amount, attacker.side, attacker=attacker,
                                   delay_ms=delay_ms)
        return evts

    def ranged_attack(self, attacker: Unit, defender: Unit, delay_ms: int = 0) -> List[Event]:
        """Ranged shot; piercing takes priority over ricochet. Empty list if rejected."""
        if not self.can_shoot(attacker, defender):
            logger.debug(f"Ranged {attacker.id} -> {defender.id} rejected")
            return []
        attacker.has_attacked = True
        damage = floor_mul(attacker.damage * RANGED_FACTOR, attacker.bless_multiplier)
        evts = [self.state.event("Attack", {"attacker": attacker.id, "target": defender.id,
                                            "kind": "ranged"}, delay_ms)]
        t = delay_ms + ARROW_MS

        if attacker.has_special(SpecialAttack.PIERCING):
            for target in self.ray_targets(attacker, defender):
                evts += self.apply_hit(target, damage, attacker.side, is_ranged=True,
                                       attacker=attacker, delay_ms=t)
        elif attacker.has_special(SpecialAttack.RICOCHET):
            splash = [u for u in self.state.living(opposing(attacker.side))
                      if u is not defender and unit_distance(u, defender) <= RICOCHET_RADIUS]
            evts += self.apply_hit(defender, damage, attacker.side, is_ranged=True,
                                   attacker=attacker, delay_ms=t)
            for u in splash:
                evts += self.apply_hit(u, floor_mul(damage, SPLASH_FACTOR), attacker.side,
                                       is_ranged=True, attacker=attacker, delay_ms=t + BOUNCE_MS)
        else:
            evts += self.apply_hit(defender, damage, attacker.side, is_ranged=True,
                                   attacker=attacker, delay_ms=t)
        return evts

    def ray_targets(self, attacker: Unit, defender: Unit) -> List[Unit]:
        """Enemies on the lattice ray from attacker through defender, nearest first."""
        dx, dy = defender.x - attacker.x, defender.y - attacker.y
        g = math.gcd(abs(dx), abs(dy))
        if g == 0:
            return [defender]
        sx, sy = dx // g, dy // g
        x, y = attacker.x + sx, attacker.y + sy
        hits: List[Unit] = []
        while self.state.in_bounds(x, y):
            u = self.state.unit_at(x, y)
            if u is not None and u.side != attacker.side and u not in hits:
                hits.append(u)
            x, y = x + sx, y + sy
        return hits

    def hit_and_run(self, unit: Unit, delay_ms: int) -> List[Event]:
        """Return a hit-and-run unit to the cell it started its turn on."""
        if unit.is_dead or unit.turn_start is None:
            return []
        if not unit.get_type().has_effect(EffectKind.HIT_AND_RUN):
            return []
        sx, sy = unit.turn_start
        if (sx, sy) == (unit.x, unit.y):
            return []
        if not self.state.is_valid_placement(sx, sy, unit.size, ignore=unit):
            return []
        unit.x, unit.y = sx, sy
        return [
            self._buff_text(unit, "VANISH!", "#6B5B8B", delay_ms),
            self.state.event("UnitMoved", {"unit_id": unit.id, "x": sx, "y": sy,
                                           "reason": "hit_and_run"}, delay_ms),
        ]

    def apply_hit(self, target: Unit, amount: int, acting_side: Side, is_ranged: bool = False,
                  attacker: Optional[Unit] = None, delay_ms: int = 0) -> List[Event]:
        """Damage one unit and report the consequences. Dead targets are skipped."""
        if target.is_dead:
            return []
        hit = target.take_damage(amount, is_ranged, attacker)
        evts = [self.state.event("Damage", {
            "unit_id": target.id, "amount": hit.amount, "hp": target.health,
            "source": attacker.id if attacker else None, "ranged": is_ranged,
        }, delay_ms)]
        if hit.debuff == StatusKind.CRIPPLE:
            evts.append(self._buff_text(target, "CRIPPLED!", "#8B5B3B", delay_ms))
        if hit.killed:
            logger.info(f"{target.id} destroyed by {attacker.id if attacker else 'spell'}")
            evts.append(self.state.event("Destroyed", {
                "unit_id": target.id, "killer": attacker.id if attacker else None}, delay_ms))
        if hit.bloodlust and attacker is not None:
            evts.append(self._buff_text(attacker, "BLOODLUST!", "#9E4A4A", delay_ms))
            evts.append(self.state.event("Notice", {
                "text": "+15 DMG", "x": attacker.x, "y": attacker.y, "color": "#9E4A4A"},
                delay_ms))
        evts += self.check_victory(acting_side, delay_ms)
        return evts

    def check_victory(self, acting_side: Side, delay_ms: int = 0) -> List[Event]:
        """Record the winner once a side has no living units.

        If both sides are wiped out by the same resolution, the acting side wins.
        """
        if self.session.battle_over:
            return []
        players = self.state.living("PLAYER")
        opponents = self.state.living("OPPONENT")
        if players and opponents:
            return []
        if not players and not opponents:
            winner = acting_side
        else:
            winner = "PLAYER" if players else "OPPONENT"
        self.session.winner = winner
        logger.info(f"Battle {self.session.battle_number} won by {winner}")
        return [self.state.event("BattleEnded", {"winner": winner,
                                                 "battle_number": self.session.battle_number},
                                 delay_ms)]

    def _buff_text(self, unit: Unit, label: str, color: str, delay_ms: int) -> Event:
        return self.state.event("Buff", {"unit_id": unit.id, "label": label, "color": color},
                                delay_ms)
