import logging
from typing import Dict, List, Optional
from ..config import get_settings
from .ai import THINK_MS, DecisionEngine
from .casting import SpellEngine
from .combat import CombatEngine
from .model import PLAYER_TYPES, UNIT_TYPES, Event, State, Unit, manhattan
from .progression import RewardOffer, apply_rewards, generate_opponent_roster, generate_rewards
from .rng import DRNG
from .save import SaveState, from_entry, roster_from_state
from .session import Session
from .turns import TurnScheduler

logger = logging.getLogger(__name__)

# Logical clock advance after an opponent turn (ms)
AI_TURN_MS = 800
AI_MOVE_TURN_MS = 1200
SETTLE_MS = 100

class Engine:
    """Deterministic battle simulation driven by player input operations.

    Operations return True when accepted and False (with no state change) when
    rejected. Resulting events are buffered until drain_events() is called.
    Phases: army -> placement -> battle -> rewards -> battle ... or defeat.
    """

    def __init__(self, seed: Optional[int] = None, settings=None):
        self.settings = settings or get_settings()
        self._rng = DRNG(self.settings.seed if seed is None else seed)
        self.session = Session.from_settings(self.settings)
        self.combat = CombatEngine(self.session)
        self.spells = SpellEngine(self.session, self.combat)
        self.scheduler = TurnScheduler(self.session)
        self.ai = DecisionEngine(self.session, self.combat, self.spells, self._rng)
        self.phase = "army"
        self.pending: List[str] = []
        self.offer: Optional[RewardOffer] = None
        self.selected_id: Optional[str] = None
        self._events: List[Event] = []
        self._player_seq = 0

    @property
    def state(self) -> State:
        return self.session.state

    @property
    def active_unit(self) -> Optional[Unit]:
        return self.scheduler.active

    def _emit(self, evts: List[Event]) -> None:
        self._events.extend(evts)

    def drain_events(self) -> List[Event]:
        """Return and clear buffered events."""
        evts, self._events = self._events, []
        return evts

    def _settle(self, evts: List[Event], minimum: int = 0) -> None:
        """Move the logical clock past the last deferred visual."""
        latest = max((e.ts_ms for e in evts), default=self.state.ts_ms)
        self.state.ts_ms = max(self.state.ts_ms + minimum, latest + SETTLE_MS)

    def _new_player_id(self) -> str:
        self._player_seq += 1
        return f"p{self._player_seq}"

    # Pre-game

    def confirm_army_selection(self, counts: Dict[str, int]) -> bool:
        """Lock in the starting army; units then wait for placement."""
        if self.phase != "army":
            return False
        if any(t not in PLAYER_TYPES or n < 0 for t, n in counts.items()):
            logger.debug(f"Army rejected, unknown type or negative count: {counts}")
            return False
        points = sum(UNIT_TYPES[t].cost * n for t, n in counts.items())
        if points > self.settings.army_points or sum(counts.values()) < 1:
            logger.debug(f"Army rejected: {points} points, {sum(counts.values())} units")
            return False
        self.pending = [t for t, n in counts.items() for _ in range(n)]
        self.phase = "placement"
        logger.info(f"Army selected: {counts} ({points}/{self.settings.army_points} points)")
        self._emit([self.state.event("ArmySelected", {"counts": dict(counts), "points": points})])
        return True

    def place_unit(self, type_id: str, x: int, y: int) -> bool:
        """Place a pending unit in the placement zone. The last one starts battle 1."""
        if self.phase != "placement" or type_id not in self.pending:
            return False
        if x >= self.settings.placement_columns or not self.state.is_valid_placement(x, y):
            logger.debug(f"Cannot place {type_id} at {(x, y)}")
            return False
        unit = self.state.add_unit(Unit.from_type(self._new_player_id(), type_id, x, y))
        self.pending.remove(type_id)
        self._emit([self.state.event("UnitPlaced", {"unit_id": unit.id, "type": type_id,
                                                    "x": x, "y": y, "side": unit.side})])
        if not self.pending:
            self.start_battle()
        return True

    # Battle lifecycle

    def start_battle(self) -> None:
        s = self.session
        s.winner = None
        s.mana = s.max_mana
        self.spells.cancel()
        self.offer = None
        spawned = generate_opponent_roster(self.state, s.battle_number, self._rng, self.settings)
        self.phase = "battle"
        logger.info(f"Battle {s.battle_number} starts: {len(self.state.living('PLAYER'))} vs {len(spawned)}")
        evts = [self.state.event("UnitPlaced", {"unit_id": u.id, "type": u.unit_type_id,
                                                "x": u.x, "y": u.y, "side": u.side})
                for u in spawned]
        evts.append(self.state.event("BattleStarted", {"battle_number": s.battle_number,
                                                       "opponents": len(spawned)}))
        evts.append(self.state.event("ManaChanged", {"mana": s.mana, "max_mana": s.max_mana}))
        evts += self.scheduler.start()
        self._emit(evts)
        self._settle(evts)
        self._advance()

    def _advance(self) -> None:
        """Activate units, playing opponent turns, until a player must act."""
        while not self.session.battle_over:
            if not self.state.living("PLAYER") or not self.state.living("OPPONENT"):
                self._emit(self.combat.check_victory("OPPONENT"))
                break
            evts = self.scheduler.advance()
            self._emit(evts)
            unit = self.scheduler.active
            if unit is None:
                break
            if unit.side == "PLAYER":
                self.selected_id = unit.id
                self._settle(evts)
                return
            acted = self.ai.take_turn(unit, THINK_MS)
            self._emit(acted)
            moved = any(e.kind == "UnitMoved" for e in acted)
            self._settle(evts + acted, AI_MOVE_TURN_MS if moved else AI_TURN_MS)
        if self.session.battle_over:
            self._finish_battle()

    def _finish_battle(self) -> None:
        s = self.session
        self.spells.cancel()
        self.scheduler.active = None
        if s.winner == "PLAYER":
            self.phase = "rewards"
            self.offer = generate_rewards(s, self._rng, self.settings)
            self._emit([self.state.event("RewardsOffered", self.offer.to_dict())])
        else:
            self.phase = "defeat"
            logger.info(f"Defeat in battle {s.battle_number} after {s.round_number} rounds")

    def _after_action(self, evts: List[Event]) -> bool:
        if not evts:
            return False
        self._emit(evts)
        self._settle(evts)
        if self.session.battle_over:
            self._finish_battle()
        return True

    def _player_turn(self) -> Optional[Unit]:
        if self.phase != "battle" or self.session.battle_over:
            return None
        if not self.scheduler.is_player_turn():
            return None
        return self.scheduler.active

    # Input operations

    def handle_tile_activated(self, x: int, y: int) -> bool:
        """Target an armed spell, act on a unit, or move the active unit."""
        if self._player_turn() is None or not self.state.in_bounds(x, y):
            return False
        if self.spells.active_spell is not None:
            return self._after_action(self.spells.target_tile(x, y))
        unit = self.state.unit_at(x, y)
        if unit is not None:
            return self.handle_unit_activated(unit.id)
        return self.move_active_unit(x, y)

    def move_active_unit(self, x: int, y: int) -> bool:
        active = self._player_turn()
        if active is None or not active.can_move():
            return False
        if manhattan((active.x, active.y), (x, y)) > active.move_range:
            logger.debug(f"{active.id} cannot reach {(x, y)}")
            return False
        if not self.state.is_valid_placement(x, y, active.size, ignore=active):
            return False
        active.x, active.y = x, y
        active.has_moved = True
        return self._after_action([self.state.event("UnitMoved", {
            "unit_id": active.id, "x": x, "y": y, "reason": "move"})])

    def handle_unit_activated(self, unit_id: str) -> bool:
        """Target an armed spell, attack an enemy, or select a unit."""
        active = self._player_turn()
        unit = self.state.units.get(unit_id)
        if active is None or unit is None or unit.is_dead:
            return False
        if self.spells.active_spell is not None:
            return self._after_action(self.spells.target_unit(unit))
        if unit.side != active.side:
            if self.combat.can_shoot(active, unit):
                return self._after_action(self.combat.ranged_attack(active, unit))
            if self.combat.can_melee(active, unit):
                return self._after_action(self.combat.melee_attack(active, unit))
        self.selected_id = unit.id
        self._emit([self.state.event("UnitSelected", {"unit_id": unit.id})])
        return True

    def end_current_turn(self) -> bool:
        active = self._player_turn()
        if active is None:
            return False
        active.has_moved = True
        active.has_attacked = True
        self.spells.cancel()
        self._advance()
        return True

    def cast_spell(self, spell_id: str) -> bool:
        if self._player_turn() is None:
            return False
        if not self.spells.cast_spell(spell_id):
            return False
        self._emit([self.state.event("SpellArmed", {"spell_id": spell_id})])
        return True

    def cancel_active_spell(self) -> bool:
        if not self.spells.cancel():
            return False
        self._emit([self.state.event("Notice", {"text": "Spell cancelled", "x": None, "y": None,
                                                "color": "#888888"})])
        return True

    # Rewards

    def select_reward(self, category: str, option_id: str, unit_id: Optional[str] = None) -> bool:
        if self.phase != "rewards" or self.offer is None:
            return False
        unit = self.state.units.get(unit_id) if unit_id else None
        return self.offer.select(category, option_id, unit)

    def confirm_reward_selections(self) -> bool:
        """Apply the chosen rewards and start the next battle."""
        if self.phase != "rewards" or self.offer is None or not self.offer.is_complete:
            return False
        recruit_id = self._new_player_id() if "recruit" in self.offer.selections else ""
        self._emit(apply_rewards(self.session, self.offer, recruit_id, self.settings))
        self.next_battle()
        return True

    def next_battle(self) -> None:
        """Carry surviving player units into a fresh board and start the next battle."""
        survivors = self.state.living("PLAYER")
        board = State(ts_ms=self.state.ts_ms, width=self.state.width, height=self.state.height,
                      battle_id=self.state.battle_id)
        for u in survivors:
            board.add_unit(u)
        self.session.state = board
        self.session.battle_number += 1
        self.start_battle()

    # Persistence

    def save(self) -> SaveState:
        return SaveState(battle_number=self.session.battle_number,
                         roster=roster_from_state(self.state),
                         meta_buffs=dict(self.session.meta_buffs))

    def load(self, save: SaveState) -> None:
        """Replace the campaign with a saved one and start its battle."""
        board = State(ts_ms=self.state.ts_ms, width=self.settings.grid_width,
                      height=self.settings.grid_height, battle_id=self.state.battle_id)
        session = Session.from_settings(self.settings, board)
        session.battle_number = save.battle_number
        session.restore_metas(save.meta_buffs)
        for entry in save.roster:
            unit = from_entry(entry)
            if not board.is_valid_placement(unit.x, unit.y, unit.size):
                logger.warning(f"Skipping saved unit {entry.id} at ({entry.x}, {entry.y})")
                continue
            board.add_unit(unit)
        self.session = session
        self.combat.session = self.spells.session = self.scheduler.session = session
        self.ai.session = session
        self.scheduler.queue, self.scheduler.active = [], None
        self.spells.cancel()
        self.pending = []
        self._player_seq = max([int(e.id[1:]) for e in save.roster if e.id[1:].isdigit()],
                               default=0)
        logger.info(f"Loaded save at battle {save.battle_number} with {len(save.roster)} units")
        self.start_battle()

    def snapshot(self) -> Dict:
        """Serializable view of the whole simulation."""
        s = self.session
        active = self.scheduler.active
        return {
            "phase": self.phase,
            "ts_ms": self.state.ts_ms,
            "battle_number": s.battle_number,
            "round": s.round_number,
            "mana": s.mana,
            "max_mana": s.max_mana,
            "spells_cast_this_round": s.spells_cast_this_round,
            "spells_per_round": s.spells_per_round,
            "meta_buffs": dict(s.meta_buffs),
            "winner": s.winner,
            "active_unit": active.id if active else None,
            "selected_unit": self.selected_id,
            "active_spell": self.spells.active_spell.id if self.spells.active_spell else None,
            "queue": self.scheduler.queue_snapshot(),
            "pending": list(self.pending),
            "rewards": self.offer.to_dict() if self.offer else None,
            "units": {uid: unit_view(u) for uid, u in self.state.units.items()},
        }

def unit_view(u: Unit) -> Dict:
    return {
        "id": u.id,
        "type": u.unit_type_id,
        "name": u.name,
        "side": u.side,
        "x": u.x,
        "y": u.y,
        "size": u.size,
        "health": u.health,
        "max_health": u.max_health,
        "damage": u.damage,
        "move_range": u.move_range,
        "ranged_range": u.ranged_range,
        "initiative": u.initiative,
        "has_moved": u.has_moved,
        "has_attacked": u.has_attacked,
        "is_dead": u.is_dead,
        "mana": u.mana,
        "statuses": {k.value: {"value": s.value, "rounds": s.rounds} for k, s in u.statuses.items()},
        "special_abilities": sorted(a.value for a in u.special_abilities),
    }
