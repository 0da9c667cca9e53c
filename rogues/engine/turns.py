import logging
from typing import List, Optional
from .model import Event, Unit
from .session import Session

logger = logging.getLogger(__name__)

QUEUE_PREVIEW = 8  # Active unit plus the next seven

class InvariantViolation(RuntimeError):
    """Internal defect: the scheduler reached a state that should be impossible."""

class TurnScheduler:
    """Initiative-ordered queue of units for the current round."""

    def __init__(self, session: Session):
        self.session = session
        self.queue: List[Unit] = []
        self.active: Optional[Unit] = None

    @property
    def state(self):
        return self.session.state

    def build_queue(self) -> List[Unit]:
        # sorted() is stable, so equal initiative keeps roster order
        return sorted(self.state.living(), key=lambda u: u.initiative, reverse=True)

    def start(self) -> List[Event]:
        """Build the round-1 queue. No mana tick for the first round."""
        self.session.round_number = 1
        self.session.spells_cast_this_round = 0
        self.queue = self.build_queue()
        self.active = None
        logger.info(f"Battle {self.session.battle_number}: round 1, {len(self.queue)} units")
        return [self.state.event("RoundStarted", {"round": 1, "mana_gained": 0})]

    def advance(self) -> List[Event]:
        """Activate the next living unit, opening a new round when the queue runs dry."""
        self.active = None
        evts: List[Event] = []
        self._drop_dead()
        if not self.queue:
            evts += self.new_round()
            self._drop_dead()
        if not self.queue:
            return evts

        unit = self.queue.pop(0)
        if unit.is_dead:
            raise InvariantViolation(f"dead unit {unit.id} reached the active slot")
        self.active = unit
        healed = unit.reset_for_new_turn()

        evts.append(self.state.event("TurnStarted", {"unit_id": unit.id, "side": unit.side,
                                                     "round": self.session.round_number}))
        if healed:
            evts.append(self.state.event("Healed", {"unit_id": unit.id, "amount": healed,
                                                    "hp": unit.health}))
        evts.append(self.state.event("QueueChanged", {"queue": self.queue_snapshot()}))
        return evts

    def new_round(self) -> List[Event]:
        round_number = self.session.round_number + 1
        gained = self.session.start_round(round_number)
        self.queue = self.build_queue()
        logger.info(f"Round {round_number} begins (+{gained} mana)")
        evts = [self.state.event("RoundStarted", {"round": round_number, "mana_gained": gained})]
        if gained:
            evts.append(self.state.event("ManaChanged", {"mana": self.session.mana,
                                                         "max_mana": self.session.max_mana}))
        return evts

    def _drop_dead(self) -> None:
        self.queue = [u for u in self.queue if not u.is_dead]

    def queue_snapshot(self) -> List[str]:
        """Active unit id followed by the upcoming living units."""
        ids = [self.active.id] if self.active is not None else []
        ids += [u.id for u in self.queue if not u.is_dead]
        return ids[:QUEUE_PREVIEW]

    def is_player_turn(self) -> bool:
        return self.active is not None and self.active.side == "PLAYER"
