import logging
from typing import Callable, Dict, List, Optional, Protocol
from rogues.engine.model import Event, Unit

logger = logging.getLogger(__name__)

class Presenter(Protocol):
    """Rendering collaborator. Every call is fire-and-forget."""

    def place_or_move_unit_visual(self, unit: Unit, x: int, y: int) -> None: ...
    def show_floating_text(self, text: str, x: Optional[int], y: Optional[int], color: str) -> None: ...
    def show_damage_text(self, unit: Unit, amount: int) -> None: ...
    def show_heal_text(self, unit: Unit, amount: int) -> None: ...
    def show_buff_text(self, unit: Unit, label: str, color: str) -> None: ...
    def mark_unit_defeated(self, unit: Unit) -> None: ...
    def refresh_unit_info_panel(self, unit: Unit) -> None: ...
    def refresh_mana_display(self) -> None: ...
    def refresh_initiative_queue_display(self, queue_snapshot: List[str]) -> None: ...

class LoggingPresenter:
    """Presenter that only writes what it would draw to the log."""

    def place_or_move_unit_visual(self, unit, x, y):
        logger.debug(f"{unit.id} -> ({x}, {y})")

    def show_floating_text(self, text, x, y, color):
        logger.debug(f"text '{text}' at ({x}, {y})")

    def show_damage_text(self, unit, amount):
        logger.debug(f"{unit.id} -{amount} ({unit.health}/{unit.max_health})")

    def show_heal_text(self, unit, amount):
        logger.debug(f"{unit.id} +{amount} ({unit.health}/{unit.max_health})")

    def show_buff_text(self, unit, label, color):
        logger.debug(f"{unit.id} {label}")

    def mark_unit_defeated(self, unit):
        logger.debug(f"{unit.id} defeated")

    def refresh_unit_info_panel(self, unit):
        pass

    def refresh_mana_display(self):
        pass

    def refresh_initiative_queue_display(self, queue_snapshot):
        logger.debug(f"queue {queue_snapshot}")

class EventDispatcher:
    """Turns engine events into presenter calls.

    Units are resolved through `lookup` at dispatch time; events for unknown
    units are dropped.
    """

    def __init__(self, presenter: Presenter, lookup: Callable[[str], Optional[Unit]]):
        self.presenter = presenter
        self.lookup = lookup
        self._handlers: Dict[str, Callable[[Dict], None]] = {
            "UnitPlaced": self._moved,
            "UnitMoved": self._moved,
            "Damage": self._damage,
            "Healed": self._healed,
            "Buff": self._buff,
            "Notice": self._notice,
            "Destroyed": self._destroyed,
            "ManaChanged": lambda d: self.presenter.refresh_mana_display(),
            "QueueChanged": lambda d: self.presenter.refresh_initiative_queue_display(d["queue"]),
            "TurnStarted": self._info,
            "UnitSelected": self._info,
        }

    def dispatch(self, e: Event) -> bool:
        handler = self._handlers.get(e.kind)
        if handler is None:
            return False
        handler(e.data)
        return True

    def _unit(self, d: Dict) -> Optional[Unit]:
        return self.lookup(d["unit_id"])

    def _moved(self, d):
        u = self._unit(d)
        if u is not None:
            self.presenter.place_or_move_unit_visual(u, d["x"], d["y"])

    def _damage(self, d):
        u = self._unit(d)
        if u is not None:
            self.presenter.show_damage_text(u, d["amount"])
            self.presenter.refresh_unit_info_panel(u)

    def _healed(self, d):
        u = self._unit(d)
        if u is not None and d["amount"] > 0:
            self.presenter.show_heal_text(u, d["amount"])
            self.presenter.refresh_unit_info_panel(u)

    def _buff(self, d):
        u = self._unit(d)
        if u is not None:
            self.presenter.show_buff_text(u, d["label"], d["color"])

    def _notice(self, d):
        self.presenter.show_floating_text(d["text"], d.get("x"), d.get("y"), d["color"])

    def _destroyed(self, d):
        u = self._unit(d)
        if u is not None:
            self.presenter.mark_unit_defeated(u)

    def _info(self, d):
        u = self._unit(d)
        if u is not None:
            self.presenter.refresh_unit_info_panel(u)
