"""Test initiative ordering, rounds and mana regeneration."""
from rogues.engine.model import State, Unit
from rogues.engine.session import Session
from rogues.engine.turns import TurnScheduler


def make_scheduler(*units):
    state = State()
    for uid, type_id, x, y in units:
        state.add_unit(Unit.from_type(uid, type_id, x, y))
    session = Session(state=state)
    return state, session, TurnScheduler(session)


ROSTER = [("k", "KNIGHT", 0, 0), ("a", "ARCHER", 0, 1), ("r", "ROGUE", 0, 2),
          ("o", "ORC_WARRIOR", 9, 0), ("b", "ORC_BRUTE", 9, 1)]


def test_queue_sorted_by_initiative_descending():
    state, session, turns = make_scheduler(*ROSTER)
    turns.start()
    assert [u.id for u in turns.queue] == ["r", "a", "k", "o", "b"]


def test_equal_initiative_keeps_roster_order():
    state, session, turns = make_scheduler(("k2", "KNIGHT", 0, 0), ("k1", "KNIGHT", 0, 1),
                                           ("g", "GOBLIN_STONE_THROWER", 9, 0))
    turns.start()
    assert [u.id for u in turns.queue] == ["k2", "k1", "g"]


def test_advance_activates_and_resets_next_unit():
    state, session, turns = make_scheduler(*ROSTER)
    state.units["r"].has_attacked = True
    turns.start()
    evts = turns.advance()
    assert turns.active.id == "r"
    assert turns.active.can_attack()
    assert evts[0].kind == "TurnStarted"
    assert turns.queue_snapshot() == ["r", "a", "k", "o", "b"]


def test_first_round_has_no_mana_tick():
    state, session, turns = make_scheduler(*ROSTER)
    session.mana = 50
    turns.start()
    turns.advance()
    assert session.mana == 50


def test_dead_units_are_skipped():
    state, session, turns = make_scheduler(*ROSTER)
    turns.start()
    state.units["a"].take_damage(1000)
    turns.advance()
    turns.advance()
    assert turns.active.id == "k"
    assert all(not u.is_dead for u in turns.queue)


def test_new_round_regenerates_mana_and_resets_cast_counter():
    state, session, turns = make_scheduler(("w", "WIZARD", 0, 0), ("o", "ORC_WARRIOR", 9, 0))
    session.mana = 50
    session.spells_cast_this_round = 1
    turns.start()
    turns.advance()
    turns.advance()
    evts = turns.advance()
    assert session.round_number == 2
    assert session.mana == 52
    assert session.spells_cast_this_round == 0
    assert evts[0].kind == "RoundStarted"
    assert evts[0].data["mana_gained"] == 2


def test_mana_regen_capped_at_max():
    state, session, turns = make_scheduler(("w", "WIZARD", 0, 0))
    session.mana = 99
    turns.start()
    turns.advance()
    turns.advance()
    assert session.mana == 100


def test_round_rebuild_reflects_new_initiative():
    state, session, turns = make_scheduler(("k", "KNIGHT", 0, 0), ("a", "ARCHER", 0, 1))
    turns.start()
    turns.advance()
    turns.advance()
    state.units["k"].apply_modifiers({"initiative": 5})
    turns.advance()
    assert turns.active.id == "k"


def test_queue_snapshot_shows_at_most_eight():
    units = [(f"o{i}", "ORC_WARRIOR", 9, i) for i in range(8)]
    units += [(f"g{i}", "GOBLIN_STONE_THROWER", 8, i) for i in range(4)]
    state, session, turns = make_scheduler(*units)
    turns.start()
    turns.advance()
    snap = turns.queue_snapshot()
    assert len(snap) == 8
    assert snap[0] == turns.active.id == "g0"
