"""Test the battle facade: army selection, placement, turns, rewards and saves."""
from rogues.config import Settings
from rogues.engine.engine import Engine


def make_engine(seed: int = 42, **counts) -> Engine:
    eng = Engine(seed=seed, settings=Settings())
    if counts:
        assert eng.confirm_army_selection(counts)
    return eng


def started_engine(seed: int = 42) -> Engine:
    """Single knight at (0, 3) in battle 1, waiting for input."""
    eng = make_engine(seed, KNIGHT=1)
    assert eng.place_unit("KNIGHT", 0, 3)
    return eng


def win_battle(eng: Engine) -> None:
    """Leave one opponent beside the knight and finish it off."""
    knight = eng.state.units["p1"]
    opponents = eng.state.living("OPPONENT")
    for o in opponents[1:]:
        o.take_damage(10_000)
    last = opponents[0]
    last.health = 1
    x, y = next((knight.x + dx, knight.y + dy) for dx, dy in ((1, 0), (0, 1), (0, -1), (-1, 0))
                if eng.state.is_valid_placement(knight.x + dx, knight.y + dy, last.size, ignore=last))
    last.x, last.y = x, y
    assert eng.handle_unit_activated(last.id)


def test_army_selection_enforces_points_and_minimum():
    eng = make_engine()
    assert not eng.confirm_army_selection({"PALADIN": 2})
    assert not eng.confirm_army_selection({})
    assert not eng.confirm_army_selection({"ORC_WARRIOR": 1})
    assert eng.phase == "army"
    assert eng.confirm_army_selection({"KNIGHT": 2, "WIZARD": 1, "ARCHER": 0})
    assert eng.phase == "placement"
    assert sorted(eng.pending) == ["KNIGHT", "KNIGHT", "WIZARD"]


def test_placement_zone_and_battle_start():
    eng = make_engine(KNIGHT=1, ARCHER=1)
    assert not eng.place_unit("KNIGHT", 2, 0)
    assert not eng.place_unit("WIZARD", 0, 0)
    assert eng.place_unit("KNIGHT", 0, 0)
    assert not eng.place_unit("ARCHER", 0, 0)
    assert eng.phase == "placement"
    assert eng.place_unit("ARCHER", 1, 5)
    assert eng.phase == "battle"
    assert eng.state.living("OPPONENT")
    kinds = [e.kind for e in eng.drain_events()]
    assert "BattleStarted" in kinds and "TurnStarted" in kinds


def test_battle_waits_for_player_turn():
    eng = started_engine()
    assert eng.active_unit.id == "p1"
    assert eng.session.mana == eng.session.max_mana
    assert eng.drain_events()
    assert eng.drain_events() == []


def test_player_move_respects_range_and_once_per_turn():
    eng = started_engine()
    knight = eng.active_unit
    assert not eng.move_active_unit(knight.x + 5, knight.y)
    target = next((knight.x + dx, knight.y + dy)
                  for dx, dy in ((2, 0), (1, 1), (1, -1), (0, 2), (0, -2))
                  if eng.state.is_valid_placement(knight.x + dx, knight.y + dy))
    assert eng.handle_tile_activated(*target)
    assert (knight.x, knight.y) == target
    assert knight.has_moved
    assert not eng.move_active_unit(0, 0)


def test_end_turn_runs_opponents_until_player_acts_again():
    eng = started_engine()
    start_ts = eng.state.ts_ms
    assert eng.end_current_turn()
    if eng.phase == "battle":
        assert eng.active_unit.side == "PLAYER"
        assert eng.session.round_number == 2
    assert eng.state.ts_ms > start_ts


def test_spell_cast_through_facade():
    eng = started_engine()
    target = eng.state.living("OPPONENT")[0]
    hp = target.health
    assert eng.cast_spell("lightning_bolt")
    assert eng.handle_unit_activated(target.id)
    assert target.health == max(0, hp - 45)
    assert eng.session.mana == 85
    assert not eng.cast_spell("heal")


def test_actions_rejected_outside_battle():
    eng = make_engine(KNIGHT=1)
    assert not eng.end_current_turn()
    assert not eng.cast_spell("heal")
    assert not eng.handle_tile_activated(0, 0)
    assert not eng.confirm_reward_selections()


def test_victory_offers_rewards_and_starts_next_battle():
    eng = started_engine()
    win_battle(eng)
    assert eng.phase == "rewards"
    assert eng.session.winner == "PLAYER"
    offer = eng.offer
    assert offer.recruits == []
    assert not eng.confirm_reward_selections()

    buff = next(b for b in offer.buffs if b != "legendary")
    assert eng.select_reward("buff", buff, "p1")
    assert eng.select_reward("magic", offer.magic[0])
    assert eng.confirm_reward_selections()
    assert eng.phase in ("battle", "defeat")
    assert eng.session.battle_number == 2
    assert "p1" in eng.state.units
    assert eng.state.units["p1"].stat_modifiers
    assert not any(u.id.startswith("o1_") for u in eng.state.units.values())


def test_save_and_load_resume_campaign():
    eng = started_engine()
    eng.state.units["p1"].apply_modifiers({"damage": 10})
    save = eng.save()
    assert save.battle_number == 1
    assert [e.type for e in save.roster] == ["KNIGHT"]

    other = Engine(seed=7, settings=Settings())
    other.load(save)
    assert other.phase in ("battle", "defeat")
    assert other.state.units["p1"].damage == 35
    assert other.session.battle_number == 1
    assert other.state.living("OPPONENT")


def test_load_keeps_the_event_clock_moving_forward():
    eng = started_engine()
    for _ in range(3):
        if eng.phase != "battle":
            break
        eng.end_current_turn()
    eng.drain_events()
    before = eng.state.ts_ms
    eng.load(eng.save())
    stamps = [e.ts_ms for e in eng.drain_events()]
    assert stamps
    assert min(stamps) >= before


def test_load_skips_units_off_board_or_overlapping():
    eng = started_engine()
    save = eng.save()
    entry = save.roster[0]
    save.roster = [entry,
                   entry.model_copy(update={"id": "p2"}),
                   entry.model_copy(update={"id": "p3", "x": 40, "y": 3})]
    other = Engine(seed=7, settings=Settings())
    other.load(save)
    players = [u.id for u in other.state.units.values() if u.side == "PLAYER"]
    assert players == ["p1"]


def test_opponent_turn_events_are_paced():
    eng = started_engine()
    eng.drain_events()
    eng.end_current_turn()
    evts = eng.drain_events()
    turns = [e for e in evts if e.kind == "TurnStarted"]
    assert all(a.ts_ms < b.ts_ms for a, b in zip(turns, turns[1:]))
    for e in evts:
        if e.kind == "UnitMoved" and e.data["reason"] == "advance":
            unit = eng.state.units[e.data["unit_id"]]
            assert len(e.data["path"]) <= unit.base_move_range
