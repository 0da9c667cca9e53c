"""Test spell arming, targeting and effects."""
from rogues.engine.casting import SpellEngine
from rogues.engine.combat import CombatEngine
from rogues.engine.model import PERMANENT, State, StatusKind, Unit
from rogues.engine.session import Session
from rogues.engine.spells import SPELLS


def make_caster(*units):
    state = State()
    for uid, type_id, x, y in units:
        state.add_unit(Unit.from_type(uid, type_id, x, y))
    session = Session(state=state)
    return state, session, SpellEngine(session, CombatEngine(session))


def test_spell_rejected_without_mana():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o", "ORC_WARRIOR", 5, 5))
    session.mana = 20
    assert not spells.cast_spell("fireball")
    assert spells.active_spell is None
    assert session.mana == 20
    assert session.spells_cast_this_round == 0


def test_lightning_bolt_spends_mana_and_damages():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o", "ORC_WARRIOR", 5, 5))
    assert spells.cast_spell("lightning_bolt")
    evts = spells.target_unit(state.units["o"])
    assert [e.kind for e in evts[:2]] == ["SpellCast", "ManaChanged"]
    assert state.units["o"].health == 5
    assert session.mana == 85
    assert session.spells_cast_this_round == 1
    assert spells.active_spell is None


def test_one_spell_per_round_cap():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o", "ORC_BRUTE", 5, 5))
    spells.cast_spell("lightning_bolt")
    spells.target_unit(state.units["o"])
    assert not spells.cast_spell("heal")
    session.start_round(2)
    assert spells.cast_spell("heal")


def test_incompatible_target_is_a_no_op():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o", "ORC_WARRIOR", 5, 5))
    spells.cast_spell("heal")
    assert spells.target_unit(state.units["o"]) == []
    assert spells.target_tile(3, 3) == []
    assert session.mana == 100
    assert spells.active_spell.id == "heal"


def test_cancel_disarms_without_cost():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0))
    spells.cast_spell("meteor")
    assert spells.cancel()
    assert spells.active_spell is None
    assert session.mana == 100
    assert not spells.cancel()


def test_fireball_hits_enemies_touching_the_area():
    state, session, spells = make_caster(
        ("k", "KNIGHT", 4, 3), ("o1", "ORC_WARRIOR", 5, 3), ("o2", "ORC_WARRIOR", 6, 4),
        ("o3", "ORC_WARRIOR", 7, 3), ("boss", "ORC_WARLORD", 6, 1))
    spells.cast_spell("fireball")
    spells.target_tile(5, 3)
    assert state.units["o1"].health == 20
    assert state.units["o2"].health == 20
    assert state.units["o3"].health == 50
    assert state.units["boss"].health == 370
    assert state.units["k"].health == 100


def test_meteor_covers_radius_two():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o1", "ORC_BRUTE", 7, 5),
                                         ("o2", "ORC_BRUTE", 8, 5))
    spells.cast_spell("meteor")
    spells.target_tile(5, 5)
    assert state.units["o1"].health == 140
    assert state.units["o2"].health == 200
    assert session.mana == 50


def test_spell_power_from_meta_and_sorcerers():
    state, session, spells = make_caster(("s", "SORCERER", 0, 0), ("o", "ORC_BRUTE", 5, 5))
    session.spell_power_multiplier = 1.2
    spells.cast_spell("lightning_bolt")
    spells.target_unit(state.units["o"])
    assert state.units["o"].health == 124


def test_heal_boosted_by_healing_aura():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("c", "CLERIC", 0, 1))
    state.units["k"].take_damage(80)
    spells.cast_spell("heal")
    evts = spells.target_unit(state.units["k"])
    assert state.units["k"].health == 80
    assert evts[-1].kind == "Healed" and evts[-1].data["amount"] == 60


def test_everlasting_enchantments_make_buffs_permanent():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0))
    session.permanent_buffs = True
    spells.cast_spell("haste")
    spells.target_unit(state.units["k"])
    assert state.units["k"].statuses[StatusKind.HASTE].rounds == PERMANENT
    assert state.units["k"].move_range == 6
    for _ in range(4):
        state.units["k"].reset_for_new_turn()
    assert state.units["k"].move_range == 6


def test_mass_enchantment_shields_every_ally():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("a", "ARCHER", 0, 1),
                                         ("o", "ORC_WARRIOR", 5, 5))
    session.mass_enchantment = True
    spells.cast_spell("shield")
    spells.target_unit(state.units["k"])
    assert StatusKind.SHIELD in state.units["a"].statuses
    assert StatusKind.SHIELD in state.units["k"].statuses
    assert StatusKind.SHIELD not in state.units["o"].statuses


def test_ice_storm_damages_and_replaces_slow():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o", "ORC_BRUTE", 5, 5))
    orc = state.units["o"]
    orc.apply_status(StatusKind.SLOW, 3, 1)
    spells.cast_spell("ice_storm")
    spells.target_tile(5, 4)
    assert orc.health == 180
    slow = orc.statuses[StatusKind.SLOW]
    assert (slow.value, slow.rounds) == (1, 2)
    assert orc.move_range == 1


def test_chain_lightning_on_lone_target_hits_once():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("o", "ORC_WARRIOR", 5, 5))
    spells.cast_spell("chain_lightning")
    evts = spells.target_unit(state.units["o"])
    assert len([e for e in evts if e.kind == "Damage"]) == 1
    assert state.units["o"].health == 15


def test_chain_lightning_jumps_between_nearby_enemies():
    state, session, spells = make_caster(
        ("k", "KNIGHT", 0, 0), ("o1", "ORC_BRUTE", 5, 3), ("o2", "ORC_BRUTE", 7, 3),
        ("o3", "ORC_BRUTE", 9, 3), ("o4", "ORC_BRUTE", 5, 7))
    spells.cast_spell("chain_lightning")
    evts = spells.target_unit(state.units["o1"])
    hits = [e for e in evts if e.kind == "Damage"]
    assert [e.data["unit_id"] for e in hits] == ["o1", "o2", "o3"]
    assert hits[1].ts_ms - hits[0].ts_ms == 300
    assert state.units["o4"].health == 200


def test_teleport_needs_ally_then_free_tile():
    state, session, spells = make_caster(("k", "KNIGHT", 0, 0), ("a", "ARCHER", 1, 0))
    spells.cast_spell("teleport")
    assert spells.target_unit(state.units["k"])[0].kind == "Notice"
    assert session.mana == 100
    assert spells.target_tile(1, 0) == []
    spells.target_tile(6, 6)
    assert (state.units["k"].x, state.units["k"].y) == (6, 6)
    assert session.mana == 70


def test_boss_casts_from_its_own_mana_within_range():
    state, session, spells = make_caster(("boss", "ORC_WARLORD", 7, 3), ("k1", "KNIGHT", 3, 3),
                                         ("k2", "KNIGHT", 0, 0))
    boss = state.units["boss"]
    fireball = SPELLS["fireball"]
    assert spells.cast_as(boss, fireball, center=(0, 0)) == []
    spells.cast_as(boss, fireball, center=(3, 3))
    assert boss.mana == 25
    assert session.mana == 100
    assert state.units["k1"].health == 70
    assert state.units["boss"].health == 400
