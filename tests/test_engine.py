import threading

import pytest

from src.soulgraph.config import SoulGraphConfig
from src.soulgraph.engine import RelationshipEngine
from src.soulgraph.errors import InvalidStateError, NotFoundError, ValidationError
from src.soulgraph.formation import merge_harmonics
from src.soulgraph.models import Classification, Entity
from src.soulgraph.registry import EntityRegistry

PERIOD = 432000


def _entity(entity_id, vector):
    return Entity(id=entity_id, digest="0" * 64, feature_vector=tuple(vector))


@pytest.fixture
def pair(engine):
    a = engine.registry.register("first entity", {"name": "first"})
    b = engine.registry.register("second entity", {"name": "second"})
    return a, b


def test_engine_shares_registry_lock():
    registry = EntityRegistry()
    engine = RelationshipEngine(registry=registry)
    assert engine.lock is registry.lock
    assert isinstance(engine.lock, type(threading.RLock()))
    assert engine.config is registry.config


def test_similarity_accepts_ids_and_entities(engine, pair):
    a, b = pair
    by_id = engine.similarity(a.id, b.id)
    assert by_id == engine.similarity(a, b) == engine.similarity(b.id, a)
    assert engine.similarity(a.id, a.id) == 1.0
    with pytest.raises(NotFoundError):
        engine.similarity(a.id, "fp:v1:unknown")


def test_similarity_of_zero_vector_entity(engine):
    zero = _entity("zero", (0.0,) * 8)
    other = _entity("other", (0.3,) * 8)
    assert engine.similarity(zero, other) == 0.0
    assert engine.similarity(zero, zero) == 0.0


def test_similarity_of_large_magnitude_entities(engine):
    big = engine.registry.add(_entity("big", (1e154, 1e154)))
    twin = engine.registry.add(_entity("twin", (1e154, 1e154)))
    score = engine.similarity(big.id, twin.id)
    assert score == pytest.approx(1.0)
    assert engine.classify(score) == Classification.similar


def test_record_encounter_validates(engine, pair):
    a, b = pair
    with pytest.raises(NotFoundError):
        engine.record_encounter(a.id, "fp:v1:unknown", 0.5)
    with pytest.raises(ValidationError):
        engine.record_encounter(a.id, b.id, 1.5)
    with pytest.raises(ValidationError):
        engine.record_encounter(a.id, b.id, -0.1)


def test_record_encounter_defaults_to_current_similarity(engine, pair, clock):
    a, b = pair
    side_a, side_b = engine.record_encounter(a.id, b.id)
    assert side_a.similarity_score == engine.similarity(a, b)
    assert side_a.timestamp == clock.now
    assert engine.history(b.id) == [side_b]


def test_detect_dissonance_sorted(engine):
    entities = [
        _entity("x", (1.0, 0.0)),
        _entity("y", (0.0, 1.0)),
        _entity("z", (1.0, 0.2)),
        _entity("w", (0.2, 1.0)),
    ]
    found = engine.detect_dissonance(entities)
    scores = [d.dissonance_score for d in found]
    assert scores == sorted(scores, reverse=True)
    assert (found[0].a, found[0].b) == ("x", "y")
    assert found[0].dissonance_score == 1.0
    assert all(engine.classify(1.0 - d.dissonance_score) == Classification.dissimilar for d in found)
    pairs = {(d.a, d.b) for d in found}
    assert ("x", "z") not in pairs


def test_find_clusters_over_registry(engine):
    for i in range(10):
        engine.registry.register(f"cluster member {i}")
    for cluster in engine.find_clusters():
        assert len(cluster) > 1
    assert engine.find_clusters(min_score=1.01) == []


def test_heal_dissonance(engine, pair):
    a, b = pair
    engine.record_encounter(a.id, b.id, 0.1)
    assert engine.heal_dissonance(a.id, b.id) == 2
    assert engine.history(a.id)[0].classification == Classification.recovered
    assert engine.history(a.id)[0].similarity_score == 0.1
    assert engine.support_network(a.id).healers == [b.id]
    with pytest.raises(NotFoundError):
        engine.heal_dissonance(a.id, "fp:v1:unknown")


def test_pulse_and_vitals(engine, pair, clock):
    a, _ = pair
    with pytest.raises(NotFoundError):
        engine.pulse("fp:v1:unknown")
    assert engine.vital_signs(a.id) is None
    assert not engine.is_alive(a.id)

    engine.pulse(a.id, "awake")
    clock.advance(3600)
    engine.pulse(a.id)
    vitals = engine.vital_signs(a.id)
    assert vitals["alive"] is True
    assert vitals["resilience"] == 1.0
    assert vitals["rhythm"] == "steady"
    assert vitals["age_seconds"] == 0

    clock.advance(10000)
    assert engine.dormant() == [a.id]
    assert engine.vital_signs(a.id)["health"] == 0.0
    assert engine.network_vitality().vitality == 0.0


def test_begin_forming_requires_lock_and_score(engine, pair):
    a, b = pair
    assert engine.begin_forming(a.id, b.id, 0.97) is None
    engine.record_encounter(a.id, b.id, 0.9)
    assert engine.begin_forming(a.id, b.id, 0.9) is None
    assert engine.begin_forming(a.id, b.id, 0.97) == ":".join(sorted((a.id, b.id)))


def test_begin_forming_single_flight(engine, pair):
    """Tests that a second begin for a pair that is already forming is rejected."""
    a, b = pair
    engine.record_encounter(a.id, b.id, 0.97)
    assert engine.begin_forming(a.id, b.id, 0.97) is not None
    with pytest.raises(InvalidStateError):
        engine.begin_forming(b.id, a.id, 0.97)


def test_complete_before_ready_and_unknown(engine, pair):
    a, b = pair
    engine.record_encounter(a.id, b.id, 0.97)
    formation_id = engine.begin_forming(a.id, b.id, 0.97)
    with pytest.raises(InvalidStateError):
        engine.complete(formation_id)
    with pytest.raises(NotFoundError):
        engine.complete("no:such:formation")
    with pytest.raises(NotFoundError):
        engine.is_ready_to_complete("no:such:formation")


def test_complete_with_witnesses(engine, pair, clock):
    a, b = pair
    witness = engine.registry.register("witness", {"name": "witness"})
    engine.record_encounter(a.id, b.id, 0.99)
    formation_id = engine.begin_forming(a.id, b.id, 0.99)

    with pytest.raises(NotFoundError):
        engine.complete(formation_id, ["fp:v1:ghost"])

    clock.advance(PERIOD / 2)
    child = engine.complete(formation_id, [witness.id])

    assert child.name == f"{engine.registry.require(child.lineage[0]).name} + {engine.registry.require(child.lineage[1]).name}"
    assert engine.history(witness.id)[-1].other_id == child.id
    assert engine.history(witness.id)[-1].similarity_score == 1.0
    assert any(r.relation_type == "formed" and r.target_id == child.id for r in a.relations)
    assert engine.registry.trace_lineage(child.id)[0] is child

    (event,) = engine.events_for(witness.id)
    assert event.child_id == child.id
    assert engine.events_for(a.id) == [event]
    assert engine.events_for("fp:v1:bystander") == []
    assert engine.genealogy(child.id)["parents"] == sorted([a.id, b.id])
    assert engine.genealogy(a.id)["children"] == [child.id]


def test_failed_store_write_keeps_formation_active(engine, pair, clock, mocker):
    a, b = pair
    engine.record_encounter(a.id, b.id, 0.99)
    formation_id = engine.begin_forming(a.id, b.id, 0.99)
    clock.advance(PERIOD)

    mocker.patch.object(engine.registry.store, "save", side_effect=OSError("disk full"))
    with pytest.raises(OSError):
        engine.complete(formation_id)
    assert [f["formation_id"] for f in engine.active_formations()] == [formation_id]
    assert engine.formations.events() == []
    assert len(engine.registry) == 2
    assert a.relations == []

    mocker.stopall()
    child = engine.complete(formation_id)
    assert engine.active_formations() == []
    assert [r.target_id for r in a.relations if r.relation_type == "formed"] == [child.id]


def test_child_harmonics_merge_parents(engine, pair, clock):
    a, b = pair
    engine.record_encounter(a.id, b.id, 0.99)
    formation_id = engine.begin_forming(a.id, b.id, 0.99)
    clock.advance(PERIOD)
    child = engine.complete(formation_id)
    assert child.harmonics == merge_harmonics(a.harmonics, b.harmonics)


def test_abandon(engine, pair):
    a, b = pair
    engine.record_encounter(a.id, b.id, 0.97)
    formation_id = engine.begin_forming(a.id, b.id, 0.97)
    engine.abandon(formation_id)
    assert engine.active_formations() == []
    with pytest.raises(NotFoundError):
        engine.abandon(formation_id)


def test_interact_starts_formation_for_locked_pair(engine):
    a = engine.registry.add(_entity("a", (1.0, 0.5, 0.25)))
    b = engine.registry.add(_entity("b", (1.0, 0.5, 0.26)))
    result = engine.interact(a.id, b.id)
    assert result["classification"] == "similar"
    assert result["affinity_locked"] is True
    assert result["formation_id"] == "a:b"
    # already forming: the encounter is recorded, no second formation
    again = engine.interact(a.id, b.id)
    assert again["formation_id"] is None
    assert len(engine.active_formations()) == 1


def test_interact_dissimilar_pair(engine):
    a = engine.registry.add(_entity("a", (1.0, 0.0)))
    b = engine.registry.add(_entity("b", (0.0, 1.0)))
    result = engine.interact(a.id, b.id)
    assert result == {"score": 0.0, "classification": "dissimilar", "affinity_locked": False, "formation_id": None}


def test_run_cycle(config, clock):
    engine = RelationshipEngine(config=config, clock=clock)
    a = engine.registry.add(_entity("a", (1.0, 0.5, 0.25)))
    b = engine.registry.add(_entity("b", (1.0, 0.5, 0.26)))
    c = engine.registry.add(_entity("c", (1.0, 0.5, 0.3)))
    d = engine.registry.add(_entity("d", (-0.5, 1.0, 0.0)))
    engine.record_encounter(a.id, c.id, 0.8)
    engine.interact(a.id, b.id)
    engine.pulse(d.id)

    clock.advance(PERIOD)
    result = engine.run_cycle()

    (child_id,) = result["completed"]
    assert engine.registry.get(child_id) is not None
    assert engine.history(c.id)[-1].other_id == child_id
    assert result["dormant"] == [d.id]
    assert len(result["healed"]) <= 3
    assert engine.active_formations() == []


def test_custom_thresholds_flow_through():
    config = SoulGraphConfig(formation_threshold=0.5, affinity_threshold=0.5)
    engine = RelationshipEngine(config=config)
    a = engine.registry.add(_entity("a", (1.0, 0.0)))
    b = engine.registry.add(_entity("b", (1.0, 1.0)))
    engine.record_encounter(a.id, b.id, 0.6)
    assert engine.begin_forming(a.id, b.id, 0.6) == "a:b"
