import numpy as np
import pytest

from staffcab.core.smart_pack_engine.bucket_aggregator import aggregate, aggregate_counted
from staffcab.core.smart_pack_engine.output_assembly import finalize
from staffcab.core.smart_pack_engine.route_sequencer import haversine_m_from, sequence
from staffcab.domain.geo import haversine_m, is_finite_coordinates
from staffcab.domain.models import INBOUND, OUTBOUND, UNKNOWN_ZONE, Bucket, Stop
from staffcab.domain.zone_clusters import cluster_label_for, load_zone_clusters

HUB = (50.4195, -4.1090)

CLUSTERS = load_zone_clusters([
    {"label": "Mutley / Lipson", "zones": ["Mutley", "Lipson", "St Judes"]},
])


def _stop(name, coords, zone="Mutley", date="2025-12-24", time="07:30"):
    return Stop(
        coordinates=coords,
        zone_name=zone,
        pickup_date_iso=date,
        on_off_duty_time=time,
        formatted=name,
    )


# Three stops due north of the hospital: A closest, C furthest
A = _stop("A", (50.43, -4.1090))
B = _stop("B", (50.45, -4.1090))
C = _stop("C", (50.47, -4.1090))


# --- geo ---


def test_haversine_one_degree_latitude():
    assert haversine_m((50.0, -4.0), (51.0, -4.0)) == pytest.approx(111194.9, abs=1.0)


def test_haversine_symmetric_and_zero():
    p, q = (50.3755, -4.1427), HUB
    assert haversine_m(p, q) == pytest.approx(haversine_m(q, p))
    assert haversine_m(p, p) == 0.0


def test_is_finite_coordinates():
    assert is_finite_coordinates((50.0, -4.0))
    assert not is_finite_coordinates(None)
    assert not is_finite_coordinates((float("nan"), -4.0))
    assert not is_finite_coordinates(("x", 1))


# --- aggregator ---


def test_aggregate_groups_by_date_time_and_cluster():
    stops = [
        _stop("1", (50.43, -4.12), zone="Mutley"),
        _stop("2", (50.44, -4.12), zone="lipson"),
        _stop("3", (50.45, -4.12), zone="Plympton"),
        _stop("4", (50.46, -4.12), zone="Mutley", time="19:30"),
    ]
    buckets = aggregate(stops, INBOUND, CLUSTERS)

    by_key = {b.key: b for b in buckets}
    assert set(by_key) == {
        ("2025-12-24", "07:30", "Mutley / Lipson"),
        ("2025-12-24", "07:30", "Plympton"),
        ("2025-12-24", "19:30", "Mutley / Lipson"),
    }
    shared = by_key[("2025-12-24", "07:30", "Mutley / Lipson")]
    assert shared.count == 2
    assert shared.source_zones == {"Mutley", "lipson"}
    assert all(b.direction == INBOUND for b in buckets)


def test_aggregate_skips_stops_without_date_or_time():
    stops = [A, _stop("x", (50.4, -4.1), time=""), _stop("y", (50.4, -4.1), date=" ")]
    buckets, skipped = aggregate_counted(stops, INBOUND, CLUSTERS)
    assert skipped == 2
    assert sum(b.count for b in buckets) == 1


def test_aggregate_every_placeable_stop_in_exactly_one_bucket():
    stops = [A, B, C, _stop("D", None, zone=""), _stop("E", (50.5, -4.2), zone="Plymstock")]
    buckets = aggregate(stops, OUTBOUND, CLUSTERS)
    placed = [s for b in buckets for s in b.stops]
    assert sorted(s.formatted for s in placed) == ["A", "B", "C", "D", "E"]
    assert any(b.cluster_label == UNKNOWN_ZONE for b in buckets)


def test_aggregate_empty_input():
    assert aggregate_counted([], INBOUND, CLUSTERS) == ([], 0)


# --- sequencer ---


def test_sequence_inbound_starts_furthest_from_hub():
    ordered = sequence([B, A, C], INBOUND, HUB)
    assert [s.formatted for s in ordered] == ["C", "B", "A"]


def test_sequence_outbound_starts_nearest_hub():
    ordered = sequence([B, C, A], OUTBOUND, HUB)
    assert [s.formatted for s in ordered] == ["A", "B", "C"]


def test_sequence_is_permutation():
    stops = [C, A, B, _stop("D", (50.40, -4.20)), _stop("E", (50.38, -4.05))]
    for direction in (INBOUND, OUTBOUND):
        ordered = sequence(stops, direction, HUB)
        assert len(ordered) == len(stops)
        assert sorted(s.formatted for s in ordered) == sorted(s.formatted for s in stops)


def test_sequence_ties_keep_first_encountered():
    x1 = _stop("x1", (50.45, -4.12))
    x2 = _stop("x2", (50.45, -4.12))
    assert [s.formatted for s in sequence([x1, x2], INBOUND, HUB)] == ["x1", "x2"]
    assert [s.formatted for s in sequence([x1, x2], OUTBOUND, HUB)] == ["x1", "x2"]


def test_sequence_appends_unlocated_stops_in_input_order():
    u1 = _stop("u1", None)
    u2 = _stop("u2", (float("nan"), -4.1))
    ordered = sequence([u1, B, u2, A], OUTBOUND, HUB)
    assert [s.formatted for s in ordered] == ["A", "B", "u1", "u2"]


def test_sequence_trivial_inputs():
    assert sequence([], INBOUND, HUB) == []
    assert sequence([A], OUTBOUND, HUB) == [A]
    only_unlocated = [_stop("u1", None), _stop("u2", None)]
    assert sequence(only_unlocated, INBOUND, HUB) == only_unlocated


# --- output assembly ---


def test_finalize_sorts_groups_and_sequences_stops():
    late = Bucket(date="2025-12-24", time="19:30", cluster_label="Alpha", direction=INBOUND, stops=[A], count=1)
    early_b = Bucket(date="2025-12-24", time="07:30", cluster_label="Beta", direction=INBOUND, stops=[A], count=1)
    early_a = Bucket(
        date="2025-12-24", time="07:30", cluster_label="Alpha", direction=INBOUND,
        stops=[A, C, B], count=3, source_zones={"Mutley", "Lipson"},
    )
    day_before = Bucket(date="2025-12-23", time="23:00", cluster_label="Zulu", direction=INBOUND, stops=[B], count=1)

    groups = finalize([late, early_b, early_a, day_before], HUB)

    assert [(g.date, g.time, g.cluster_label) for g in groups] == [
        ("2025-12-23", "23:00", "Zulu"),
        ("2025-12-24", "07:30", "Alpha"),
        ("2025-12-24", "07:30", "Beta"),
        ("2025-12-24", "19:30", "Alpha"),
    ]
    alpha = groups[1]
    assert alpha.source_zones == ("Lipson", "Mutley")
    assert alpha.stop_count == 3
    assert [s.formatted for s in alpha.ordered_stops] == ["C", "B", "A"]


def test_finalize_empty():
    assert finalize([], HUB) == []


def test_finalize_is_repeatable():
    buckets = [
        Bucket(date="2025-12-24", time="07:30", cluster_label="Beta", direction=INBOUND, stops=[B, A], count=2),
        Bucket(date="2025-12-24", time="07:30", cluster_label="Alpha", direction=OUTBOUND, stops=[C, A], count=2),
        Bucket(date="2025-12-23", time="07:30", cluster_label="Beta", direction=INBOUND, stops=[C], count=1),
    ]
    first = finalize(buckets, HUB)
    second = finalize(buckets, HUB)
    assert first == second
    assert [(g.date, g.cluster_label) for g in first] == [
        ("2025-12-23", "Beta"), ("2025-12-24", "Alpha"), ("2025-12-24", "Beta"),
    ]


# --- worked example: three Plymouth pickups heading to the hospital ---


def test_inbound_example_walks_to_nearest_neighbour():
    a = _stop("A", (50.40, -4.15))
    b = _stop("B", (50.38, -4.20))
    c = _stop("C", (50.41, -4.11))

    # B is furthest from the hospital, and A is closer to B than C is
    assert haversine_m(b.coordinates, HUB) > max(haversine_m(a.coordinates, HUB), haversine_m(c.coordinates, HUB))
    assert haversine_m(b.coordinates, a.coordinates) == pytest.approx(4184.5, abs=1.0)
    assert haversine_m(b.coordinates, c.coordinates) == pytest.approx(7199.2, abs=1.0)

    assert [s.formatted for s in sequence([a, b, c], INBOUND, HUB)] == ["B", "A", "C"]


def test_cluster_label_ignores_case():
    assert cluster_label_for("MUTLEY", CLUSTERS) == cluster_label_for("mutley", CLUSTERS) == "Mutley / Lipson"
    assert cluster_label_for("  St JUDES ", CLUSTERS) == "Mutley / Lipson"


def test_vectorised_distance_matches_scalar():
    points = [(50.40, -4.15), (50.38, -4.20), (50.41, -4.11), HUB, (50.3755, -4.1427)]
    origin = (50.4195, -4.1090)
    vectorised = haversine_m_from(origin, np.array(points, dtype=float))
    assert vectorised.tolist() == pytest.approx([haversine_m(origin, p) for p in points], abs=1e-6)
    assert haversine_m_from(origin, np.zeros((0, 2))).shape == (0,)
