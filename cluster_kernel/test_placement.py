"""
Cluster Kernel — Placement Resolver Tests

  1-5:   Flat mode (roles, idempotence, host prefix, unbounded list)
  6-11:  Clustered mode (capacity routing, counts, frequency, order)
  12-13: Role table edge cases
  14:    School type must match the registry mode

Run:  python -m cluster_kernel.test_placement
"""

from __future__ import annotations

import itertools
import random
import sys

from cluster_kernel.constants import (
    FREQUENCY_CHANNELS,
    MAX_DEVICES_PER_CLUSTER,
    MODE_CLUSTERED,
    MODE_FLAT,
    ROLE_CLIENT,
    ROLE_HOST1,
    ROLE_HOST2,
    ROLE_HOST3,
)
from cluster_kernel.domain_types import ClusteredSchool, FlatSchool, StateTree
from cluster_kernel.invariants import validate_invariants
from cluster_kernel.placement import (
    derive_role,
    find_or_create_cluster,
    place_device,
    pick_frequency,
)
from cluster_kernel.state import create_initial_state


# ══════════════════════════════════════════════════════════════
# Test Fixtures
# ══════════════════════════════════════════════════════════════

def _clock():
    counter = itertools.count(1)
    return lambda: f"2026-01-01T00:00:{next(counter):02d}.000Z"


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


EXPECTED_ROLES = [ROLE_HOST1, ROLE_HOST2, ROLE_HOST3] + [ROLE_CLIENT] * 20


# ══════════════════════════════════════════════════════════════
# Flat mode (1 – 5)
# ══════════════════════════════════════════════════════════════

def test_01_flat_first_device_is_primary_host() -> None:
    _header("Test 01 -- First flat device is host1")
    state = create_initial_state(MODE_FLAT)
    p = place_device(state, "ABC", "d1", clock=_clock())
    assert p.role.role == ROLE_HOST1
    assert p.role.position == 1
    assert p.role.host_device_id == "d1"
    assert p.role.host2_device_id is None
    assert p.role.host3_device_id is None
    assert p.is_existing is False
    assert isinstance(state.schools["ABC"], FlatSchool)
    print("  [PASS]")


def test_02_flat_repeat_call_is_idempotent() -> None:
    _header("Test 02 -- Flat repeat registration does not mutate")
    state = create_initial_state(MODE_FLAT)
    clock = _clock()
    for d in ("d1", "d2", "d3", "d4"):
        place_device(state, "ABC", d, clock=clock)
    before = state.schools["ABC"].device_ids()

    first = place_device(state, "ABC", "d2", clock=clock)
    second = place_device(state, "ABC", "d2", clock=clock)
    assert first.role == second.role
    assert first.is_existing and second.is_existing
    assert state.schools["ABC"].device_ids() == before
    assert first.role.role == ROLE_HOST2
    print("  [PASS]")


def test_03_flat_roles_follow_arrival_order() -> None:
    _header("Test 03 -- Flat roles follow arrival order")
    state = create_initial_state(MODE_FLAT)
    clock = _clock()
    for i in range(15):
        p = place_device(state, "S", f"dev{i}", clock=clock)
        assert p.role.role == EXPECTED_ROLES[i], (i, p.role.role)
        assert p.role.position == i + 1
        validate_invariants(state)

    school = state.schools["S"]
    assert len(school.devices) == 15
    assert school.hosts == ["dev0", "dev1", "dev2"]

    client = place_device(state, "S", "dev9", clock=clock)
    assert client.role.host_device_id == "dev0"
    assert client.role.host2_device_id == "dev1"
    assert client.role.host3_device_id == "dev2"
    print("  [PASS]")


def test_04_flat_device_list_is_unbounded() -> None:
    _header("Test 04 -- Flat school never opens clusters")
    state = create_initial_state(MODE_FLAT)
    clock = _clock()
    for i in range(MAX_DEVICES_PER_CLUSTER * 3):
        place_device(state, "S", f"dev{i}", clock=clock)
    assert len(state.schools["S"].devices) == MAX_DEVICES_PER_CLUSTER * 3
    assert len(state.schools["S"].hosts) == 3
    print("  [PASS]")


def test_05_schools_are_independent() -> None:
    _header("Test 05 -- Interleaved schools keep their own order")
    state = create_initial_state(MODE_FLAT)
    clock = _clock()
    roles_a, roles_b = [], []
    for i in range(5):
        roles_a.append(place_device(state, "A", f"a{i}", clock=clock).role.role)
        roles_b.append(place_device(state, "B", f"b{i}", clock=clock).role.role)
    assert roles_a == EXPECTED_ROLES[:5]
    assert roles_b == EXPECTED_ROLES[:5]

    # school codes are case-sensitive
    p = place_device(state, "a", "a0", clock=clock)
    assert p.role.role == ROLE_HOST1
    assert set(state.schools) == {"A", "B", "a"}
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Clustered mode (6 – 11)
# ══════════════════════════════════════════════════════════════

def test_06_clustered_first_device_opens_cluster_one() -> None:
    _header("Test 06 -- First clustered device opens ABC_1")
    state = create_initial_state(MODE_CLUSTERED)
    p = place_device(state, "ABC", "d1", rng=random.Random(7), clock=_clock())
    assert p.cluster_name == "ABC_1"
    assert p.cluster.cluster_number == 1
    assert p.role.role == ROLE_HOST1
    assert p.cluster.frequency in FREQUENCY_CHANNELS
    school = state.schools["ABC"]
    assert isinstance(school, ClusteredSchool)
    assert school.total_devices == 1
    assert school.last_cluster_number == 1
    print("  [PASS]")


def test_07_eleventh_device_goes_to_new_cluster() -> None:
    _header("Test 07 -- Capacity routing")
    state = create_initial_state(MODE_CLUSTERED)
    rng, clock = random.Random(1), _clock()
    for i in range(MAX_DEVICES_PER_CLUSTER):
        p = place_device(state, "S", f"dev{i}", rng=rng, clock=clock)
        assert p.cluster_name == "S_1"
        assert p.role.role == EXPECTED_ROLES[i]

    p = place_device(state, "S", "dev10", rng=rng, clock=clock)
    assert p.cluster_name == "S_2"
    assert p.role.role == ROLE_HOST1
    assert p.role.position == 1
    school = state.schools["S"]
    assert school.last_cluster_number == 2
    assert school.cluster_order == ["S_1", "S_2"]
    assert len(school.clusters["S_1"].devices) == MAX_DEVICES_PER_CLUSTER
    validate_invariants(state)
    print("  [PASS]")


def test_08_existing_device_found_in_earlier_cluster() -> None:
    _header("Test 08 -- Repeat call finds device in its original cluster")
    state = create_initial_state(MODE_CLUSTERED)
    rng, clock = random.Random(2), _clock()
    for i in range(MAX_DEVICES_PER_CLUSTER + 4):
        place_device(state, "S", f"dev{i}", rng=rng, clock=clock)

    p = place_device(state, "S", "dev4", rng=rng, clock=clock)
    assert p.is_existing is True
    assert p.cluster_name == "S_1"
    assert p.role.role == ROLE_CLIENT
    assert p.role.position == 5

    q = place_device(state, "S", "dev11", rng=rng, clock=clock)
    assert q.is_existing is True
    assert q.cluster_name == "S_2"
    assert q.role.role == ROLE_HOST2
    assert state.schools["S"].total_devices == MAX_DEVICES_PER_CLUSTER + 4
    print("  [PASS]")


def test_09_total_devices_matches_cluster_sum() -> None:
    _header("Test 09 -- totalDevices equals the sum over clusters")
    state = create_initial_state(MODE_CLUSTERED)
    rng, clock = random.Random(3), _clock()
    for i in range(37):
        place_device(state, "S", f"dev{i % 29}", rng=rng, clock=clock)
        school = state.schools["S"]
        assert school.total_devices == sum(
            len(c.devices) for c in school.clusters.values()
        )
        validate_invariants(state)
    assert state.schools["S"].total_devices == 29
    assert state.schools["S"].last_cluster_number == 3
    print("  [PASS]")


def test_10_first_cluster_with_space_wins() -> None:
    _header("Test 10 -- Free space is taken in creation order")
    state = create_initial_state(MODE_CLUSTERED)
    rng, clock = random.Random(4), _clock()
    for i in range(MAX_DEVICES_PER_CLUSTER * 2 + 1):
        place_device(state, "S", f"dev{i}", rng=rng, clock=clock)
    school = state.schools["S"]
    assert school.cluster_order == ["S_1", "S_2", "S_3"]

    # free one slot in S_1 by hand; S_1 now beats the emptier S_3
    school.clusters["S_1"].devices.pop()
    school.total_devices -= 1
    name, cluster, existing = find_or_create_cluster(school, "S", "new", rng, clock)
    assert (name, existing) == ("S_1", False)
    assert cluster is school.clusters["S_1"]

    p = place_device(state, "S", "new", rng=rng, clock=clock)
    assert p.cluster_name == "S_1"
    assert p.role.position == MAX_DEVICES_PER_CLUSTER
    validate_invariants(state)

    # all full: a new cluster is opened, attached but still empty
    for i in range(MAX_DEVICES_PER_CLUSTER - 1):
        place_device(state, "S", f"fill{i}", rng=rng, clock=clock)
    name, cluster, existing = find_or_create_cluster(school, "S", "late", rng, clock)
    assert (name, existing) == ("S_4", False)
    assert cluster.devices == []
    assert school.cluster_order == ["S_1", "S_2", "S_3", "S_4"]
    print("  [PASS]")


def test_11_frequency_pick_uses_injected_rng() -> None:
    _header("Test 11 -- Frequency is drawn from the channel list")
    assert len(FREQUENCY_CHANNELS) == 25
    assert len(set(FREQUENCY_CHANNELS)) == 25
    assert min(FREQUENCY_CHANNELS) == 5180 and max(FREQUENCY_CHANNELS) == 5825
    a = [pick_frequency(random.Random(99)) for _ in range(3)]
    b = [pick_frequency(random.Random(99)) for _ in range(3)]
    assert a == b
    assert all(f in FREQUENCY_CHANNELS for f in a)
    assert pick_frequency() in FREQUENCY_CHANNELS
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Role table (12 – 13)
# ══════════════════════════════════════════════════════════════

def test_12_missing_host_slots_are_none() -> None:
    _header("Test 12 -- Unfilled host slots resolve to None")
    r = derive_role(5, "late", ["h1"])
    assert r.role == ROLE_CLIENT
    assert (r.host_device_id, r.host2_device_id, r.host3_device_id) == ("h1", None, None)

    r = derive_role(2, "self", [])
    assert r.role == ROLE_HOST3
    assert (r.host_device_id, r.host2_device_id, r.host3_device_id) == (None, None, "self")

    try:
        derive_role(-1, "ghost", [])
    except ValueError:
        pass
    else:
        raise AssertionError("negative index must be rejected")
    print("  [PASS]")


def test_13_third_distinct_device_is_tertiary_host() -> None:
    _header("Test 13 -- d1, d2, d4 sequence")
    state = create_initial_state(MODE_FLAT)
    clock = _clock()
    p1 = place_device(state, "ABC", "d1", clock=clock)
    p2 = place_device(state, "ABC", "d2", clock=clock)
    p4 = place_device(state, "ABC", "d4", clock=clock)
    assert p1.role.role == ROLE_HOST1 and p1.role.host_device_id == "d1"
    assert p2.role.role == ROLE_HOST2 and p2.role.host_device_id == "d1"
    assert p4.role.role == ROLE_HOST3
    assert p4.role.host_device_id == "d1"
    assert p4.role.host2_device_id == "d2"
    assert p4.role.host3_device_id == "d4"
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Mode mismatch (14)
# ══════════════════════════════════════════════════════════════

def test_14_school_of_the_other_mode_raises_type_error() -> None:
    _header("Test 14 -- Mismatched school type is rejected")
    cases = (
        (StateTree(mode=MODE_CLUSTERED, schools={"A": FlatSchool()}), "clustered"),
        (StateTree(mode=MODE_FLAT, schools={"A": ClusteredSchool()}), "flat"),
    )
    for state, expected in cases:
        try:
            place_device(state, "A", "d1", clock=_clock())
        except TypeError as exc:
            assert f"is not a {expected} school" in str(exc), exc
        else:
            raise AssertionError(f"{state.mode} placement must reject the school")
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════

def main() -> None:
    tests = [
        test_01_flat_first_device_is_primary_host,
        test_02_flat_repeat_call_is_idempotent,
        test_03_flat_roles_follow_arrival_order,
        test_04_flat_device_list_is_unbounded,
        test_05_schools_are_independent,
        test_06_clustered_first_device_opens_cluster_one,
        test_07_eleventh_device_goes_to_new_cluster,
        test_08_existing_device_found_in_earlier_cluster,
        test_09_total_devices_matches_cluster_sum,
        test_10_first_cluster_with_space_wins,
        test_11_frequency_pick_uses_injected_rng,
        test_12_missing_host_slots_are_none,
        test_13_third_distinct_device_is_tertiary_host,
        test_14_school_of_the_other_mode_raises_type_error,
    ]
    results = []
    for fn in tests:
        try:
            fn()
            results.append(True)
        except Exception as e:
            print(f"\n[ERROR] {fn.__name__}: {e}")
            import traceback
            traceback.print_exc()
            results.append(False)

    passed = sum(results)
    total = len(results)
    print(f"\n{'='*60}")
    print(f"  RESULTS: {passed}/{total} tests passed")
    print(f"{'='*60}")
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
