"""
Unit tests for activity counters.
"""
from chain_monitor.services.aggregator import ActivityCounters, record_call, record_event, seed


class TestSeed:
    """Test zero-initialised counters."""

    def test_seed_has_every_name_at_zero(self, registry):
        counter = seed(registry.declared_names)
        assert len(counter) == len(registry.declared_names)
        assert all(count == 0 for count in counter.values())
        assert list(counter) == list(registry.declared_names)

    def test_seed_empty(self):
        assert seed([]) == {}

    def test_seed_duplicates_collapse(self):
        assert seed(["transfer", "transfer"]) == {"transfer": 0}


class TestRecord:
    """Test in-place increments."""

    def test_record_call_increments(self):
        counter = seed(["transfer", "approve"])
        record_call(counter, "transfer")
        record_call(counter, "transfer")
        assert counter == {"transfer": 2, "approve": 0}

    def test_record_event_increments(self):
        counter = seed(["Transfer"])
        record_event(counter, "Transfer")
        assert counter == {"Transfer": 1}

    def test_unseeded_name_is_ignored(self):
        """Recording a name that was never seeded never adds a key."""
        counter = seed(["transfer"])
        record_call(counter, "mint")
        record_event(counter, "Minted")
        assert counter == {"transfer": 0}

    def test_totals_independent_of_order(self):
        names = ["a", "b", "c"]
        first, second = seed(names), seed(names)
        for name in ["a", "b", "a", "c"]:
            record_call(first, name)
        for name in ["c", "a", "b", "a"]:
            record_call(second, name)
        assert first == second


class TestActivityCounters:
    """Test the combined method/event counters."""

    def test_seeded_with_union(self, registry):
        counters = ActivityCounters.seeded(registry.declared_names)
        assert set(counters.methods) == set(registry.declared_names)
        assert set(counters.events) == set(registry.declared_names)
        assert counters.total_calls == 0 and counters.total_events == 0

    def test_fold(self):
        counters = ActivityCounters.seeded(["transfer", "Transfer"])
        counters.fold("transfer", ["Transfer", "Transfer"], call_missed=False, event_miss_count=1)
        counters.fold(None, [], call_missed=True, event_miss_count=0)

        assert counters.methods["transfer"] == 1
        assert counters.events["Transfer"] == 2
        assert counters.call_misses == 1
        assert counters.event_misses == 1

    def test_to_dict_is_a_copy(self):
        counters = ActivityCounters.seeded(["transfer"])
        data = counters.to_dict()
        data['methods']['transfer'] = 99
        assert counters.methods["transfer"] == 0
