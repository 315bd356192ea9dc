"""Tests for the property store."""

import threading

import pytest
from structlog.testing import capture_logs

from procboot.config.errors import PropertyAlreadyDefinedError, PropertyFormatError, PropertyValueError
from procboot.config.store import CascadingLookup, PropertyStore, get_property_store, reset_property_store


@pytest.fixture
def store():
    """Store with an empty override source."""
    return PropertyStore(override={})


@pytest.fixture
def loaded(store):
    """Store holding typical loaded properties."""
    store.merge(
        {
            "prop1": "a-value",
            "prop2": "true",
            "prop3": "false",
            "prop4": "one,two,three",
            "prop5": "23",
        },
        origin="test",
    )
    return store


def _events(logs, name):
    return [entry for entry in logs if entry["event"] == name]


class TestCascadingLookup:
    """Test ordered source lookup."""

    def test_first_source_wins(self):
        lookup = CascadingLookup({"a": "1"}, {"a": "2", "b": "3"})

        assert lookup.get("a") == "1"
        assert lookup.get("b") == "3"

    def test_default_when_absent(self):
        assert CascadingLookup({}, {}).get("a", "x") == "x"
        assert CascadingLookup().get("a") is None


class TestTypedAccessors:
    """Test typed reads of loaded properties."""

    def test_loaded_values(self, loaded):
        """Typed accessors convert loaded values."""
        assert loaded.get("prop1", "") == "a-value"
        assert loaded.get_bool("prop2", False) is True
        assert loaded.get_bool("prop3", True) is False
        assert loaded.get_list("prop4") == ["one", "two", "three"]
        assert loaded.get_int("prop5", 0) == 23

    def test_defaults_when_absent(self, store):
        """Absent keys return the caller's defaults."""
        assert store.get("prop1", "") == ""
        assert store.get("prop1") is None
        assert store.get_int("prop5", 0) == 0
        assert store.get_bool("prop2", True) is True
        assert store.get_list("prop4", []) == []
        assert store.get_list("prop4") == []

    def test_list_elements_trimmed_and_empties_dropped(self, store):
        store.merge({"list": "a, b,,c ,"})

        assert store.get_list("list") == ["a", "b", "c"]

    def test_bool_case_insensitive(self, store):
        store.merge({"flag": "TRUE"})

        assert store.get_bool("flag", False) is True

    def test_malformed_int_raises(self, store):
        """A present but non-integer value is a read error."""
        store.merge({"pool.size": "eight"})

        with pytest.raises(PropertyValueError, match="pool.size"):
            store.get_int("pool.size", 1)

    def test_malformed_bool_raises(self, store):
        """A present value other than true/false is a read error."""
        store.merge({"flag": "yes"})

        with pytest.raises(PropertyValueError, match="flag"):
            store.get_bool("flag", False)


class TestOverrideSource:
    """Test the override source in loading and lookup."""

    def test_override_consulted_after_store(self):
        """Keys not loaded fall through to the override source."""
        store = PropertyStore(override={"prop1": "a-sys-value", "prop5": "21", "prop4": "a,b,c"})

        assert store.get("prop1", "") == "a-sys-value"
        assert store.get_int("prop5", 0) == 21
        assert store.get_list("prop4") == ["a", "b", "c"]

    def test_override_keys_stripped_at_load(self):
        """A loaded key that the override source defines is dropped with a warning."""
        # Arrange
        store = PropertyStore(override={"prop1": "a-sys-value"})

        # Act
        with capture_logs() as logs:
            added = store.merge({"prop1": "a-value", "prop2": "true"}, origin="test.properties")

        # Assert
        assert added == 1
        assert store.get("prop1") == "a-sys-value"
        assert "prop1" not in store.snapshot()
        overridden = _events(logs, "properties.overridden")
        assert overridden == [
            {"event": "properties.overridden", "key": "prop1", "origin": "test.properties", "log_level": "warning"}
        ]

    def test_environment_is_default_override(self, monkeypatch):
        monkeypatch.setenv("procboot.test.key", "from-env")
        store = PropertyStore()

        assert store.get("procboot.test.key") == "from-env"


class TestMerge:
    """Test validation while merging loaded batches."""

    def test_merge_returns_added_count(self, store):
        assert store.merge({"a": "1", "b": "2"}) == 2
        assert dict(store.snapshot()) == {"a": "1", "b": "2"}

    def test_duplicate_across_loads_rejected(self, loaded):
        """A key already loaded cannot be loaded again."""
        with pytest.raises(PropertyAlreadyDefinedError, match="prop1"):
            loaded.merge({"prop1": "other"})

    def test_failed_batch_leaves_store_unchanged(self, loaded):
        """Nothing from a failing batch is merged."""
        before = dict(loaded.snapshot())

        with pytest.raises(PropertyAlreadyDefinedError):
            loaded.merge({"new.key": "x", "prop1": "other"})

        assert dict(loaded.snapshot()) == before

    def test_removed_key_can_be_loaded_again(self, loaded):
        loaded.remove("prop1")

        assert loaded.merge({"prop1": "again"}) == 1
        assert loaded.get("prop1") == "again"

    @pytest.mark.parametrize("key", ["", " key", "key ", "\tkey"])
    def test_bad_keys_rejected(self, store, key):
        with pytest.raises(PropertyFormatError):
            store.merge({key: "value"})

    @pytest.mark.parametrize("value", [" value", "value ", "value\t"])
    def test_values_with_surrounding_whitespace_rejected(self, store, value):
        with pytest.raises(PropertyFormatError, match="whitespace"):
            store.merge({"key": value})

    def test_empty_value_dropped_with_warning(self, store):
        """Empty values are not stored."""
        with capture_logs() as logs:
            added = store.merge({"empty": "", "full": "x"}, origin="test")

        assert added == 1
        assert "empty" not in store.snapshot()
        assert len(_events(logs, "properties.empty_removed")) == 1

    def test_empty_value_still_counts_as_duplicate_in_batch(self, loaded):
        """Keys with empty values still take part in the already-defined check."""
        with pytest.raises(PropertyAlreadyDefinedError):
            loaded.merge({"prop1": ""})


class TestWrites:
    """Test set, remove and clear."""

    def test_set_returns_previous_value(self, loaded):
        with capture_logs() as logs:
            previous = loaded.set("prop1", "a-different-value")

        assert previous == "a-value"
        assert loaded.get("prop1") == "a-different-value"
        assert len(_events(logs, "properties.replaced")) == 1

    def test_set_new_key_returns_none(self, store):
        with capture_logs() as logs:
            assert store.set("new.key", "ciao") is None

        assert store.get("new.key") == "ciao"
        assert _events(logs, "properties.replaced") == []

    def test_remove(self, loaded):
        with capture_logs() as logs:
            previous = loaded.remove("prop1")

        assert previous == "a-value"
        assert "prop1" not in loaded.snapshot()
        assert len(_events(logs, "properties.removed")) == 1
        assert loaded.remove("prop1") is None

    def test_clear_unloads_everything(self, loaded):
        loaded.mark_loaded()

        removed = loaded.clear()

        assert removed == 5
        assert dict(loaded.snapshot()) == {}
        assert not loaded.is_loaded


class TestSnapshot:
    """Test immutable copies of loaded properties."""

    def test_snapshot_is_independent_copy(self, loaded):
        first = loaded.snapshot()
        loaded.set("extra", "1")
        second = loaded.snapshot()

        assert "extra" not in first
        assert "extra" in second
        assert first is not second

    def test_snapshot_is_read_only(self, loaded):
        snapshot = loaded.snapshot()

        with pytest.raises(TypeError):
            snapshot["prop1"] = "changed"  # type: ignore[index]


class TestFirstReadWarning:
    """Test the warning for reads before anything was loaded."""

    def test_warns_once_on_empty_store(self, store):
        with capture_logs() as logs:
            store.get("a")
            store.get("b")
            store.snapshot()

        assert len(_events(logs, "properties.none_loaded")) == 1

    def test_no_warning_when_loaded(self, loaded):
        with capture_logs() as logs:
            loaded.get("prop1")

        assert _events(logs, "properties.none_loaded") == []


class TestProcessWideStore:
    """Test the process-wide store accessor."""

    def test_same_instance_until_reset(self):
        first = get_property_store()

        assert get_property_store() is first
        replacement = PropertyStore(override={})
        assert reset_property_store(replacement) is replacement
        assert get_property_store() is replacement


class TestConcurrentAccess:
    """Test readers and writers sharing one store across threads."""

    READERS = 4
    WRITERS = 2
    ROUNDS = 300

    def test_reads_stay_consistent_while_writers_set_and_remove(self, loaded):
        """Snapshots and reads never fail or observe a torn value."""
        # Arrange
        static = dict(loaded.snapshot())
        barrier = threading.Barrier(self.READERS + self.WRITERS)
        errors: list[Exception] = []
        snapshots: list[dict[str, str]] = []

        def writer(n: int) -> None:
            barrier.wait()
            for i in range(self.ROUNDS):
                key = f"dynamic.{n}.{i % 5}"
                loaded.set(key, f"{key}#{i}")
                if i % 3 == 0:
                    loaded.remove(key)

        def reader() -> None:
            barrier.wait()
            for i in range(self.ROUNDS):
                for key, value in static.items():
                    assert loaded.get(key) == value
                value = loaded.get(f"dynamic.0.{i % 5}")
                assert value is None or value.startswith(f"dynamic.0.{i % 5}#")
                snapshots.append(dict(loaded.snapshot()))

        def guarded(target, *args) -> None:
            try:
                target(*args)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=guarded, args=(writer, n)) for n in range(self.WRITERS)]
        threads += [threading.Thread(target=guarded, args=(reader,)) for _ in range(self.READERS)]

        # Act
        with capture_logs():
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(30)

        # Assert
        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert len(snapshots) == self.READERS * self.ROUNDS
        for snapshot in snapshots:
            assert {k: snapshot[k] for k in static} == static
            for key, value in snapshot.items():
                if key not in static:
                    assert value.startswith(f"{key}#")
