"""Tests for the Store facade."""

import logging

import pytest

from stashx import Store, computed, store


class TestStoreAccess:
    def test_attribute_and_item_access(self):
        s = store({"count": 1})
        assert s.count == 1
        assert s["count"] == 1
        assert s.get("count") == 1

    def test_missing_key_reads_none(self):
        s = store()
        assert s.nope is None
        assert s["nope"] is None
        assert s.get("nope", 5) == 5

    def test_write_paths(self):
        s = store()
        s.a = 1
        s["b"] = 2
        s.set("c", 3)
        assert s.get_state() == {"a": 1, "b": 2, "c": 3}

    def test_keyword_options_via_factory(self):
        s = store({"x": 1}, name="settings")
        assert isinstance(s, Store)
        assert repr(s) == "Store(settings: {'x': 1})"

    def test_initial_state_is_shallow_copied(self):
        initial = {"x": 1}
        s = store(initial)
        s.x = 2
        assert initial == {"x": 1}

    def test_non_string_key_rejected(self):
        s = store()
        with pytest.raises(TypeError):
            s[1] = "one"

    def test_facade_names_win_on_attributes(self):
        s = store()
        s["subscribe"] = "data"
        assert callable(s.subscribe)
        assert s["subscribe"] == "data"

    def test_contains(self):
        s = store({"a": 1, "c": computed(lambda st: st.a)})
        assert "a" in s
        assert "c" in s
        assert "subscribe" in s
        assert "nope" not in s

    def test_iteration_covers_data_keys(self):
        s = store({"a": 1, "b": 2})
        assert list(s) == ["a", "b"]
        assert s.keys() == ["a", "b"]
        assert len(s) == 2

    def test_dir_lists_keys(self):
        s = store({"count": 0})
        names = dir(s)
        assert "count" in names
        assert "subscribe" in names

    def test_private_names_raise(self):
        s = store()
        with pytest.raises(AttributeError):
            s._nothing_here


class TestStoreDelete:
    def test_delete_paths(self):
        s = store({"a": 1, "b": 2, "c": 3})
        del s.a
        del s["b"]
        s.delete("c")
        assert s.get_state() == {}

    def test_delete_notifies(self):
        s = store({"a": 1})
        log = []
        s.subscribe(lambda state: log.append(state.a))
        del s.a
        assert log == [1, None]

    def test_delete_missing_key_warns(self, caplog):
        s = store()
        with caplog.at_level(logging.WARNING, logger="stashx.store"):
            s.delete("ghost")
        assert "Cannot delete 'ghost'" in caplog.text

    def test_delete_computed_unregisters(self):
        s = store({"a": 1, "c": computed(lambda st: st.a)})
        del s.c
        s.c = 4
        assert s.c == 4


class TestStoreState:
    def test_get_state_resolves_computed(self):
        s = store({"a": 2, "sq": computed(lambda st: st.a ** 2)})
        assert s.get_state() == {"a": 2, "sq": 4}

    def test_get_state_excludes_facade(self):
        s = store({"a": 1})
        assert set(s.get_state()) == {"a"}

    def test_set_state_notifies_per_key(self):
        s = store({"a": 0, "b": 0})
        log = []
        s.subscribe(lambda state: log.append((state.a, state.b)))
        s.set_state({"a": 1, "b": 2})
        assert log == [(0, 0), (1, 0), (1, 2)]

    def test_set_state_keywords(self):
        s = store()
        s.set_state(a=1, b=2)
        assert s.get_state() == {"a": 1, "b": 2}

    def test_set_state_in_batch_notifies_once(self):
        s = store({"a": 0, "b": 0})
        log = []
        s.subscribe(lambda state: log.append((state.a, state.b)))
        s.batch(lambda: s.set_state({"a": 1, "b": 2}))
        assert log == [(0, 0), (1, 2)]

    def test_to_json(self):
        s = store({"items": [1, 2], "total": computed(lambda st: sum(st.items))})
        assert s.to_json() == {"items": [1, 2], "total": 3}


class TestStoreOptions:
    def test_invalid_reentry(self):
        with pytest.raises(ValueError):
            Store(on_reentry="sometimes")

    def test_invalid_isolate_errors(self):
        with pytest.raises(ValueError):
            Store(isolate_errors="yes")

    def test_invalid_name(self):
        with pytest.raises(ValueError):
            Store(name=3)

    def test_unknown_option(self):
        with pytest.raises(TypeError):
            store({}, colour="red")

    def test_dispose_unsubscribes_all(self):
        s = store({"a": 0})
        log = []
        s.subscribe(lambda state: log.append(state.a))
        s.subscribe(lambda: log.append("global"))
        s.dispose()
        s.a = 1
        assert log == [0, "global"]
        assert len(s._subscriptions) == 0
