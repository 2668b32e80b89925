"""Tests for computed values."""

import pytest

from stashx import computed, is_computed, store


class TestComputedTagging:
    def test_marker(self):
        fn = computed(lambda st: 1)
        assert is_computed(fn)
        assert fn.__stashx_computed__ is True

    def test_plain_callable_is_not_computed(self):
        assert not is_computed(lambda: 1)
        assert not is_computed(42)

    def test_structural_marker(self):
        def fn():
            return 1

        fn.__stashx_computed__ = True
        assert is_computed(fn)

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            computed(3)

    def test_bound_method_gets_wrapped(self):
        class Counter:
            def __init__(self):
                self.n = 7

            def value(self):
                return self.n

        counter = Counter()
        fn = computed(counter.value)
        assert is_computed(fn)
        s = store({"v": fn})
        assert s.v == 7


class TestComputedInStore:
    def test_resolves_against_store(self):
        s = store({"a": 1, "b": 2, "total": computed(lambda st: st.a + st.b)})
        assert s.total == 3
        s.a = 10
        assert s.total == 12

    def test_zero_arg_definition(self):
        s = store({"a": 2})
        s.doubled = computed(lambda: s.a * 2)
        assert s.doubled == 4

    def test_closure_over_store_at_construction(self):
        s = store({"a": 2, "doubled": computed(lambda: s.a * 2)})
        assert s.doubled == 4
        assert s.get_state() == {"a": 2, "doubled": 4}

    def test_not_invoked_on_assignment(self):
        calls = []
        s = store({"a": 1})
        s.c = computed(lambda st: calls.append(1) or st.a)
        assert calls == []

    def test_plain_write_does_not_run_bodies(self):
        calls = []

        def body(st):
            calls.append(1)
            return st.a

        s = store({"a": 1, "b": 1, "c": computed(body)})
        s.subscribe(lambda state: state.b)
        s.a = 2
        s.b = 2
        assert calls == []

    def test_previous_resolves_from_previous_values(self):
        s = store({"a": 1, "double": computed(lambda st: st.a * 2)})
        log = []
        s.subscribe(lambda state, previous: log.append((previous.double, state.double)))
        s.a = 5
        assert log == [(2, 2), (2, 10)]

    def test_no_cache(self):
        calls = []

        def body(st):
            calls.append(1)
            return st.a

        s = store({"a": 1, "c": computed(body)})
        calls.clear()
        s.c
        s.c
        assert len(calls) == 2

    def test_chain(self):
        s = store({
            "a": 1,
            "b": computed(lambda st: st.a + 1),
            "c": computed(lambda st: st.b * 10),
        })
        assert s.c == 20
        s.a = 4
        assert s.c == 50

    def test_plain_write_unregisters(self):
        s = store({"a": 1, "c": computed(lambda st: st.a)})
        s.c = 5
        s.a = 9
        assert s.c == 5

    def test_nested_computed(self):
        s = store({"items": [1, 2, 3], "meta": {"total": computed(lambda st: sum(st.items))}})
        assert s.meta.total == 6
        s.items.append(4)
        assert s.meta["total"] == 10

    def test_subscriber_tracks_through_computed(self):
        s = store({"a": 1, "b": 1, "c": computed(lambda st: st.a + st.b)})
        log = []
        sub = s.subscribe(lambda state: log.append(state.c))
        assert sub.dependencies == {"a", "b", "c"}
        s.b = 5
        assert log == [2, 6]

    def test_subscriber_tracks_through_chain(self):
        s = store({"a": 1, "b": computed(lambda st: st.a * 2), "c": computed(lambda st: st.b + 1)})
        log = []
        s.subscribe(lambda: log.append(s.c))
        s.a = 2
        assert log == [3, 5]

    def test_direct_read_propagates_error(self):
        def boom(st):
            raise ZeroDivisionError

        s = store({"bad": computed(boom)})
        with pytest.raises(ZeroDivisionError):
            s.bad

    def test_listener_restored_after_raising_computed(self):
        def boom(st):
            raise ValueError("nope")

        s = store({"bad": computed(boom), "a": 1})

        def reader():
            s.a
            s.bad

        sub = s.subscribe(reader)
        assert s._tracker.current() is None
        assert "a" in sub.dependencies
