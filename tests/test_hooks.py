"""Tests for on_update."""

import logging

from stashx import on_update, store


class TestOnUpdate:
    def test_store_runs_now_and_on_change(self):
        s = store({"count": 0})
        log = []
        unsubscribe = on_update(s, lambda state: log.append(state.count))
        s.count = 1
        assert log == [0, 1]
        unsubscribe()
        s.count = 2
        assert log == [0, 1]

    def test_plain_mapping_runs_once(self):
        state = {"count": 3}
        log = []
        unsubscribe = on_update(state, lambda st: log.append(st["count"]))
        assert log == [3]
        unsubscribe()

    def test_plain_mapping_two_argument_callback(self):
        log = []
        on_update({"count": 3}, lambda state, previous: log.append((state.count, previous.count)))
        assert log == [(3, 3)]

    def test_plain_mapping_no_argument_callback(self):
        log = []
        on_update({"count": 3}, lambda: log.append("ran"))
        assert log == ["ran"]

    def test_plain_mapping_error_is_logged(self, caplog):
        def broken(st):
            raise KeyError("nope")

        with caplog.at_level(logging.ERROR, logger="stashx.hooks"):
            unsubscribe = on_update({}, broken)
        assert "on_update callback raised" in caplog.text
        assert unsubscribe() is None
