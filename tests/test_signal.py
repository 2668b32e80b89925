"""Tests for Signal and same_value."""

import math

from stashx import Signal, same_value


class TestSignal:
    def test_read_write(self):
        sig = Signal(1)
        assert sig.read() == 1
        sig.write(2)
        assert sig.read() == 2

    def test_write_does_not_compare(self):
        items = [1]
        sig = Signal(items)
        sig.write(items)
        assert sig.read() is items

    def test_repr(self):
        assert repr(Signal("x")) == "Signal('x')"


class TestSameValue:
    def test_identity(self):
        obj = {"a": 1}
        assert same_value(obj, obj)

    def test_equal_composites_are_different(self):
        assert not same_value([1, 2], [1, 2])
        assert not same_value({}, {})

    def test_primitives_by_value(self):
        assert same_value(1, 1)
        assert same_value("abc", "".join(["a", "bc"]))
        assert same_value(None, None)

    def test_type_matters(self):
        assert not same_value(1, True)
        assert not same_value(1, 1.0)

    def test_nan_is_same(self):
        assert same_value(math.nan, float("nan"))
        assert not same_value(math.nan, 0.0)
