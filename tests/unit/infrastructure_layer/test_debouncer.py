"""
Unit Tests for Debouncer
"""

import pytest

from callcache.infrastructure.cache.debouncer import Debouncer


@pytest.mark.unit
class TestDebouncer:
    def test_first_attempt_never_deferred(self):
        debouncer = Debouncer({"getMyNotifications": 1.5})
        assert debouncer.should_defer("getMyNotifications", 100.0) is False

    def test_defers_inside_interval(self):
        debouncer = Debouncer({"getMyNotifications": 1.5})
        debouncer.record_attempt("getMyNotifications", 100.0)

        assert debouncer.should_defer("getMyNotifications", 101.0) is True
        assert debouncer.should_defer("getMyNotifications", 101.5) is False

    def test_operations_are_independent(self):
        debouncer = Debouncer({"a": 5, "b": 5})
        debouncer.record_attempt("a", 0.0)
        assert debouncer.should_defer("b", 1.0) is False

    def test_zero_interval_never_defers(self):
        debouncer = Debouncer()
        debouncer.record_attempt("a", 0.0)
        assert debouncer.should_defer("a", 0.0) is False

    def test_configure_and_reset(self):
        debouncer = Debouncer()
        debouncer.configure("a", 2.0)
        debouncer.record_attempt("a", 0.0)
        assert debouncer.interval_for("a") == 2.0
        assert debouncer.should_defer("a", 1.0)

        debouncer.reset("a")
        assert not debouncer.should_defer("a", 1.0)

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            Debouncer().configure("a", -1)
