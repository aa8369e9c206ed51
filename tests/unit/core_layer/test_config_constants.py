"""
Unit Tests for Constants

Tests per-category tables and enum helpers.
"""

import pytest

from callcache.core.config.constants import (
    DEFAULT_PRIORITY,
    EPHEMERAL_TTL,
    PERSISTENT_TTL,
    STALE_TOLERANCE,
    Category,
    Priority,
    Stage,
)


@pytest.mark.unit
class TestCategoryTables:
    """Every category must have an entry in every per-category table."""

    @pytest.mark.parametrize("table", [EPHEMERAL_TTL, PERSISTENT_TTL, STALE_TOLERANCE, DEFAULT_PRIORITY])
    def test_table_covers_all_categories(self, table):
        assert set(table) == set(Category)

    def test_ephemeral_ttl_never_exceeds_persistent(self):
        for category in Category:
            assert EPHEMERAL_TTL[category] <= PERSISTENT_TTL[category]


@pytest.mark.unit
class TestPriority:
    def test_rank_order(self):
        assert Priority.LOW.rank < Priority.NORMAL.rank < Priority.HIGH.rank


@pytest.mark.unit
class TestStage:
    def test_stage_values_are_strings(self):
        assert Stage.EPHEMERAL_LOOKUP == "2.1_EPHEMERAL_LOOKUP"
        assert Stage.EVICTION.value == "EV_EVICTION"
