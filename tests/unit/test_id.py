"""Tests for ID generation system."""

import time
from datetime import datetime

import pytest

from core.id import (
    Prefix,
    extract_prefix,
    extract_timestamp,
    generate_prefixed,
    generate_raw,
    is_valid,
    new_component_id,
    new_context_id,
    new_history_id,
    new_request_id,
    new_version_id,
)


class TestGeneration:
    """Test basic ID generation."""

    def test_generate_unique_ids(self):
        """IDs should be unique."""
        id1 = generate_raw()
        id2 = generate_raw()

        assert id1 != id2
        assert len(id1) == 26
        assert len(id2) == 26

    def test_generate_valid_ulids(self):
        assert is_valid(generate_raw())

    def test_monotonic_ordering(self):
        """Timestamps should not go backwards."""
        ids = []
        for _ in range(5):
            ids.append(generate_raw())
            time.sleep(0.001)

        timestamps = [extract_timestamp(id_str).timestamp() for id_str in ids]
        for i in range(1, len(timestamps)):
            assert timestamps[i] >= timestamps[i - 1]


class TestTypedGeneration:
    """Test typed ID generation."""

    @pytest.mark.parametrize(
        "factory,prefix",
        [
            (new_component_id, Prefix.COMPONENT),
            (new_version_id, Prefix.VERSION),
            (new_request_id, Prefix.REQUEST),
            (new_context_id, Prefix.CONTEXT),
            (new_history_id, Prefix.HISTORY),
        ],
    )
    def test_prefixed_format(self, factory, prefix):
        id_str = factory()

        assert id_str.startswith(f"{prefix}_")
        assert extract_prefix(id_str) == prefix
        assert is_valid(id_str)

    def test_custom_prefix(self):
        id_str = generate_prefixed("preset")
        assert extract_prefix(id_str) == "preset"


class TestParsing:
    """Test ID inspection helpers."""

    @pytest.mark.parametrize("bad", ["", "root", "cmp_short", "cmp_" + "!" * 26])
    def test_invalid_ids(self, bad):
        assert not is_valid(bad)
        assert extract_timestamp(bad) is None

    def test_unprefixed_has_no_prefix(self):
        assert extract_prefix(generate_raw()) is None

    def test_timestamp_is_recent(self):
        stamp = extract_timestamp(new_version_id())

        assert isinstance(stamp, datetime)
        assert abs(stamp.timestamp() - time.time()) < 5
