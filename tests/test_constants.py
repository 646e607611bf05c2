"""Tests for constants and the persisted event-kind codes."""

from __future__ import annotations

import pytest

from matchlog.constants import (
    EVENT_KIND_BY_CODE,
    EVENT_KIND_CODES,
    UNKNOWN_WOOL_ID,
    WOOL_COLORS,
    EventKind,
    wool_id,
)


class TestEventKindCodes:
    """Test the append-only event_type code table."""

    def test_codes_are_frozen(self) -> None:
        """Test codes already persisted in artifacts never change."""
        assert {kind.name: code for kind, code in EVENT_KIND_CODES.items()} == {
            "MATCH_START": 0,
            "MATCH_END": 1,
            "SPAWN": 2,
            "DEATH": 3,
            "POSITION": 4,
            "WOOL_TOUCH": 5,
            "WOOL_CAPTURE": 6,
        }

    def test_every_kind_has_unique_code(self) -> None:
        """Test the code table covers every kind without duplicates."""
        assert set(EVENT_KIND_CODES) == set(EventKind)
        assert len(set(EVENT_KIND_CODES.values())) == len(EventKind)

    def test_inverse_table(self) -> None:
        """Test the inverse table maps codes back to kinds."""
        for kind in EventKind:
            assert EVENT_KIND_BY_CODE[kind.code] is kind


class TestWoolId:
    """Test wool color to objective ID mapping."""

    @pytest.mark.parametrize(
        ("color", "expected"),
        [
            ("WHITE", 0),
            ("RED", 14),
            ("BLACK", 15),
            ("red", 14),
            ("LIGHT_BLUE", 3),
            ("light blue", 3),
        ],
    )
    def test_known_colors(self, color: str, expected: int) -> None:
        """Test known color names map to their ordinal."""
        assert wool_id(color) == expected

    @pytest.mark.parametrize("color", ["CHARTREUSE", "", None])
    def test_unknown_colors(self, color) -> None:
        """Test unknown names map to the sentinel rather than failing."""
        assert wool_id(color) == UNKNOWN_WOOL_ID == -1

    def test_sixteen_colors(self) -> None:
        """Test the legacy dye color table has sixteen entries."""
        assert len(WOOL_COLORS) == 16
