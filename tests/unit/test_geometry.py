"""Tests for the geometry engine."""

import pytest
from hypothesis import given, strategies as st

from canvas.geometry import (
    DEFAULT_HANDLE_MARGIN,
    Box,
    Direction,
    all_handles,
    cursor_for,
    handle_anchor,
    handle_position,
    move_box,
    normalize_angle,
    parse_direction,
    resize_box,
    rotate_box,
    rotation_from_pointer,
    rotation_handle_anchor,
    rotation_handle_position,
    snap_to_grid,
)

BOX = Box(x=100, y=100, width=200, height=100)


@pytest.mark.unit
class TestHandleAnchors:
    """Handle placement relative to the box edges."""

    def test_southeast_pinned_outward_on_both_axes(self):
        anchor = handle_anchor("se")

        assert anchor.bottom == -DEFAULT_HANDLE_MARGIN
        assert anchor.right == -DEFAULT_HANDLE_MARGIN
        assert anchor.top is None and anchor.left is None
        assert not anchor.center_x and not anchor.center_y

    def test_north_centers_horizontally(self):
        anchor = handle_anchor("n")
        style = anchor.to_style()

        assert anchor.top == -DEFAULT_HANDLE_MARGIN
        assert anchor.center_x
        assert style["left"] == "50%"
        assert style["transform"] == "translateX(-50%)"

    def test_east_centers_vertically(self):
        style = handle_anchor("e", margin=6).to_style()

        assert style["right"] == -6
        assert style["top"] == "50%"
        assert style["transform"] == "translateY(-50%)"

    def test_rotation_handle_above_top_edge(self):
        style = rotation_handle_anchor(12).to_style()

        assert style["top"] == -12
        assert style["transform"] == "translateX(-50%)"

    @pytest.mark.parametrize("direction", [d.value for d in Direction])
    def test_every_direction_has_a_cursor(self, direction):
        assert cursor_for(direction) == f"{direction}-resize"

    def test_unknown_direction_rejected(self):
        with pytest.raises(ValueError):
            parse_direction("up")

    def test_direction_parsing_ignores_case(self):
        assert parse_direction("SE") is Direction.SE


@pytest.mark.unit
class TestHandlePositions:
    @pytest.mark.parametrize(
        "direction,expected",
        [
            ("n", (200, 96)),
            ("s", (200, 204)),
            ("e", (304, 150)),
            ("w", (96, 150)),
            ("ne", (304, 96)),
            ("nw", (96, 96)),
            ("se", (304, 204)),
            ("sw", (96, 204)),
        ],
    )
    def test_handle_position(self, direction, expected):
        assert handle_position(BOX, direction) == expected

    def test_all_handles_includes_rotation(self):
        handles = all_handles(BOX)

        assert len(handles) == 9
        assert handles["rotate"] == rotation_handle_position(BOX)
        assert rotation_handle_position(BOX, 20) == (200, 80)


@pytest.mark.unit
class TestResize:
    @pytest.mark.parametrize(
        "direction,dx,dy,expected",
        [
            ("e", 50, 0, (100, 100, 250, 100)),
            ("w", 50, 0, (150, 100, 150, 100)),
            ("s", 0, 30, (100, 100, 200, 130)),
            ("n", 0, 30, (100, 130, 200, 70)),
            ("se", 10, 20, (100, 100, 210, 120)),
            ("nw", -10, -20, (90, 80, 210, 120)),
            ("ne", 10, 10, (100, 110, 210, 90)),
            ("sw", 10, 10, (110, 100, 190, 110)),
        ],
    )
    def test_drag_moves_only_the_dragged_edges(self, direction, dx, dy, expected):
        result = resize_box(BOX, direction, dx, dy)
        assert (result.x, result.y, result.width, result.height) == expected

    @pytest.mark.parametrize("direction", [d.value for d in Direction])
    def test_never_inverts(self, direction):
        result = resize_box(BOX, direction, -10_000 if "e" in direction else 10_000, -10_000 if "s" in direction else 10_000)

        assert result.width >= 0
        assert result.height >= 0

    def test_west_clamp_pins_right_edge(self):
        result = resize_box(BOX, "w", 500, 0, min_size=20)

        assert result.width == 20
        assert result.right == BOX.right

    def test_north_clamp_pins_bottom_edge(self):
        result = resize_box(BOX, "n", 0, 500)

        assert result.height == 0
        assert result.bottom == BOX.bottom

    @given(
        dx=st.floats(-1e4, 1e4, allow_nan=False),
        dy=st.floats(-1e4, 1e4, allow_nan=False),
        direction=st.sampled_from(list(Direction)),
    )
    def test_dimensions_never_negative(self, dx, dy, direction):
        result = resize_box(BOX, direction, dx, dy)
        assert result.width >= 0 and result.height >= 0


@pytest.mark.unit
class TestRotation:
    @pytest.mark.parametrize(
        "angle,expected",
        [(0, 0), (360, 0), (450, 90), (-90, 270), (-720, 0), (359.5, 359.5)],
    )
    def test_normalize_angle(self, angle, expected):
        assert normalize_angle(angle) == pytest.approx(expected)

    @given(st.floats(-1e6, 1e6, allow_nan=False))
    def test_normalized_range(self, angle):
        assert 0 <= normalize_angle(angle) < 360

    def test_rotate_box_normalizes(self):
        assert rotate_box(BOX, -45).rotation == pytest.approx(315)

    @pytest.mark.parametrize(
        "pointer,expected",
        [((200, 0), 0), ((400, 150), 90), ((200, 300), 180), ((0, 150), 270)],
    )
    def test_rotation_from_pointer(self, pointer, expected):
        assert rotation_from_pointer(BOX, *pointer) == pytest.approx(expected)

    def test_pointer_at_center_keeps_rotation(self):
        box = Box(x=0, y=0, width=10, height=10, rotation=33)
        assert rotation_from_pointer(box, 5, 5) == 33


@pytest.mark.unit
class TestMove:
    def test_move_without_grid(self):
        moved = move_box(BOX, 7, -3)
        assert (moved.x, moved.y) == (107, 97)

    def test_move_snaps_to_grid(self):
        moved = move_box(BOX, 7, 14, grid_size=20)
        assert (moved.x, moved.y) == (100, 120)

    def test_zero_grid_is_identity(self):
        assert snap_to_grid(13.3, 0) == 13.3
