import itertools

import pytest

from photobooth.domain.editor import (
    MIN_AREA_SIZE,
    FrameEditor,
    GestureKind,
    handle_at,
    resize_dimensions,
)
from photobooth.domain.errors import InputValidationError, InvalidTransitionError, NotFoundError
from photobooth.domain.models import ShapeKind, SizeClass


@pytest.fixture
def editor():
    return FrameEditor(name="Party", size_class=SizeClass.four_by_six, background_image_url="/frame/bg.png")


def test_add_area_uses_shape_defaults(editor):
    square = editor.add_area(ShapeKind.square)
    landscape = editor.add_area(ShapeKind.landscape)
    portrait = editor.add_area("portrait")

    assert (square.x, square.y, square.width, square.height) == (50, 50, 100, 100)
    assert (landscape.width, landscape.height) == (120, 80)
    assert (portrait.width, portrait.height) == (80, 120)
    assert [a.order for a in editor.areas] == [1, 2, 3]
    assert square.rotation == 0
    assert len({a.id for a in editor.areas}) == 3


def test_remove_area_keeps_order_gaps_and_clears_selection(editor):
    a, b, c = (editor.add_area(ShapeKind.square) for _ in range(3))
    editor.select_area(b.id)
    editor.remove_area(b.id)

    assert editor.selected_area_id is None
    assert [x.order for x in editor.areas] == [1, 3]
    assert editor.add_area(ShapeKind.square).order == 4


def test_remove_unselected_area_keeps_selection(editor):
    a = editor.add_area(ShapeKind.square)
    b = editor.add_area(ShapeKind.square)
    editor.select_area(a.id)
    editor.remove_area(b.id)
    assert editor.selected_area_id == a.id


def test_single_selection(editor):
    a = editor.add_area(ShapeKind.square)
    b = editor.add_area(ShapeKind.square)
    editor.select_area(a.id)
    editor.select_area(b.id)
    assert editor.selected_area_id == b.id
    editor.deselect()
    assert editor.selected_area_id is None


def test_update_area_is_unconstrained(editor):
    area = editor.add_area(ShapeKind.square)
    updated = editor.update_area(area.id, width=300, rotation=45)
    assert updated.width == 300 and updated.height == 100
    assert updated.rotation == 45


def test_update_area_rejects_unknown_fields_and_ids(editor):
    area = editor.add_area(ShapeKind.square)
    with pytest.raises(InputValidationError):
        editor.update_area(area.id, colour="red")
    with pytest.raises(NotFoundError):
        editor.update_area("missing", x=1)


def test_square_resize_scenario(editor):
    area = editor.add_area(ShapeKind.square)
    editor.pointer_down(area.id, GestureKind.resizing, 150, 150)
    resized = editor.pointer_move(180, 160)
    assert resized.width == 130
    assert resized.height == 130


def test_resize_is_relative_to_gesture_start(editor):
    area = editor.add_area(ShapeKind.square)
    editor.pointer_down(area.id, GestureKind.resizing, 150, 150)
    editor.pointer_move(200, 200)
    resized = editor.pointer_move(160, 150)
    assert resized.width == 110


@pytest.mark.parametrize("shape", list(ShapeKind))
@pytest.mark.parametrize("dx,dy", list(itertools.product([-400, -60, -5, 0, 7, 35, 250], [-300, -20, 0, 12, 90])))
def test_resize_keeps_shape_invariants(shape, dx, dy):
    editor = FrameEditor()
    area = editor.add_area(shape)
    editor.pointer_down(area.id, GestureKind.resizing, 100, 100)
    resized = editor.pointer_move(100 + dx, 100 + dy)

    assert resized.width >= MIN_AREA_SIZE
    assert resized.height >= MIN_AREA_SIZE
    if shape == ShapeKind.square:
        assert resized.width == resized.height
    elif shape == ShapeKind.portrait:
        assert resized.height == pytest.approx(resized.width * 16 / 9)
    else:
        assert resized.height == pytest.approx(resized.width * 9 / 16)


def test_portrait_resize_follows_width():
    width, height = resize_dimensions(ShapeKind.portrait, 80, 120, 10, 100)
    assert width == 180
    assert height == pytest.approx(320)


def test_unconstrained_resize_floors_each_side():
    assert resize_dimensions(None, 100, 80, 20, -100) == (120, MIN_AREA_SIZE)


def test_drag_keeps_grab_offset_and_clamps_at_origin(editor):
    area = editor.add_area(ShapeKind.square)
    editor.pointer_down(area.id, GestureKind.dragging, 60, 70)
    assert editor.gesture_state(area.id) == GestureKind.dragging

    moved = editor.pointer_move(160, 170)
    assert (moved.x, moved.y) == (150, 150)

    moved = editor.pointer_move(0, 5)
    assert (moved.x, moved.y) == (0, 0)

    # No upper clamp: areas may leave the canvas.
    moved = editor.pointer_move(1000, 2000)
    assert (moved.x, moved.y) == (990, 1980)

    editor.pointer_up()
    assert editor.gesture_state(area.id) == GestureKind.idle
    assert editor.pointer_move(10, 10) is None


def test_rotation_continues_from_current_bearing(editor):
    area = editor.add_area(ShapeKind.square)  # centre (100, 100)
    editor.update_area(area.id, rotation=30)
    editor.pointer_down(area.id, GestureKind.rotating, 100, 40)

    assert editor.pointer_move(100, 40).rotation == pytest.approx(30)
    assert editor.pointer_move(160, 100).rotation == pytest.approx(120)


def test_only_one_gesture_at_a_time(editor):
    a = editor.add_area(ShapeKind.square)
    b = editor.add_area(ShapeKind.square)
    editor.pointer_down(a.id, GestureKind.dragging, 60, 60)
    with pytest.raises(InvalidTransitionError):
        editor.pointer_down(b.id, GestureKind.resizing, 150, 150)
    assert editor.selected_area_id == a.id


def test_removing_area_ends_its_gesture(editor):
    area = editor.add_area(ShapeKind.square)
    editor.pointer_down(area.id, GestureKind.dragging, 60, 60)
    editor.remove_area(area.id)
    assert editor.gesture is None


def test_handle_hit_testing(editor):
    area = editor.add_area(ShapeKind.square)  # 50..150
    assert handle_at(area, 100, 100) == GestureKind.dragging
    assert handle_at(area, 150, 150) == GestureKind.resizing
    assert handle_at(area, 52, 48) == GestureKind.resizing
    assert handle_at(area, 100, 34) == GestureKind.rotating
    assert handle_at(area, 300, 300) is None


def test_handle_hit_testing_follows_rotation(editor):
    area = editor.update_area(editor.add_area(ShapeKind.square).id, rotation=90)
    # Rotated 90 degrees clockwise, the rotate handle sits to the right.
    assert handle_at(area, 166, 100) == GestureKind.rotating


def test_build_frame_validates_input():
    with pytest.raises(InputValidationError):
        FrameEditor(name="   ", background_image_url="/frame/x.png").build_frame()
    with pytest.raises(InputValidationError):
        FrameEditor(name="Ok", background_image_url="").build_frame()


def test_build_frame_snapshot(editor):
    editor.add_area(ShapeKind.portrait)
    editor.areas_on_top = False
    frame = editor.build_frame()
    assert frame.name == "Party"
    assert frame.size_class == SizeClass.four_by_six
    assert frame.areas_on_top is False
    assert len(frame.areas) == 1

    editor.update_area(editor.areas[0].id, x=300)
    assert frame.areas[0].x == 50


def test_from_frame_keeps_identity(editor):
    frame = editor.build_frame()
    again = FrameEditor.from_frame(frame).build_frame()
    assert again.id == frame.id
    assert again.created_at == frame.created_at


def test_build_frame_rejects_duplicate_orders(editor):
    first = editor.add_area(ShapeKind.square)
    second = editor.add_area(ShapeKind.portrait)
    editor.update_area(second.id, order=first.order)
    with pytest.raises(InputValidationError):
        editor.build_frame()


def test_build_frame_rejects_orders_below_one(editor):
    area = editor.add_area(ShapeKind.square)
    editor.update_area(area.id, order=0)
    with pytest.raises(InputValidationError):
        editor.build_frame()


def test_build_frame_rejects_duplicate_area_ids(editor):
    area = editor.add_area(ShapeKind.square)
    editor.areas.append(area.model_copy(update={"order": 2}))
    with pytest.raises(InputValidationError):
        editor.build_frame()
