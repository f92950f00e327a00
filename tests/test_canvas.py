import io
import threading

import pytest
from PIL import Image

from conftest import make_png
from doodlemorph.canvas import Bounds, Canvas, ColorPalette, ShapeType, interpolate_points


def test_create_shape_merges_default_props(canvas):
    shape_id = canvas.create_shape(ShapeType.GEO, x=5, y=6, props={'w': 40})
    shape = canvas.get_shape(shape_id)

    assert shape_id.startswith('shape:')
    assert shape.props['w'] == 40
    assert shape.props['h'] == 100
    assert shape.props['geo'] == 'rectangle'


def test_create_shape_rejects_duplicate_id_and_missing_parent(canvas):
    canvas.create_shape(ShapeType.GEO, shape_id='shape:one')

    with pytest.raises(ValueError):
        canvas.create_shape(ShapeType.GEO, shape_id='shape:one')
    with pytest.raises(ValueError):
        canvas.create_shape(ShapeType.GEO, parent_id='shape:missing')


def test_stroke_bounds_are_padded_by_half_the_size(canvas, add_stroke):
    stroke = add_stroke(canvas, x=10, y=10, length=100)

    bounds = canvas.get_shape_page_bounds(stroke)

    assert bounds == Bounds(8, 8, 112, 112)


def test_child_bounds_include_parent_offset(canvas):
    parent_id = canvas.create_shape(ShapeType.GEO, x=100, y=200, props={'w': 50, 'h': 50})
    child_id = canvas.create_shape(
        ShapeType.GEO, x=10, y=5, props={'w': 20, 'h': 20}, parent_id=parent_id
    )

    bounds = canvas.get_shape_page_bounds(child_id)

    assert (bounds.x, bounds.y, bounds.width, bounds.height) == (110, 205, 20, 20)


def test_page_bounds_of_missing_shape_is_none(canvas):
    assert canvas.get_shape_page_bounds('shape:nope') is None
    assert canvas.get_shapes_page_bounds([]) is None


def test_combined_bounds(canvas):
    a = canvas.create_shape(ShapeType.GEO, x=0, y=0, props={'w': 10, 'h': 10})
    b = canvas.create_shape(ShapeType.GEO, x=50, y=30, props={'w': 10, 'h': 20})

    bounds = canvas.get_shapes_page_bounds([a, b])

    assert bounds == Bounds(0, 0, 60, 50)
    assert bounds.mid_y == 25


def test_delete_shape_removes_children_and_selection(canvas):
    parent_id = canvas.create_shape(ShapeType.GEO)
    child_id = canvas.create_shape(ShapeType.VIDEO, parent_id=parent_id)
    canvas.select(parent_id)

    canvas.delete_shape(parent_id)

    assert canvas.get_shape(parent_id) is None
    assert canvas.get_shape(child_id) is None
    assert canvas.get_selected_shape_ids() == []


def test_delete_unknown_shape_is_ignored(canvas):
    canvas.create_shape(ShapeType.GEO)

    canvas.delete_shape('shape:nope')

    assert canvas.get_shape_count() == 1


def test_select_keeps_order_and_rejects_unknown(canvas):
    a = canvas.create_shape(ShapeType.GEO)
    b = canvas.create_shape(ShapeType.GEO)

    canvas.select(b, a)
    assert canvas.get_selected_shape_ids() == [b, a]

    with pytest.raises(ValueError):
        canvas.select('shape:nope')


def test_select_all_skips_locked_and_nested_shapes(canvas):
    top = canvas.create_shape(ShapeType.GEO)
    canvas.create_shape(ShapeType.GEO, is_locked=True)
    canvas.create_shape(ShapeType.VIDEO, parent_id=top)

    canvas.select_all()

    assert canvas.get_selected_shape_ids() == [top]


def test_shape_at_returns_topmost_unlocked(canvas):
    canvas.create_shape(ShapeType.GEO, x=0, y=0, props={'w': 100, 'h': 100})
    upper = canvas.create_shape(ShapeType.GEO, x=50, y=50, props={'w': 100, 'h': 100})

    assert canvas.shape_at(75, 75).id == upper
    assert canvas.shape_at(500, 500) is None


def test_to_image_exports_png_with_padding(canvas):
    shape_id = canvas.create_shape(ShapeType.GEO, props={'w': 80, 'h': 40, 'fill': 'solid'})

    data = canvas.to_image([canvas.get_shape(shape_id)], padding=10)

    with Image.open(io.BytesIO(data)) as img:
        assert img.format == 'PNG'
        assert img.size == (100, 60)


def test_to_image_without_shapes_raises(canvas):
    with pytest.raises(ValueError):
        canvas.to_image([])


def test_render_returns_bgr_view(canvas, add_stroke):
    add_stroke(canvas)

    frame = canvas.render(320, 240)

    assert frame.shape == (240, 320, 3)
    # Stroke is darker than the white page
    assert frame.min() < 255


def test_save_and_load(tmp_path, canvas, add_stroke, add_image):
    stroke = add_stroke(canvas)
    image = add_image(canvas, x=200, y=0)
    path = tmp_path / 'doc' / 'doodle.json'

    canvas.save(path)
    loaded = Canvas.load(path)

    assert loaded.get_shape_count() == 2
    assert loaded.get_shape(stroke.id).props['points'] == stroke.props['points']
    assert loaded.get_shape(image.id).type == ShapeType.IMAGE
    assert loaded.get_asset(image.asset_id).src == canvas.get_asset(image.asset_id).src


def test_color_palette_falls_back_to_black():
    assert ColorPalette.get('violet') == ColorPalette.VIOLET
    assert ColorPalette.get('chartreuse') == ColorPalette.BLACK


def test_interpolate_points_ends_at_target():
    points = interpolate_points((0, 0), (10, 0), spacing=2.0)

    assert len(points) == 5
    assert points[-1] == (10, 0)
    assert interpolate_points((0, 0), (0.5, 0)) == [(0.5, 0)]


def test_render_draws_file_url_images(tmp_path, canvas, add_image):
    path = tmp_path / 'blue.png'
    path.write_bytes(make_png(60, 60, (0, 0, 255)))
    add_image(canvas, src=path.as_uri(), w=60, h=60)

    frame = canvas.render(100, 100)

    # BGR
    assert tuple(int(v) for v in frame[30, 30]) == (255, 0, 0)


def test_unreadable_asset_image_is_none(tmp_path, canvas, add_image):
    image = add_image(canvas, src=(tmp_path / 'gone.png').as_uri())

    assert canvas.get_asset_image(image.asset_id) is None
    assert canvas.get_asset_image('asset:unknown') is None


def test_lock_is_reentrant_and_held_by_methods(canvas):
    created = threading.Event()

    def create():
        canvas.create_shape(ShapeType.GEO)
        created.set()

    with canvas.lock:
        with canvas.lock:
            worker = threading.Thread(target=create)
            worker.start()
            assert not created.wait(0.2)
            assert canvas.shapes == []

    worker.join(timeout=5)
    assert created.is_set()
    assert len(canvas.shapes) == 1


def test_concurrent_edits_and_exports(canvas):
    errors = []

    def edit():
        try:
            for _ in range(200):
                shape_id = canvas.create_shape(ShapeType.GEO, props={'w': 20, 'h': 20})
                canvas.select(shape_id)
                canvas.delete_shape(shape_id)
        except Exception as e:
            errors.append(e)

    def export():
        try:
            for _ in range(200):
                shapes = canvas.get_selected_shapes()
                if shapes:
                    canvas.to_image(shapes)
        except ValueError:
            # Selection emptied between the two calls
            pass
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=edit), threading.Thread(target=export)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
