import pytest

from conftest import make_png_data_url
from doodlemorph.canvas import Bounds, ShapeType
from doodlemorph.media import encode_data_url
from doodlemorph.placeholder import create_placeholder_shape
from doodlemorph.placement import (
    calculate_aspect_ratio_fit, place_image_on_canvas, place_variants_on_canvas,
    place_video_on_canvas
)


@pytest.fixture
def box(canvas):
    return canvas.get_shape(canvas.create_shape(ShapeType.GEO, props={'w': 100, 'h': 100}))


def test_aspect_ratio_fit():
    assert calculate_aspect_ratio_fit(200, 100, 100, 100) == (100, 50)
    assert calculate_aspect_ratio_fit(50, 100, 100, 100) == (50, 100)


def test_image_goes_to_the_right_centred(canvas, box):
    shape_id = place_image_on_canvas(canvas, make_png_data_url(200, 100), box, prompt='cartoon')
    shape = canvas.get_shape(shape_id)

    assert shape.type == ShapeType.IMAGE
    assert (shape.x, shape.y) == (160, 25)
    assert (shape.props['w'], shape.props['h']) == (100, 50)
    assert shape.meta['generatedPrompt'] == 'cartoon'

    asset = canvas.get_asset(shape.asset_id)
    assert asset.name == 'generated-image'
    assert (asset.w, asset.h) == (200, 100)
    assert asset.mime_type == 'image/png'


def test_image_uses_override_bounds(canvas, box):
    bounds = Bounds(0, 0, 400, 200)

    shape = canvas.get_shape(
        place_image_on_canvas(canvas, make_png_data_url(100, 100), box, override_bounds=bounds)
    )

    assert (shape.x, shape.y) == (460, 0)
    assert shape.props['w'] == 200


def test_image_replaces_placeholder(canvas, box):
    placeholder_id = create_placeholder_shape(canvas, 300, 40, 100, 100)

    shape = canvas.get_shape(
        place_image_on_canvas(canvas, make_png_data_url(), box, placeholder_id=placeholder_id)
    )

    assert (shape.x, shape.y) == (300, 40)
    assert canvas.get_shape(placeholder_id) is None
    assert canvas.get_shape_count() == 2


def test_image_with_missing_placeholder_raises(canvas, box):
    with pytest.raises(ValueError, match="Placeholder shape not found"):
        place_image_on_canvas(canvas, make_png_data_url(), box, placeholder_id='shape:gone')


def test_image_that_cannot_load_raises(canvas, box):
    bad = encode_data_url(b'not an image', 'image/png')

    with pytest.raises(RuntimeError, match="Failed to load image from URL"):
        place_image_on_canvas(canvas, bad, box)


def test_image_for_deleted_reference_raises(canvas, box):
    canvas.delete_shape(box.id)

    with pytest.raises(ValueError):
        place_image_on_canvas(canvas, make_png_data_url(), box)


def test_variants_stack_below_original(canvas, add_image):
    original = add_image(canvas, w=100, h=100)
    urls = [make_png_data_url(200, 100), make_png_data_url(200, 100, (0, 255, 0))]

    ids = place_variants_on_canvas(canvas, urls, original, prompts=['hat', 'cape'])
    first, second = [canvas.get_shape(i) for i in ids]

    assert (first.x, first.y) == (0, 140)
    assert (second.x, second.y) == (0, 230)
    assert first.meta['generatedPrompt'] == 'hat'
    assert canvas.get_asset(second.asset_id).name == 'variant-2'


def test_variants_skip_failed_downloads(canvas, add_image):
    original = add_image(canvas)
    urls = [encode_data_url(b'garbage', 'image/png'), make_png_data_url()]

    ids = place_variants_on_canvas(canvas, urls, original)

    assert len(ids) == 1
    assert canvas.get_asset(canvas.get_shape(ids[0]).asset_id).name == 'variant-2'


def test_variants_fill_placeholders(canvas, add_image):
    original = add_image(canvas)
    placeholder_id = create_placeholder_shape(canvas, 0, 500, 100, 100)

    ids = place_variants_on_canvas(
        canvas, [make_png_data_url()], original, placeholder_ids=[placeholder_id]
    )

    shape = canvas.get_shape(ids[0])
    assert (shape.x, shape.y) == (0, 500)
    assert canvas.get_shape(placeholder_id) is None


def test_no_variants(canvas, add_image):
    assert place_variants_on_canvas(canvas, [], add_image(canvas)) == []


def test_video_below_original(canvas, add_image, mp4_bytes):
    original = add_image(canvas, w=128, h=96)

    shape = canvas.get_shape(
        place_video_on_canvas(canvas, encode_data_url(mp4_bytes, 'video/mp4'), original, prompt='wave')
    )

    assert shape.type == ShapeType.VIDEO
    assert (shape.x, shape.y) == (0, 136)
    assert (shape.props['w'], shape.props['h']) == (128, 96)
    asset = canvas.get_asset(shape.asset_id)
    assert asset.is_animated
    assert asset.mime_type == 'video/mp4'


def test_video_that_cannot_load_raises(canvas, add_image):
    original = add_image(canvas)

    with pytest.raises(RuntimeError, match="Failed to load video from URL"):
        place_video_on_canvas(canvas, encode_data_url(b'nope', 'video/mp4'), original)
