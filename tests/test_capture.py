import base64
import io

import pytest
from PIL import Image

from conftest import make_png, make_png_data_url
from doodlemorph.canvas import ShapeType
from doodlemorph.capture import MAX_CAPTURE_SIZE, capture_shapes_as_image, extract_image_from_shape
from doodlemorph.media import decode_data_url


def test_capture_returns_png_data_url(canvas, add_stroke):
    stroke = add_stroke(canvas)

    url = capture_shapes_as_image(canvas, [stroke])

    mime_type, data = decode_data_url(url)
    assert mime_type == 'image/png'
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == 'PNG'


def test_capture_scales_large_drawings_down(canvas, add_stroke):
    stroke = add_stroke(canvas, length=3000)

    _, data = decode_data_url(capture_shapes_as_image(canvas, [stroke]))

    with Image.open(io.BytesIO(data)) as img:
        # Padding is added after scaling
        assert max(img.size) <= MAX_CAPTURE_SIZE + 2 * 16 + 1


def test_capture_without_bounds_raises(canvas, add_stroke):
    stroke = add_stroke(canvas)
    canvas.delete_shape(stroke.id)

    with pytest.raises(ValueError, match="Could not get bounds of selection"):
        capture_shapes_as_image(canvas, [stroke])


def test_extract_from_data_url(canvas, add_image):
    image = add_image(canvas)
    src = canvas.get_asset(image.asset_id).src

    assert extract_image_from_shape(canvas, image) == src.split(',', 1)[1]


def test_extract_from_file_url(tmp_path, canvas, add_image):
    png = make_png(30, 20)
    path = tmp_path / 'character.png'
    path.write_bytes(png)
    image = add_image(canvas, src=path.as_uri())

    assert base64.b64decode(extract_image_from_shape(canvas, image)) == png


def test_extract_from_missing_file_raises_runtime_error(tmp_path, canvas, add_image):
    image = add_image(canvas, src=(tmp_path / 'gone.png').as_uri())

    with pytest.raises(RuntimeError, match="Failed to extract image data from shape"):
        extract_image_from_shape(canvas, image)


def test_extract_from_unsupported_source(canvas, add_image):
    image = add_image(canvas, src='ftp://example.com/character.png')

    with pytest.raises(ValueError, match="Unsupported image source format"):
        extract_image_from_shape(canvas, image)


def test_extract_rejects_non_images(canvas):
    geo = canvas.get_shape(canvas.create_shape(ShapeType.GEO))

    with pytest.raises(ValueError, match="Shape is not an image"):
        extract_image_from_shape(canvas, geo)


def test_extract_without_asset(canvas):
    no_asset = canvas.get_shape(canvas.create_shape(ShapeType.IMAGE))
    missing = canvas.get_shape(canvas.create_shape(ShapeType.IMAGE, props={'asset_id': 'asset:gone'}))

    with pytest.raises(ValueError, match="Image shape has no assetId"):
        extract_image_from_shape(canvas, no_asset)
    with pytest.raises(ValueError, match="Could not find image asset"):
        extract_image_from_shape(canvas, missing)


def test_extract_with_empty_src(canvas, add_image):
    image = add_image(canvas, src='')

    with pytest.raises(ValueError, match="Image asset has no src"):
        extract_image_from_shape(canvas, image)


def test_extract_follows_asset_references(canvas, add_image):
    red = add_image(canvas, src=make_png_data_url(40, 40, (255, 0, 0)), w=40, h=40)
    chained = add_image(canvas, src=red.asset_id, w=40, h=40)

    data = base64.b64decode(extract_image_from_shape(canvas, chained))

    with Image.open(io.BytesIO(data)) as img:
        assert img.convert('RGB').getpixel((20, 20)) == (255, 0, 0)


def test_extract_from_dangling_asset_reference_raises(canvas, add_image):
    image = add_image(canvas, src='asset:gone')

    with pytest.raises(RuntimeError, match="Failed to extract image data from asset"):
        extract_image_from_shape(canvas, image)


def test_extract_from_asset_reference_cycle_raises(canvas, add_image):
    first = add_image(canvas, src='asset:placeholder')
    second = add_image(canvas, src=first.asset_id)
    canvas.get_asset(first.asset_id).src = second.asset_id

    with pytest.raises(RuntimeError, match="Failed to extract image data from asset"):
        extract_image_from_shape(canvas, second)
