"""
Capture Module - Selection to Image
===================================
Rasterizes selected shapes for the generation APIs and pulls the image
data out of image shapes.
"""

import base64
from typing import List

from doodlemorph.canvas import Canvas, Shape, ShapeType
from doodlemorph.media import encode_data_url, fetch_bytes, strip_image_data_url


# Longest side of a captured sketch, in pixels
MAX_CAPTURE_SIZE = 1000


def capture_shapes_as_image(canvas: Canvas, shapes: List[Shape]) -> str:
    """
    Capture shapes as a PNG data URL.

    The export is scaled down so neither side of the shapes' bounds
    exceeds MAX_CAPTURE_SIZE; it is never scaled up.

    Args:
        canvas: Canvas holding the shapes
        shapes: Shapes to capture

    Returns:
        data:image/png;base64,... string
    """
    bounds = canvas.get_shapes_page_bounds(shapes)
    if bounds is None:
        raise ValueError("Could not get bounds of selection.")

    scale = 1.0
    if bounds.width > 0:
        scale = min(scale, MAX_CAPTURE_SIZE / bounds.width)
    if bounds.height > 0:
        scale = min(scale, MAX_CAPTURE_SIZE / bounds.height)

    data = canvas.to_image(shapes, scale=scale, background=True, format='png')
    if not data:
        raise RuntimeError("Could not capture image from shapes.")

    return encode_data_url(data, 'image/png')


def extract_image_from_shape(canvas: Canvas, shape: Shape) -> str:
    """
    Get the image behind an image shape as bare base64.

    Handles embedded data URLs, asset: references (re-exported from the
    canvas) and http(s)/file URLs (downloaded).

    Args:
        canvas: Canvas holding the shape
        shape: Image shape

    Returns:
        Base64 encoded image data
    """
    if shape.type != ShapeType.IMAGE:
        raise ValueError("Shape is not an image")

    asset_id = shape.asset_id
    if not asset_id:
        raise ValueError("Image shape has no assetId")

    asset = canvas.get_asset(asset_id)
    if asset is None or asset.type != 'image':
        raise ValueError("Could not find image asset")

    src = asset.src
    if not src:
        raise ValueError("Image asset has no src")

    if src.startswith('data:'):
        return strip_image_data_url(src)

    if src.startswith('asset:'):
        if canvas.get_asset_image(asset_id) is None:
            raise RuntimeError(f"Failed to extract image data from asset: {src[:50]}...")
        try:
            data = canvas.to_image([shape], format='png', background=False, padding=0)
        except (ValueError, RuntimeError) as e:
            print(f"[ERROR] Exporting asset image failed: {e}")
            raise RuntimeError(f"Failed to extract image data from asset: {src[:50]}...") from e
        return base64.b64encode(data).decode('utf-8')

    if src.startswith(('http://', 'https://', 'file://')):
        try:
            data, _ = fetch_bytes(src)
        except (OSError, RuntimeError, ValueError) as e:
            print(f"[ERROR] Extracting image from shape failed: {e}")
            raise RuntimeError(
                f"Failed to extract image data from shape. Source: {src[:50]}..."
            ) from e
        return base64.b64encode(data).decode('utf-8')

    raise ValueError(f"Unsupported image source format: {src[:50]}...")
