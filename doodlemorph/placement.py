"""
Placement Module - Results Back on the Canvas
=============================================
Downloads generated images and videos, registers them as assets and
creates shapes for them next to the source selection, replacing the
in-progress placeholder when there is one.
"""

from typing import List, Optional, Tuple

from doodlemorph.canvas import Asset, Bounds, Canvas, Shape, ShapeType, create_asset_id
from doodlemorph.media import encode_data_url, fetch_bytes, image_mime_type, image_size, video_size
from doodlemorph.placeholder import delete_placeholder_shape


# Gap between a drawing and the generated image to its right
HORIZONTAL_OFFSET = 60
# Gap between stacked results below an image
VERTICAL_SPACING = 40


def calculate_aspect_ratio_fit(
    src_width: float,
    src_height: float,
    max_width: float,
    max_height: float
) -> Tuple[float, float]:
    """
    Scale (src_width, src_height) to fit inside (max_width, max_height).

    Returns:
        (width, height) keeping the source aspect ratio
    """
    ratio = min(max_width / src_width, max_height / src_height)
    return src_width * ratio, src_height * ratio


def _load_image(url: str) -> Tuple[str, int, int, str]:
    """Fetch an image; returns (data URL, width, height, mime type)."""
    data, mime_type = fetch_bytes(url)
    width, height = image_size(data)
    if not mime_type or not mime_type.startswith('image/'):
        mime_type = image_mime_type(data)
    return encode_data_url(data, mime_type), width, height, mime_type


def _replace_placeholder(canvas: Canvas, placeholder_id: str) -> Bounds:
    """Delete a placeholder and return where it was."""
    placeholder = canvas.get_shape(placeholder_id)
    if placeholder is None:
        raise ValueError("Placeholder shape not found")

    bounds = canvas.get_shape_page_bounds(placeholder)
    delete_placeholder_shape(canvas, placeholder_id)
    return bounds


def place_image_on_canvas(
    canvas: Canvas,
    image_url: str,
    reference_shape: Shape,
    prompt: Optional[str] = None,
    placeholder_id: Optional[str] = None,
    override_bounds: Optional[Bounds] = None
) -> str:
    """
    Place a generated image to the right of its source.

    Args:
        canvas: Target canvas
        image_url: URL of the generated image
        reference_shape: Shape the image was generated from
        prompt: Prompt stored on the new shape
        placeholder_id: Placeholder to replace
        override_bounds: Combined bounds of a multi-shape source

    Returns:
        New image shape id
    """
    bounds = override_bounds or canvas.get_shape_page_bounds(reference_shape)
    if bounds is None:
        raise ValueError("Could not get bounds of reference shape. The shape may have been deleted.")

    try:
        data_url, width, height, mime_type = _load_image(image_url)
    except (OSError, RuntimeError, ValueError) as e:
        print(f"[ERROR] Loading image failed: {e}")
        raise RuntimeError("Failed to load image from URL") from e

    target_w, target_h = calculate_aspect_ratio_fit(width, height, bounds.width, bounds.height)

    asset_id = create_asset_id()
    canvas.create_assets([Asset(
        id=asset_id,
        type='image',
        name='generated-image',
        src=data_url,
        w=width,
        h=height,
        mime_type=mime_type,
        is_animated=False,
    )])

    if placeholder_id:
        # Shape types cannot change, so the placeholder is swapped out
        placeholder_bounds = _replace_placeholder(canvas, placeholder_id)
        x, y = placeholder_bounds.x, placeholder_bounds.y
    else:
        x = bounds.max_x + HORIZONTAL_OFFSET
        y = bounds.mid_y - target_h / 2

    return canvas.create_shape(
        ShapeType.IMAGE,
        x=x,
        y=y,
        props={'asset_id': asset_id, 'w': target_w, 'h': target_h},
        meta={'generatedPrompt': prompt or ''},
    )


def place_variants_on_canvas(
    canvas: Canvas,
    variant_urls: List[str],
    original_shape: Shape,
    prompts: Optional[List[str]] = None,
    placeholder_ids: Optional[List[str]] = None
) -> List[str]:
    """
    Place variant images in a column below the original image.

    Variants that fail to download are skipped.

    Args:
        canvas: Target canvas
        variant_urls: URLs of the generated variants
        original_shape: Image the variants were made from
        prompts: Prompt per variant
        placeholder_ids: Placeholder per variant

    Returns:
        Ids of the created shapes
    """
    if not variant_urls:
        return []

    original_bounds = canvas.get_shape_page_bounds(original_shape)
    if original_bounds is None:
        raise ValueError("Could not get bounds of original shape.")

    created: List[str] = []
    current_y = original_bounds.max_y + VERTICAL_SPACING

    for i, image_url in enumerate(variant_urls):
        placeholder_id = placeholder_ids[i] if placeholder_ids and i < len(placeholder_ids) else None
        prompt = prompts[i] if prompts and i < len(prompts) and prompts[i] else ''

        try:
            data_url, width, height, mime_type = _load_image(image_url)
        except (OSError, RuntimeError, ValueError) as e:
            print(f"[ERROR] Loading variant {i + 1} failed: {e}")
            continue

        target_w, target_h = calculate_aspect_ratio_fit(
            width, height, original_bounds.width, original_bounds.height
        )

        asset_id = create_asset_id()
        canvas.create_assets([Asset(
            id=asset_id,
            type='image',
            name=f'variant-{i + 1}',
            src=data_url,
            w=width,
            h=height,
            mime_type=mime_type,
            is_animated=False,
        )])

        props = {'asset_id': asset_id, 'w': target_w, 'h': target_h}
        meta = {'generatedPrompt': prompt}

        if placeholder_id and canvas.get_shape(placeholder_id) is not None:
            placeholder_bounds = _replace_placeholder(canvas, placeholder_id)
            shape_id = canvas.create_shape(
                ShapeType.IMAGE, x=placeholder_bounds.x, y=placeholder_bounds.y,
                props=props, meta=meta,
            )
        else:
            shape_id = canvas.create_shape(
                ShapeType.IMAGE, x=original_bounds.min_x, y=current_y,
                props=props, meta=meta,
            )
            current_y += target_h + VERTICAL_SPACING

        created.append(shape_id)

    return created


def place_video_on_canvas(
    canvas: Canvas,
    video_url: str,
    original_shape: Shape,
    prompt: Optional[str] = None,
    placeholder_id: Optional[str] = None
) -> str:
    """
    Place a generated video below the original image.

    Args:
        canvas: Target canvas
        video_url: URL of the generated video
        original_shape: Image the video was made from
        prompt: Prompt stored on the new shape
        placeholder_id: Placeholder to replace

    Returns:
        New video shape id
    """
    original_bounds = canvas.get_shape_page_bounds(original_shape)
    if original_bounds is None:
        raise ValueError("Could not get bounds of original shape.")

    try:
        data, _ = fetch_bytes(video_url)
        width, height = video_size(data)
    except (OSError, RuntimeError, ValueError) as e:
        print(f"[ERROR] Loading video failed: {e}")
        raise RuntimeError("Failed to load video from URL") from e

    target_w, target_h = calculate_aspect_ratio_fit(
        width, height, original_bounds.width, original_bounds.height
    )

    asset_id = create_asset_id()
    canvas.create_assets([Asset(
        id=asset_id,
        type='video',
        name='generated-animation',
        src=encode_data_url(data, 'video/mp4'),
        w=width,
        h=height,
        mime_type='video/mp4',
        is_animated=True,
    )])

    if placeholder_id:
        placeholder_bounds = _replace_placeholder(canvas, placeholder_id)
        x, y = placeholder_bounds.x, placeholder_bounds.y
    else:
        x = original_bounds.min_x
        y = original_bounds.max_y + VERTICAL_SPACING

    return canvas.create_shape(
        ShapeType.VIDEO,
        x=x,
        y=y,
        props={'asset_id': asset_id, 'w': target_w, 'h': target_h},
        meta={'generatedPrompt': prompt or ''},
    )
