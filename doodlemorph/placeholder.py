"""
Placeholder Module - In-Progress Shapes
=======================================
Creates the dashed grey box shown while a generation is running, with a
looping loading animation and a "Morphing..." label inside it, and
removes it again once the result is placed.
"""

import io
import os
import random
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from doodlemorph.canvas import Asset, Canvas, ShapeType, create_asset_id
from doodlemorph.media import encode_data_url, video_size


LOADING_ANIMATIONS = ['loading_animation_1.mp4', 'loading_animation_2.mp4']
DEFAULT_ASSETS_DIR = Path(__file__).parent / "assets"

PLACEHOLDER_TEXT = "Morphing..."

# Meta keys linking the grey box to its children
VIDEO_META_KEY = 'loadingVideoId'
TEXT_META_KEY = 'loadingTextId'

# Spinner colors (BGR) for the two built-in animations
SPINNER_STYLES = [
    (212, 76, 174),    # violet
    (150, 150, 150),   # grey
]


@lru_cache(maxsize=len(SPINNER_STYLES))
def render_loading_animation(style: int = 0, size: int = 128, frames: int = 24) -> bytes:
    """
    Render a looping spinner as an mp4.

    Used when no loading animation files are installed.

    Args:
        style: Index into SPINNER_STYLES
        size: Frame width and height
        frames: Number of frames in one loop

    Returns:
        Encoded mp4 bytes
    """
    color = SPINNER_STYLES[style % len(SPINNER_STYLES)]
    fd, path = tempfile.mkstemp(suffix='.mp4')
    os.close(fd)
    try:
        writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*'mp4v'), 24, (size, size))
        if not writer.isOpened():
            raise RuntimeError("No mp4 encoder available")
        try:
            center = (size // 2, size // 2)
            radius = size // 3
            for i in range(frames):
                frame = np.full((size, size, 3), 240, dtype=np.uint8)
                start = int(360 * i / frames)
                cv2.ellipse(frame, center, (radius, radius), 0, 0, 360, (225, 225, 225), 8, cv2.LINE_AA)
                cv2.ellipse(frame, center, (radius, radius), 0, start, start + 90, color, 8, cv2.LINE_AA)
                writer.write(frame)
        finally:
            writer.release()
        return Path(path).read_bytes()
    finally:
        os.remove(path)


def load_loading_animation(assets_dir: Optional[Path] = None) -> bytes:
    """Pick one of the loading animations at random."""
    index = random.randrange(len(LOADING_ANIMATIONS))
    path = Path(assets_dir or DEFAULT_ASSETS_DIR) / LOADING_ANIMATIONS[index]
    if path.exists():
        return path.read_bytes()
    return render_loading_animation(index)


def create_text_image(text: str, font_size: int, color: str = 'grey') -> Tuple[bytes, int, int]:
    """
    Render bold text on a transparent background.

    Args:
        text: Text to render
        font_size: Font size in pixels
        color: Fill color name understood by Pillow

    Returns:
        (PNG bytes, width, height)
    """
    try:
        font = ImageFont.truetype("DejaVuSans-Bold.ttf", font_size)
    except OSError:
        font = ImageFont.load_default(size=font_size)

    measure = ImageDraw.Draw(Image.new('RGBA', (1, 1)))
    left, top, right, bottom = measure.textbbox((0, 0), text, font=font)
    text_width = right - left

    width = int(text_width + 40)
    height = int(font_size * 1.5 + 20)

    img = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.text((width / 2, height / 2), text, font=font, fill=color, anchor='mm')

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue(), width, height


def create_placeholder_shape(
    canvas: Canvas,
    x: float,
    y: float,
    width: float,
    height: float,
    assets_dir: Optional[Path] = None
) -> str:
    """
    Create a placeholder box with a loading animation and label.

    If the animation or label cannot be built the plain grey box is
    kept.

    Args:
        canvas: Target canvas
        x: Page x of the box
        y: Page y of the box
        width: Box width
        height: Box height
        assets_dir: Directory with loading animation videos

    Returns:
        The grey box shape id
    """
    box_id = canvas.create_shape(
        ShapeType.GEO,
        x=x,
        y=y,
        props={
            'geo': 'rectangle',
            'w': width,
            'h': height,
            'color': 'grey',
            'fill': 'semi',
            'dash': 'dashed',
            'size': 'm',
        },
        opacity=0.6,
        is_locked=False,
    )
    box = canvas.get_shape(box_id)

    try:
        video_data = load_loading_animation(assets_dir)
        video_w, video_h = video_size(video_data)

        video_asset_id = create_asset_id()
        canvas.create_assets([Asset(
            id=video_asset_id,
            type='video',
            name='loading-animation',
            src=encode_data_url(video_data, 'video/mp4'),
            w=video_w,
            h=video_h,
            mime_type='video/mp4',
            is_animated=False,
        )])

        # Centred, lifted to leave room for the label
        video_size_px = min(width, height) * 0.5
        relative_x = width / 2 - video_size_px / 2
        relative_y = height / 2 - video_size_px / 2 - 35

        video_id = canvas.create_shape(
            ShapeType.VIDEO,
            x=relative_x,
            y=relative_y,
            props={'asset_id': video_asset_id, 'w': video_size_px, 'h': video_size_px},
            opacity=1.0,
            is_locked=True,
            parent_id=box_id,
        )
        box.meta[VIDEO_META_KEY] = video_id

        text_data, text_w, text_h = create_text_image(PLACEHOLDER_TEXT, 32, 'grey')
        text_asset_id = create_asset_id()
        canvas.create_assets([Asset(
            id=text_asset_id,
            type='image',
            name='morphing-text',
            src=encode_data_url(text_data, 'image/png'),
            w=text_w,
            h=text_h,
            mime_type='image/png',
            is_animated=False,
        )])

        text_display_w = text_w * 0.8
        text_display_h = text_h * 0.8
        text_id = canvas.create_shape(
            ShapeType.IMAGE,
            x=width / 2 - text_display_w / 2,
            y=relative_y + video_size_px + 15,
            props={'asset_id': text_asset_id, 'w': text_display_w, 'h': text_display_h},
            opacity=0.9,
            is_locked=True,
            parent_id=box_id,
        )
        box.meta[TEXT_META_KEY] = text_id

    except (OSError, RuntimeError, ValueError) as e:
        print(f"[WARNING] Loading animation unavailable, keeping plain placeholder: {e}")

    return box_id


def delete_placeholder_shape(canvas: Canvas, shape_id: str):
    """
    Delete a placeholder box together with its animation and label.

    Shapes that are already gone are skipped.
    """
    box = canvas.get_shape(shape_id)
    if box is None:
        print(f"[INFO] Placeholder shape not found: {shape_id}")
        return

    for key in (VIDEO_META_KEY, TEXT_META_KEY):
        child_id = box.meta.get(key)
        if child_id and canvas.get_shape(child_id) is not None:
            canvas.delete_shape(child_id)

    canvas.delete_shape(shape_id)
