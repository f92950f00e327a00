"""
Media Module - Asset Payload Helpers
====================================
Converts between raw bytes, base64 strings and data URLs, downloads
generated assets and measures image/video dimensions.
"""

import base64
import io
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse, unquote

import cv2
import requests
from PIL import Image


DATA_URL_PATTERN = re.compile(r'^data:([^;,]+)?(;base64)?,(.*)$', re.DOTALL)
IMAGE_DATA_URL_PATTERN = re.compile(r'^data:image/[^;]+;base64,(.+)$', re.DOTALL)

FETCH_TIMEOUT = 60


def encode_data_url(data: bytes, mime_type: str = "image/png") -> str:
    """Encode raw bytes as a base64 data URL."""
    payload = base64.b64encode(data).decode('utf-8')
    return f"data:{mime_type};base64,{payload}"


def decode_data_url(url: str) -> Tuple[str, bytes]:
    """
    Decode a data URL.

    Args:
        url: data:<mime>;base64,<payload>

    Returns:
        (mime_type, raw bytes)
    """
    match = DATA_URL_PATTERN.match(url)
    if not match:
        raise ValueError("Not a data URL")

    mime_type = match.group(1) or "text/plain"
    if match.group(2):
        data = base64.b64decode(match.group(3))
    else:
        data = unquote(match.group(3)).encode('utf-8')
    return mime_type, data


def strip_image_data_url(src: str) -> str:
    """
    Return the base64 payload of an image data URL.

    Sources that are not in the data:image/...;base64 form are returned
    unchanged and left for the API to interpret.
    """
    match = IMAGE_DATA_URL_PATTERN.match(src)
    if match:
        return match.group(1)
    return src


def ensure_image_data_url(image_base64: str, mime_type: str = "image/png") -> str:
    """Prefix bare base64 with a data URL header."""
    if image_base64.startswith('data:'):
        return image_base64
    return f"data:{mime_type};base64,{image_base64}"


def fetch_bytes(url: str, timeout: float = FETCH_TIMEOUT) -> Tuple[bytes, Optional[str]]:
    """
    Fetch the content behind a URL.

    data: URLs are decoded locally, file:// URLs read from disk and
    http(s) URLs downloaded.

    Returns:
        (content, mime type or None)
    """
    if url.startswith('data:'):
        mime_type, data = decode_data_url(url)
        return data, mime_type

    if url.startswith('file://'):
        path = Path(unquote(urlparse(url).path))
        return path.read_bytes(), None

    if url.startswith('http://') or url.startswith('https://'):
        response = requests.get(url, timeout=timeout)
        if response.status_code != 200:
            raise RuntimeError(f"Failed to fetch {url[:50]}: {response.status_code} {response.reason}")
        content_type = response.headers.get('Content-Type')
        mime_type = content_type.split(';')[0].strip() if content_type else None
        return response.content, mime_type

    raise ValueError(f"Unsupported URL scheme: {url[:50]}...")


def image_size(data: bytes) -> Tuple[int, int]:
    """Return (width, height) of an encoded image."""
    with Image.open(io.BytesIO(data)) as img:
        return img.size


def image_mime_type(data: bytes) -> str:
    """Guess the MIME type of an encoded image."""
    with Image.open(io.BytesIO(data)) as img:
        return Image.MIME.get(img.format, 'image/jpeg')


def video_size(data: bytes) -> Tuple[int, int]:
    """
    Return (width, height) of an encoded video.

    OpenCV only reads videos from files, so the payload is written to
    a temporary file first.
    """
    fd, path = tempfile.mkstemp(suffix='.mp4')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        cap = cv2.VideoCapture(path)
        try:
            if not cap.isOpened():
                raise RuntimeError("Could not decode video")
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        finally:
            cap.release()
    finally:
        os.remove(path)

    if width <= 0 or height <= 0:
        raise RuntimeError("Video has no frames")
    return width, height


def video_first_frame(data: bytes):
    """Decode the first frame of a video as a BGR array, or None."""
    fd, path = tempfile.mkstemp(suffix='.mp4')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        cap = cv2.VideoCapture(path)
        try:
            ok, frame = cap.read()
        finally:
            cap.release()
    finally:
        os.remove(path)
    return frame if ok else None
