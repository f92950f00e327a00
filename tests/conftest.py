import io
import os
import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from doodlemorph.canvas import Asset, Canvas, ShapeType, create_asset_id
from doodlemorph.config import Settings
from doodlemorph.generation import GenerationResult, GenerationServices, MockPromptWriter
from doodlemorph.media import encode_data_url
from doodlemorph.server import create_app
from doodlemorph.tools import ApiClient


def make_png(width=200, height=100, color=(255, 0, 0)):
    img = Image.new('RGB', (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def make_png_data_url(width=200, height=100, color=(255, 0, 0)):
    return encode_data_url(make_png(width, height, color), 'image/png')


def make_mp4(width=64, height=48, frames=6):
    """Encoded mp4 bytes, or None when no encoder is available."""
    fd, path = tempfile.mkstemp(suffix='.mp4')
    os.close(fd)
    try:
        writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*'mp4v'), 6, (width, height))
        if not writer.isOpened():
            return None
        for i in range(frames):
            writer.write(np.full((height, width, 3), 20 * i, dtype=np.uint8))
        writer.release()
        data = Path(path).read_bytes()
        return data or None
    finally:
        os.remove(path)


class FakeGenerator:
    """Records calls and answers with canned results."""

    def __init__(self, settings, image_url=None, video_url=None, fail_on=None, error='boom'):
        self.settings = settings
        self.image_url = image_url or make_png_data_url()
        self.video_url = video_url
        self.fail_on = fail_on or {}
        self.error = error
        self.calls = []

    def _result(self, kind, url):
        self.calls.append(kind)
        count = sum(1 for c in self.calls if c[0] == kind[0])
        if self.fail_on.get(kind[0]) == count or self.fail_on.get(kind[0]) == 'always':
            return GenerationResult(False, None, self.error, 0.0)
        return GenerationResult(True, url, None, 0.1)

    def generate_image(self, image_url, prompt):
        return self._result(('image', image_url, prompt), self.image_url)

    def generate_variant(self, image_url, prompt):
        return self._result(('variant', image_url, prompt), self.image_url)

    def generate_video(self, image_url, prompt='', duration='5', aspect_ratio='16:9'):
        return self._result(('video', image_url, prompt, duration, aspect_ratio), self.video_url)


class FakePromptWriter(MockPromptWriter):

    def __init__(self, settings, enabled=True):
        super().__init__(settings)
        self.enabled = enabled

    def can_enhance(self):
        return self.enabled

    def can_suggest(self):
        return self.enabled

    def random_variant_prompt(self):
        return "  wearing a wizard hat  "


class FakeServices(GenerationServices):
    """Generation services that never leave the process."""

    def __init__(self, settings, generator=None, prompts_enabled=True):
        super().__init__(settings)
        self.prompt_writer = FakePromptWriter(settings, prompts_enabled)
        self.generator = generator or FakeGenerator(settings)
        self.keys = []

    def create_generator(self, api_key):
        self.keys.append(api_key)
        return self.generator


@pytest.fixture
def canvas():
    return Canvas()


@pytest.fixture
def png_data_url():
    return make_png_data_url()


@pytest.fixture
def settings():
    return Settings(fal_api_key='server-key', groq_api_key='groq', google_api_key='google')


@pytest.fixture
def services(settings):
    return FakeServices(settings)


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))


@pytest.fixture
def api(client):
    return ApiClient(session=client)


@pytest.fixture
def add_image():
    """Put an image shape backed by a data URL asset on a canvas."""

    def _add(canvas, src=None, x=0.0, y=0.0, w=100, h=100):
        asset_id = create_asset_id()
        canvas.create_assets([Asset(
            id=asset_id,
            type='image',
            name='character',
            src=src if src is not None else make_png_data_url(w, h),
            w=w,
            h=h,
            mime_type='image/png',
        )])
        shape_id = canvas.create_shape(
            ShapeType.IMAGE, x=x, y=y, props={'asset_id': asset_id, 'w': w, 'h': h}
        )
        return canvas.get_shape(shape_id)

    return _add


@pytest.fixture
def add_stroke():
    """Put a diagonal draw stroke on a canvas."""

    def _add(canvas, x=10.0, y=10.0, length=100):
        shape_id = canvas.create_shape(
            ShapeType.DRAW, x=x, y=y,
            props={'points': [(0, 0), (length / 2, length / 3), (length, length)], 'size': 4},
        )
        return canvas.get_shape(shape_id)

    return _add


@pytest.fixture
def mp4_bytes():
    data = make_mp4()
    if data is None:
        pytest.skip("No mp4 encoder available")
    return data
