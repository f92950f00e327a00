"""
Tools Module - Contextual Toolbar Workflows
===========================================
The actions offered for the current selection: morph a doodle into
character art, make variants or an animation of a character, and
enhance or suggest prompts.

Each action talks to the generation API, keeps a placeholder on the
canvas while waiting and returns a ToolResult describing the outcome
the way a toast would.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from doodlemorph.canvas import Bounds, Canvas, Shape
from doodlemorph.capture import capture_shapes_as_image, extract_image_from_shape
from doodlemorph.media import encode_data_url, image_mime_type
from doodlemorph.placeholder import create_placeholder_shape, delete_placeholder_shape
from doodlemorph.placement import (
    HORIZONTAL_OFFSET, VERTICAL_SPACING,
    place_image_on_canvas, place_variants_on_canvas, place_video_on_canvas
)
from doodlemorph.selection import SelectionKind, SelectionType, detect_selection_type


DEFAULT_STYLE_PROMPT = 'high quality character art'
DEFAULT_MOTION_PROMPT = 'smooth animation sequence, character movement, consistent style, natural motion'
MAX_VARIANTS = 6
MAX_STYLE_PROMPT_LENGTH = 200
MAX_VARIANT_PROMPT_LENGTH = 100

# Errors a workflow reports instead of raising
TOOL_ERRORS = (ValueError, RuntimeError, OSError, KeyError)


class StylePresets:
    """One-click style prompts for the doodle tool."""

    PRESETS = {
        'cartoon': {'emoji': '🎨', 'label': 'Cartoon', 'prompt': 'cartoon character, vibrant colors'},
        'pixel_art': {'emoji': '🎮', 'label': 'Pixel Art', 'prompt': 'pixel art sprite, retro game style'},
        '3d_render': {'emoji': '🌟', 'label': '3D Render', 'prompt': '3D rendered character, Pixar style'},
        'sticker': {'emoji': '🖼️', 'label': 'Sticker', 'prompt': 'die-cut sticker, white border'},
    }

    @classmethod
    def get_preset(cls, name: str) -> dict:
        """Get a style preset by name."""
        return cls.PRESETS.get(name, cls.PRESETS['cartoon'])

    @classmethod
    def get_all_names(cls) -> list:
        """Get all preset names."""
        return list(cls.PRESETS.keys())


@dataclass
class ToolResult:
    """
    Outcome of a toolbar action.

    Attributes:
        success: Whether the action completed
        title: Short headline
        description: Details (error message on failure)
        shape_ids: Shapes created on the canvas
        data: Extra values, e.g. an enhanced prompt
    """
    success: bool
    title: str
    description: str = ''
    shape_ids: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)


def _failure(title: str, description: str = '') -> ToolResult:
    return ToolResult(success=False, title=title, description=description)


def _hosted_image_url(canvas: Canvas, shape: Shape) -> str:
    """
    Source of an image shape in a form hosted models can read.

    http(s) and data: sources pass through; asset: and file:// sources
    are inlined as data URLs.
    """
    src = canvas.get_asset(shape.asset_id).src
    if src.startswith(('http://', 'https://', 'data:')):
        return src
    data = base64.b64decode(extract_image_from_shape(canvas, shape))
    return encode_data_url(data, image_mime_type(data))


class ApiClient:
    """
    JSON client for the generation API.

    Args:
        base_url: API root, e.g. http://127.0.0.1:8000
        api_key: User's own fal.ai key, sent with generation requests
        session: Object with a requests-style post(); defaults to a Session
        timeout: Seconds to wait for a response
    """

    def __init__(
        self,
        base_url: str = '',
        api_key: Optional[str] = None,
        session=None,
        timeout: float = 300.0
    ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key or None
        self.session = session or requests.Session()
        self.timeout = timeout

    def post(self, path: str, payload: Optional[dict] = None) -> dict:
        """POST JSON and return the decoded body, whatever the status."""
        response = self.session.post(
            f"{self.base_url}{path}", json=payload or {}, timeout=self.timeout
        )
        try:
            return response.json()
        except ValueError as e:
            raise RuntimeError(f"Invalid response from API ({response.status_code})") from e

    def with_key(self, payload: dict) -> dict:
        if self.api_key:
            payload['apiKey'] = self.api_key
        return payload


class BaseTool:
    """Shared plumbing for toolbar tools."""

    def __init__(
        self,
        canvas: Canvas,
        api: ApiClient,
        on_progress: Optional[Callable[[str], None]] = None
    ):
        self.canvas = canvas
        self.api = api
        self._on_progress = on_progress
        self._is_generating = False

    def is_generating(self) -> bool:
        return self._is_generating

    def _progress(self, message: str):
        if message:
            print(f"[INFO] {message}")
        if self._on_progress:
            self._on_progress(message)


class DoodleToImageTool(BaseTool):
    """Turns selected drawing shapes into character art."""

    def generate(self, shapes: List[Shape], style_prompt: str = '') -> ToolResult:
        """
        Morph a doodle.

        A placeholder appears to the right of the drawing, the drawing is
        captured and sent to the image endpoint, and the result replaces
        the placeholder. Any failure removes the placeholder.
        """
        prompt = style_prompt.strip()[:MAX_STYLE_PROMPT_LENGTH] or DEFAULT_STYLE_PROMPT
        placeholder_id: Optional[str] = None
        self._is_generating = True
        try:
            self._progress('Capturing drawing...')

            bounds: Optional[Bounds] = self.canvas.get_shapes_page_bounds(shapes)
            if bounds is None:
                raise ValueError('Could not get bounds of selected shapes')

            placeholder_id = create_placeholder_shape(
                self.canvas,
                bounds.max_x + HORIZONTAL_OFFSET,
                bounds.mid_y - bounds.height / 2,
                bounds.width,
                bounds.height,
            )

            image_base64 = capture_shapes_as_image(self.canvas, shapes)

            self._progress('Generating styled image...')
            result = self.api.post('/api/generate-image', self.api.with_key({
                'imageBase64': image_base64,
                'prompt': prompt,
            }))

            if not result.get('success') or result.get('error'):
                delete_placeholder_shape(self.canvas, placeholder_id)
                return _failure('Generation failed', result.get('error') or 'Unknown error')

            self._progress('Placing on canvas...')
            shape_id = place_image_on_canvas(
                self.canvas,
                result['imageUrl'],
                shapes[0],
                prompt=prompt,
                placeholder_id=placeholder_id,
                override_bounds=bounds,
            )
            return ToolResult(success=True, title='Image generated!', shape_ids=[shape_id])

        except TOOL_ERRORS as e:
            print(f"[ERROR] Generating image failed: {e}")
            if placeholder_id:
                delete_placeholder_shape(self.canvas, placeholder_id)
            return _failure('Something went wrong', str(e)[:100])
        finally:
            self._is_generating = False
            self._progress('')

    def enhance_prompt(self, prompt: str) -> ToolResult:
        """Ask the API to tighten a style prompt."""
        if not prompt.strip():
            return _failure('No prompt to enhance', 'Please enter a prompt first')

        try:
            result = self.api.post('/api/enhance-prompt', {'userPrompt': prompt})
        except TOOL_ERRORS as e:
            print(f"[ERROR] Enhancing prompt failed: {e}")
            return _failure('Something went wrong', 'Failed to enhance prompt')

        if result.get('success') and result.get('enhancedPrompt'):
            return ToolResult(
                success=True,
                title='Prompt enhanced!',
                description='Your prompt has been improved',
                data={'prompt': result['enhancedPrompt']},
            )
        return _failure('Enhancement failed', result.get('error') or 'Could not enhance prompt')


class SingleImageTool(BaseTool):
    """Variants and animation for one selected image."""

    def generate_variants(self, shape: Shape, prompts: List[str]) -> ToolResult:
        """
        Generate variants of a character image.

        Blank prompts are dropped. Variants are stacked below the image.
        """
        valid = [p.strip()[:MAX_VARIANT_PROMPT_LENGTH] for p in prompts if p.strip()]
        if not valid:
            return _failure('No prompts provided', 'Please enter at least one variant prompt')
        if len(valid) > MAX_VARIANTS:
            return _failure(
                'Maximum variants reached',
                f'You can generate up to {MAX_VARIANTS} variants at once',
            )

        self._is_generating = True
        try:
            self._progress('Extracting image data...')
            image_base64 = extract_image_from_shape(self.canvas, shape)

            self._progress(f'Generating {len(valid)} variant(s)...')
            result = self.api.post('/api/generate-variants', self.api.with_key({
                'imageBase64': image_base64,
                'variants': [{'prompt': p} for p in valid],
            }))

            if not result.get('success') or result.get('error'):
                return _failure('Generation failed', result.get('error') or 'Unknown error')

            self._progress('Placing variants on canvas...')
            variants = result.get('variants') or []
            shape_ids = place_variants_on_canvas(
                self.canvas,
                [v['imageUrl'] for v in variants],
                shape,
                prompts=[v.get('prompt', '') for v in variants],
            )
            return ToolResult(
                success=True,
                title='Variants generated!',
                description=f'Successfully created {len(shape_ids)} variant(s)',
                shape_ids=shape_ids,
            )

        except TOOL_ERRORS as e:
            print(f"[ERROR] Generating variants failed: {e}")
            return _failure('Something went wrong', str(e)[:100])
        finally:
            self._is_generating = False
            self._progress('')

    def generate_animation(self, shape: Shape, prompt: str = DEFAULT_MOTION_PROMPT) -> ToolResult:
        """
        Animate a character image.

        The video replaces a placeholder placed below the image.
        """
        asset = self.canvas.get_asset(shape.asset_id)
        if not shape.asset_id or asset is None or asset.type != 'image':
            return _failure('No image found', 'Could not find image asset')
        if not asset.src:
            return _failure('No image found', 'Image has no source URL')

        placeholder_id: Optional[str] = None
        self._is_generating = True
        try:
            self._progress('Preparing image...')
            bounds = self.canvas.get_shape_page_bounds(shape)
            placeholder_id = create_placeholder_shape(
                self.canvas,
                bounds.min_x,
                bounds.max_y + VERTICAL_SPACING,
                bounds.width,
                bounds.height,
            )

            image_url = _hosted_image_url(self.canvas, shape)

            self._progress('Generating animation (this may take 1-2 minutes)...')
            result = self.api.post('/api/generate-animation', self.api.with_key({
                'imageUrl': image_url,
                'prompt': prompt or DEFAULT_MOTION_PROMPT,
                'duration': '5',
                'aspectRatio': '16:9',
            }))

            if not result.get('success') or result.get('error'):
                delete_placeholder_shape(self.canvas, placeholder_id)
                return _failure('Animation failed', result.get('error') or 'Unknown error')

            self._progress('Placing animation on canvas...')
            shape_id = place_video_on_canvas(
                self.canvas, result['videoUrl'], shape,
                prompt=prompt, placeholder_id=placeholder_id,
            )
            return ToolResult(
                success=True,
                title='Animation ready!',
                shape_ids=[shape_id],
                data={'videoUrl': result['videoUrl']},
            )

        except TOOL_ERRORS as e:
            print(f"[ERROR] Generating animation failed: {e}")
            if placeholder_id:
                delete_placeholder_shape(self.canvas, placeholder_id)
            return _failure('Something went wrong', str(e)[:100])
        finally:
            self._is_generating = False
            self._progress('')

    def suggest_variant_prompt(self) -> ToolResult:
        """Fetch a random variation idea."""
        try:
            result = self.api.post('/api/generate-random-prompt')
        except TOOL_ERRORS as e:
            print(f"[ERROR] Suggesting prompt failed: {e}")
            return _failure('Something went wrong', 'Failed to generate prompt')

        if result.get('success') and result.get('prompt'):
            return ToolResult(success=True, title='Prompt suggested', data={'prompt': result['prompt']})
        return _failure('Suggestion failed', result.get('error') or 'Could not generate prompt')


class ImageToAnimationTool(BaseTool):
    """Animation from several selected images."""

    def create_animation(self, shapes: List[Shape]) -> ToolResult:
        sources = []
        for shape in shapes:
            asset = self.canvas.get_asset(shape.asset_id)
            if asset is not None and asset.src:
                sources.append(shape)

        if len(sources) < 2:
            return _failure('Not enough images', 'Need at least 2 images to create animation')

        self._is_generating = True
        try:
            image_urls = [_hosted_image_url(self.canvas, shape) for shape in sources]

            self._progress('Creating animation (this may take 30-60 seconds)...')
            result = self.api.post('/api/generate-animation', self.api.with_key({
                'imageUrls': image_urls,
                'fps': 8,
            }))

            if not result.get('success') or result.get('error'):
                return _failure('Animation failed', result.get('error') or 'Unknown error')

            shape_id = place_video_on_canvas(self.canvas, result['videoUrl'], shapes[0])
            return ToolResult(
                success=True,
                title='Animation ready!',
                shape_ids=[shape_id],
                data={'videoUrl': result['videoUrl']},
            )

        except TOOL_ERRORS as e:
            print(f"[ERROR] Generating animation failed: {e}")
            return _failure('Something went wrong', str(e)[:100])
        finally:
            self._is_generating = False
            self._progress('')


class Toolbar:
    """Picks the tool that fits the current selection."""

    def __init__(
        self,
        canvas: Canvas,
        api: ApiClient,
        on_progress: Optional[Callable[[str], None]] = None
    ):
        self.canvas = canvas
        self.doodle_tool = DoodleToImageTool(canvas, api, on_progress)
        self.image_tool = SingleImageTool(canvas, api, on_progress)
        self.animation_tool = ImageToAnimationTool(canvas, api, on_progress)

    def selection(self) -> SelectionType:
        return detect_selection_type(self.canvas)

    def current(self) -> Optional[BaseTool]:
        """Tool for the current selection, or None."""
        kind = self.selection().kind
        if kind == SelectionKind.DRAWINGS:
            return self.doodle_tool
        if kind == SelectionKind.IMAGE:
            return self.image_tool
        if kind == SelectionKind.IMAGES:
            return self.animation_tool
        return None

    def is_generating(self) -> bool:
        return any(
            tool.is_generating()
            for tool in (self.doodle_tool, self.image_tool, self.animation_tool)
        )
