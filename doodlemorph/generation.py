"""
Generation Module - Hosted Image, Video and Text Generation
===========================================================
Thin clients for the hosted models DoodleMorph relies on.
Supports multiple backends: fal.ai queue API, Hugging Face Inference
with the fal.ai provider, and a local mock for offline work.

Models used:
- fal-ai/flux/dev: Doodle to character art
- fal-ai/gemini-25-flash-image/edit: Character variants
- fal-ai/kling-video/v1/standard/image-to-video: Animation
- openai/gpt-oss-20b on Groq: Prompt enhancement
- gemini-2.5-flash: Random variant prompts
"""

import io
import os
import random
import tempfile
import time
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import cv2
import fal_client
import numpy as np
from google import genai
from google.genai import types
from huggingface_hub import InferenceClient
from openai import OpenAI

from doodlemorph.config import GeneratorBackend, Settings
from doodlemorph.media import encode_data_url, fetch_bytes


IMAGE_PROMPT_PREFIX = "high-quality character art, clean lines, "
VARIANT_PROMPT_TEMPLATE = "Transform this character: {prompt}, high-quality character art, clean lines"
DEFAULT_ANIMATION_PROMPT = "smooth animation sequence, character movement, consistent style"

ENHANCE_PROMPT_TEMPLATE = """You are an expert at crafting concise image generation prompts. Transform the user's prompt into a short, focused phrase.

User's original prompt: "{user_prompt}"

Create an enhanced prompt using:
- Short, punchy phrases
- Consistent theme and style
- Maximum 30 words
- Focus on 1-2 key visual elements
- Use comma-separated descriptors

Return only the enhanced prompt, nothing else."""

RANDOM_PROMPT_INSTRUCTION = """Generate a short, creative image variation prompt (max 10 words) for modifying a character or object.
Examples: "wearing a wizard hat", "in cyberpunk style", "with rainbow colors", "doing a backflip", "as a superhero".
Just return the prompt text, nothing else."""


@dataclass
class GenerationResult:
    """Result of a generation call."""
    success: bool
    url: Optional[str]
    error: Optional[str]
    generation_time: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class ImageGenerator:
    """
    Image and video generator backed by hosted models.

    Each call returns a GenerationResult; provider errors are reported
    through it rather than raised.
    """

    def __init__(
        self,
        backend: GeneratorBackend = GeneratorBackend.FAL,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the generator.

        Args:
            backend: Which backend to use for generation
            api_key: fal.ai key (FAL) or Hugging Face token (HUGGINGFACE_FAL)
            settings: Model identifiers and timeouts
        """
        self.backend = backend
        self.settings = settings or Settings()
        self.api_key = api_key or ''

        self._on_progress: Optional[Callable[[str], None]] = None
        self._init_backend()

    def _init_backend(self):
        """Initialize the selected backend."""
        if self.backend == GeneratorBackend.FAL:
            self._client = fal_client.SyncClient(key=self.api_key)
            print("[INFO] Using fal.ai queue API")
        elif self.backend == GeneratorBackend.HUGGINGFACE_FAL:
            self._client = InferenceClient(
                provider="fal-ai",
                api_key=self.api_key,
            )
            print("[INFO] Using Hugging Face with fal.ai provider")
        else:
            self._client = None

    def set_on_progress(self, callback: Callable[[str], None]):
        """Set callback for queue progress messages."""
        self._on_progress = callback

    def _on_queue_update(self, update):
        if isinstance(update, fal_client.InProgress):
            for log in update.logs or []:
                message = log.get('message', '')
                print(f"[INFO] {message}")
                if self._on_progress:
                    self._on_progress(message)

    def _subscribe(self, application: str, arguments: dict) -> dict:
        """Submit a request to the fal.ai queue and wait for its result."""
        return self._client.subscribe(
            application,
            arguments=arguments,
            with_logs=True,
            on_queue_update=self._on_queue_update,
        )

    def _run(self, kind: str, call: Callable[[], str], metadata: Dict[str, Any]) -> GenerationResult:
        start_time = time.time()
        try:
            url = call()
            return GenerationResult(
                success=True,
                url=url,
                error=None,
                generation_time=time.time() - start_time,
                metadata={**metadata, 'backend': self.backend.name},
            )
        except Exception as e:
            print(f"[ERROR] {kind} generation failed: {e}")
            return GenerationResult(
                success=False,
                url=None,
                error=str(e) or f"Failed to generate {kind}",
                generation_time=time.time() - start_time,
                metadata=metadata,
            )

    def generate_image(self, image_url: str, prompt: str) -> GenerationResult:
        """
        Turn a captured doodle into character art.

        Args:
            image_url: Sketch as a data URL or public URL
            prompt: Style prompt

        Returns:
            GenerationResult with the image URL
        """
        final_prompt = IMAGE_PROMPT_PREFIX + prompt
        model = self.settings.image_model

        def call() -> str:
            if self.backend == GeneratorBackend.HUGGINGFACE_FAL:
                return self._hf_image_to_image(image_url, final_prompt)

            result = self._subscribe(model, {
                'prompt': final_prompt,
                'image_url': image_url,
                'num_inference_steps': 28,
                'guidance_scale': 3.5,
                'num_images': 1,
                'enable_safety_checker': False,
            })
            return _first_image_url(result)

        return self._run('image', call, {'prompt': final_prompt, 'model': model})

    def generate_variant(self, image_url: str, prompt: str) -> GenerationResult:
        """
        Edit a character image according to a variant prompt.

        Args:
            image_url: Source image as a data URL or public URL
            prompt: What to change

        Returns:
            GenerationResult with the edited image URL
        """
        final_prompt = VARIANT_PROMPT_TEMPLATE.format(prompt=prompt)
        model = self.settings.variant_model

        def call() -> str:
            if self.backend == GeneratorBackend.HUGGINGFACE_FAL:
                return self._hf_image_to_image(image_url, final_prompt)

            result = self._subscribe(model, {
                'prompt': final_prompt,
                'image_urls': [image_url],
                'num_images': 1,
                'output_format': 'jpeg',
            })
            return _first_image_url(result)

        return self._run('variant', call, {'prompt': final_prompt, 'model': model})

    def generate_video(
        self,
        image_url: str,
        prompt: str = DEFAULT_ANIMATION_PROMPT,
        duration: str = '5',
        aspect_ratio: str = '16:9'
    ) -> GenerationResult:
        """
        Animate a character image.

        Args:
            image_url: Image to animate
            prompt: Motion prompt
            duration: Clip length in seconds
            aspect_ratio: Output aspect ratio

        Returns:
            GenerationResult with the video URL
        """
        model = self.settings.video_model

        def call() -> str:
            if self.backend != GeneratorBackend.FAL:
                raise ValueError(f"Video generation is not supported by the {self.backend.name} backend")

            result = self._subscribe(model, {
                'prompt': prompt,
                'image_url': image_url,
                'duration': duration,
                'aspect_ratio': aspect_ratio,
            })
            video = result.get('video') or {}
            if not video.get('url'):
                raise RuntimeError(f"No video URL in response: {result}")
            return video['url']

        return self._run('video', call, {'prompt': prompt, 'model': model})

    def _hf_image_to_image(self, image_url: str, prompt: str) -> str:
        """Image-to-image through Hugging Face; returns a data URL."""
        image_bytes, _ = fetch_bytes(image_url)
        result_image = self._client.image_to_image(
            image=image_bytes,
            prompt=prompt,
            model=self.settings.hf_image_model,
        )

        buffer = io.BytesIO()
        result_image.convert('RGB').save(buffer, format='JPEG')
        return encode_data_url(buffer.getvalue(), 'image/jpeg')


class MockImageGenerator(ImageGenerator):
    """
    Mock generator for working without API access.
    Creates stylized versions of the input locally and returns them as
    data URLs.
    """

    COLORMAPS = [
        cv2.COLORMAP_VIRIDIS,
        cv2.COLORMAP_COOL,
        cv2.COLORMAP_OCEAN,
        cv2.COLORMAP_RAINBOW,
        cv2.COLORMAP_PLASMA,
    ]

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize mock generator."""
        super().__init__(GeneratorBackend.MOCK, api_key='', settings=settings)

    def _stylize(self, image_url: str, prompt: str) -> np.ndarray:
        data, _ = fetch_bytes(image_url)
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError("Could not decode input image")

        # Same prompt, same look
        colormap = self.COLORMAPS[zlib.crc32(prompt.encode('utf-8')) % len(self.COLORMAPS)]
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        colored = cv2.applyColorMap(gray, colormap)
        colored = cv2.bilateralFilter(colored, 9, 75, 75)
        return cv2.convertScaleAbs(colored, alpha=1.2, beta=10)

    def _encode(self, image: np.ndarray, ext: str = '.png') -> str:
        ok, encoded = cv2.imencode(ext, image)
        if not ok:
            raise RuntimeError("Image encoding failed")
        mime_type = 'image/png' if ext == '.png' else 'image/jpeg'
        return encode_data_url(encoded.tobytes(), mime_type)

    def generate_image(self, image_url: str, prompt: str) -> GenerationResult:
        final_prompt = IMAGE_PROMPT_PREFIX + prompt
        return self._run(
            'image',
            lambda: self._encode(self._stylize(image_url, final_prompt)),
            {'prompt': final_prompt, 'model': 'mock'},
        )

    def generate_variant(self, image_url: str, prompt: str) -> GenerationResult:
        final_prompt = VARIANT_PROMPT_TEMPLATE.format(prompt=prompt)
        return self._run(
            'variant',
            lambda: self._encode(self._stylize(image_url, final_prompt), '.jpg'),
            {'prompt': final_prompt, 'model': 'mock'},
        )

    def generate_video(
        self,
        image_url: str,
        prompt: str = DEFAULT_ANIMATION_PROMPT,
        duration: str = '5',
        aspect_ratio: str = '16:9'
    ) -> GenerationResult:
        def call() -> str:
            frame = self._stylize(image_url, prompt)
            return encode_data_url(_render_zoom_clip(frame, seconds=min(int(duration), 2)), 'video/mp4')

        return self._run('video', call, {'prompt': prompt, 'model': 'mock'})


def _first_image_url(result: dict) -> str:
    images = result.get('images') or []
    if not images or not images[0].get('url'):
        raise RuntimeError(f"No image URL in response: {result}")
    return images[0]['url']


def _render_zoom_clip(frame: np.ndarray, seconds: int = 2, fps: int = 12) -> bytes:
    """Slow zoom over a still frame, encoded as mp4."""
    h, w = frame.shape[:2]
    # Even dimensions keep encoders happy
    w, h = w - w % 2, h - h % 2
    frame = frame[:h, :w]

    fd, path = tempfile.mkstemp(suffix='.mp4')
    os.close(fd)
    try:
        writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*'mp4v'), fps, (w, h))
        if not writer.isOpened():
            raise RuntimeError("No mp4 encoder available")
        try:
            total = max(1, seconds * fps)
            for i in range(total):
                zoom = 1.0 + 0.15 * i / total
                matrix = cv2.getRotationMatrix2D((w / 2, h / 2), 0, zoom)
                writer.write(cv2.warpAffine(frame, matrix, (w, h), borderMode=cv2.BORDER_REFLECT))
        finally:
            writer.release()
        return Path(path).read_bytes()
    finally:
        os.remove(path)


class PromptWriter:
    """
    Writes and improves prompts with hosted text models.

    Prompt enhancement runs on Groq through its OpenAI-compatible
    endpoint; random variant ideas come from Gemini.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def can_enhance(self) -> bool:
        return bool(self.settings.groq_api_key)

    def can_suggest(self) -> bool:
        return bool(self.settings.google_api_key)

    def enhance(self, user_prompt: str) -> str:
        """Rewrite a prompt into a short comma-separated phrase."""
        client = OpenAI(
            api_key=self.settings.groq_api_key,
            base_url=self.settings.groq_base_url,
        )
        completion = client.chat.completions.create(
            model=self.settings.enhance_model,
            messages=[{
                'role': 'user',
                'content': ENHANCE_PROMPT_TEMPLATE.format(user_prompt=user_prompt),
            }],
            temperature=0.7,
        )
        return (completion.choices[0].message.content or '').strip()

    def random_variant_prompt(self) -> str:
        """Invent a short variation prompt."""
        client = genai.Client(api_key=self.settings.google_api_key)
        response = client.models.generate_content(
            model=self.settings.random_prompt_model,
            contents=RANDOM_PROMPT_INSTRUCTION,
            config=types.GenerateContentConfig(temperature=1),
        )
        return (response.text or '').strip()


class MockPromptWriter(PromptWriter):
    """Offline prompt writer with canned suggestions."""

    SUGGESTIONS = [
        "wearing a wizard hat",
        "in cyberpunk style",
        "with rainbow colors",
        "doing a backflip",
        "as a superhero",
    ]

    def can_enhance(self) -> bool:
        return True

    def can_suggest(self) -> bool:
        return True

    def enhance(self, user_prompt: str) -> str:
        words = f"{user_prompt.strip()}, clean lines, vibrant colors".split()
        return ' '.join(words[:30])

    def random_variant_prompt(self) -> str:
        return random.choice(self.SUGGESTIONS)


class GenerationServices:
    """Factory for the generators and prompt writer used by the API."""

    def __init__(self, settings: Settings):
        self.settings = settings
        if settings.use_mock:
            self.prompt_writer = MockPromptWriter(settings)
        else:
            self.prompt_writer = PromptWriter(settings)

    def resolve_api_key(self, request_key: Optional[str] = None) -> str:
        """
        Pick the key for a generation call.

        A key sent with the request wins over the server's own key.
        The huggingface backend always uses the server token.
        """
        if self.settings.use_mock:
            return 'mock'
        if self.settings.backend == GeneratorBackend.HUGGINGFACE_FAL:
            return self.settings.hf_token
        return request_key or self.settings.fal_api_key

    def create_generator(self, api_key: str) -> ImageGenerator:
        return create_generator(self.settings, api_key)


def create_generator(settings: Settings, api_key: Optional[str] = None) -> ImageGenerator:
    """
    Factory function to create an image generator.

    Args:
        settings: Runtime settings; settings.backend picks the backend
        api_key: Key for the hosted backend

    Returns:
        ImageGenerator instance

    Environment Variables:
        FAL_API_KEY: fal.ai key used when requests carry none
        HF_TOKEN: Hugging Face token for the huggingface backend
    """
    if settings.use_mock:
        return MockImageGenerator(settings)

    key = api_key or (
        settings.hf_token if settings.backend == GeneratorBackend.HUGGINGFACE_FAL
        else settings.fal_api_key
    )
    if not key:
        raise ValueError("API key is required")

    return ImageGenerator(backend=settings.backend, api_key=key, settings=settings)
