"""
Config Module - Environment Driven Settings
============================================
Collects API keys, model identifiers and server options from the
environment. Values are usually provided through a .env file loaded
at start-up.
"""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, fields
from enum import Enum

from dotenv import load_dotenv


class GeneratorBackend(Enum):
    """Available generation backends."""
    FAL = "fal"                        # fal.ai queue API (recommended)
    HUGGINGFACE_FAL = "huggingface"    # Hugging Face Inference with fal.ai provider
    MOCK = "mock"                      # Local OpenCV stylization, no network

    @classmethod
    def from_name(cls, name: str) -> "GeneratorBackend":
        """Look up a backend by its value, case-insensitively."""
        for backend in cls:
            if backend.value == name.strip().lower():
                return backend
        raise ValueError(f"Unknown generator backend: {name}")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Runtime settings for the API server and the drawing app.

    Attributes:
        fal_api_key: Server-side fal.ai key, used when a request carries none
        groq_api_key: Groq key for prompt enhancement
        google_api_key: Google Generative AI key for random prompts
        hf_token: Hugging Face token for the huggingface backend
        backend: Which image/video backend to use
        host: API bind address
        port: API port
        api_url: Base URL the drawing app talks to
        assets_dir: Directory holding loading animation videos
    """
    fal_api_key: str = ""
    groq_api_key: str = ""
    google_api_key: str = ""
    hf_token: str = ""
    backend: GeneratorBackend = GeneratorBackend.FAL

    # Models
    image_model: str = "fal-ai/flux/dev"
    variant_model: str = "fal-ai/gemini-25-flash-image/edit"
    video_model: str = "fal-ai/kling-video/v1/standard/image-to-video"
    hf_image_model: str = "black-forest-labs/FLUX.1-Kontext-dev"
    enhance_model: str = "openai/gpt-oss-20b"
    random_prompt_model: str = "gemini-2.5-flash"
    groq_base_url: str = "https://api.groq.com/openai/v1"

    # Server / client
    host: str = "127.0.0.1"
    port: int = 8000
    api_url: str = "http://127.0.0.1:8000"
    request_timeout: float = 300.0
    assets_dir: Path = field(default_factory=lambda: Path(__file__).parent / "assets")
    output_dir: Path = field(default_factory=lambda: Path("output"))

    @property
    def use_mock(self) -> bool:
        return self.backend == GeneratorBackend.MOCK

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        settings = cls(
            fal_api_key=os.environ.get('FAL_API_KEY', '') or os.environ.get('FAL_KEY', ''),
            groq_api_key=os.environ.get('GROQ_API_KEY', ''),
            google_api_key=os.environ.get('GOOGLE_GENERATIVE_AI_API_KEY', ''),
            hf_token=os.environ.get('HF_TOKEN', '') or os.environ.get('HF_API_KEY', ''),
        )

        backend = os.environ.get('DOODLEMORPH_BACKEND')
        if backend:
            settings.backend = GeneratorBackend.from_name(backend)
        if _env_flag('DOODLEMORPH_MOCK'):
            settings.backend = GeneratorBackend.MOCK

        # Model overrides, e.g. DOODLEMORPH_IMAGE_MODEL
        for f in fields(cls):
            if f.name.endswith('_model'):
                override = os.environ.get(f"DOODLEMORPH_{f.name.upper()}")
                if override:
                    setattr(settings, f.name, override)

        settings.host = os.environ.get('DOODLEMORPH_HOST', settings.host)
        settings.port = int(os.environ.get('DOODLEMORPH_PORT', settings.port))
        settings.api_url = os.environ.get(
            'DOODLEMORPH_API_URL', f"http://{settings.host}:{settings.port}"
        )
        settings.request_timeout = float(
            os.environ.get('DOODLEMORPH_TIMEOUT', settings.request_timeout)
        )
        if os.environ.get('DOODLEMORPH_ASSETS_DIR'):
            settings.assets_dir = Path(os.environ['DOODLEMORPH_ASSETS_DIR'])
        if os.environ.get('DOODLEMORPH_OUTPUT_DIR'):
            settings.output_dir = Path(os.environ['DOODLEMORPH_OUTPUT_DIR'])

        return settings


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load a .env file (if present) and build settings from the environment.

    Args:
        env_file: Explicit .env path. Defaults to the project root .env

    Returns:
        Settings instance
    """
    if env_file is None:
        env_file = Path(__file__).resolve().parent.parent / ".env"
    load_dotenv(env_file)
    return Settings.from_env()
