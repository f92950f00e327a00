"""
Server Module - Generation API
==============================
Stateless FastAPI endpoints that validate a request, attach a provider
API key, call the hosted model and relay the result URL.

Every response is JSON with a boolean "success" and, on failure, an
"error" message.
"""

from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doodlemorph import __version__
from doodlemorph.config import Settings, load_settings
from doodlemorph.generation import DEFAULT_ANIMATION_PROMPT, GenerationServices
from doodlemorph.media import ensure_image_data_url
from doodlemorph.schemas import (
    EnhancePromptRequest, GenerateAnimationRequest, GenerateImageRequest,
    GenerateVariantsRequest, GeneratedVariant, HealthResponse
)


router = APIRouter(prefix="/api")

SUPPORTED_ASPECT_RATIOS = ('16:9', '9:16', '1:1')


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    """Build a {success: false, error} response."""
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'error': message, **extra},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    print(f"[WARNING] Validation error on {request.url.path}: {exc.errors()}")
    return error_response(400, 'Invalid input', details=jsonable_encoder(exc.errors()))


def get_services(request: Request) -> GenerationServices:
    return request.app.state.services


@router.get("/health", response_model=HealthResponse)
def health(services: GenerationServices = Depends(get_services)):
    settings = services.settings
    return HealthResponse(
        success=True,
        status='ok',
        backend=settings.backend.value,
        falConfigured=bool(settings.fal_api_key) or settings.use_mock,
        groqConfigured=services.prompt_writer.can_enhance(),
        googleConfigured=services.prompt_writer.can_suggest(),
    )


@router.post("/generate-image")
def generate_image(body: GenerateImageRequest, services: GenerationServices = Depends(get_services)):
    """Doodle to character art."""
    if not body.imageBase64 or not body.prompt:
        return error_response(400, 'Missing imageBase64 or prompt')

    api_key = services.resolve_api_key(body.apiKey)
    if not api_key:
        return error_response(400, 'API key is required')

    generator = services.create_generator(api_key)
    result = generator.generate_image(ensure_image_data_url(body.imageBase64), body.prompt)

    if not result.success:
        return error_response(500, result.error or 'Failed to generate image')

    print(f"[INFO] Image generated in {result.generation_time:.1f}s")
    return {'success': True, 'imageUrl': result.url}


@router.post("/generate-variants")
def generate_variants(body: GenerateVariantsRequest, services: GenerationServices = Depends(get_services)):
    """Edit one character image into several variants, one after another."""
    api_key = services.resolve_api_key(body.apiKey)
    if not api_key:
        return error_response(500, 'FAL API key is not configured on the server')

    generator = services.create_generator(api_key)
    data_uri = ensure_image_data_url(body.imageBase64)

    generated = []
    for i, variant in enumerate(body.variants):
        print(f"[INFO] Generating variant {i + 1}/{len(body.variants)}: {variant.prompt}")
        result = generator.generate_variant(data_uri, variant.prompt)

        if not result.success:
            return error_response(
                500, f"Variant {i + 1} failed: {result.error or 'Failed to generate variants'}"
            )

        generated.append(GeneratedVariant(imageUrl=result.url, prompt=variant.prompt))

    print(f"[INFO] variants_generated count={len(generated)} model={generator.settings.variant_model}")
    return {'success': True, 'variants': [v.model_dump() for v in generated]}


@router.post("/generate-animation")
def generate_animation(body: GenerateAnimationRequest, services: GenerationServices = Depends(get_services)):
    """Image to video; with several images the first one is animated."""
    if body.imageUrl:
        image_url = body.imageUrl
    elif body.imageUrls is not None and len(body.imageUrls) >= 2:
        image_url = body.imageUrls[0]
    elif body.imageUrls is not None:
        return error_response(400, 'Need at least 2 image URLs')
    else:
        return error_response(400, 'Image URL is required')

    api_key = services.resolve_api_key(body.apiKey or body.falApiKey)
    if not api_key:
        return error_response(400, 'API key is required')

    aspect_ratio = body.aspectRatio if body.aspectRatio in SUPPORTED_ASPECT_RATIOS else '16:9'

    generator = services.create_generator(api_key)
    result = generator.generate_video(
        image_url,
        prompt=body.prompt or DEFAULT_ANIMATION_PROMPT,
        duration=str(body.duration),
        aspect_ratio=aspect_ratio,
    )

    if not result.success:
        return error_response(500, result.error or 'Failed to generate animation')

    print(f"[INFO] Animation generated in {result.generation_time:.1f}s")
    return {'success': True, 'videoUrl': result.url}


@router.post("/enhance-prompt")
def enhance_prompt(body: EnhancePromptRequest, services: GenerationServices = Depends(get_services)):
    writer = services.prompt_writer
    if not writer.can_enhance():
        return error_response(500, 'GROQ API key is not configured on the server')

    if not body.userPrompt or not isinstance(body.userPrompt, str):
        return error_response(400, 'User prompt is required')

    try:
        enhanced = writer.enhance(body.userPrompt)
    except Exception as e:
        print(f"[ERROR] Enhancing prompt failed: {e}")
        return error_response(500, str(e) or 'Failed to enhance prompt')

    return {
        'success': True,
        'enhancedPrompt': enhanced.strip(),
        'originalPrompt': body.userPrompt,
    }


@router.post("/generate-random-prompt")
def generate_random_prompt(services: GenerationServices = Depends(get_services)):
    writer = services.prompt_writer
    if not writer.can_suggest():
        return error_response(500, 'Google API key is not configured on the server')

    try:
        prompt = writer.random_variant_prompt()
    except Exception as e:
        print(f"[ERROR] Generating random prompt failed: {e}")
        return error_response(500, str(e) or 'Failed to generate prompt')

    return {'success': True, 'prompt': prompt.strip()}


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[GenerationServices] = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Runtime settings (loaded from the environment when omitted)
        services: Generator factory; tests pass fakes here

    Returns:
        FastAPI app
    """
    settings = settings or (services.settings if services else load_settings())

    app = FastAPI(title="DoodleMorph API", version=__version__)
    app.state.settings = settings
    app.state.services = services or GenerationServices(settings)

    # Local canvas clients on any port
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^http://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)

    return app


def run(settings: Settings):
    """Serve the API with uvicorn."""
    print(f"[INFO] DoodleMorph API on http://{settings.host}:{settings.port} (backend: {settings.backend.value})")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
