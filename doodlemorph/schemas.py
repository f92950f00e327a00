"""
Request and response bodies for the generation API.

Field names follow the JSON the canvas client sends (camelCase).
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class GenerateImageRequest(BaseModel):
    imageBase64: Optional[str] = None
    prompt: Optional[str] = None
    apiKey: Optional[str] = None


class VariantPrompt(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=500)


class GenerateVariantsRequest(BaseModel):
    imageBase64: str = Field(..., min_length=1)
    variants: List[VariantPrompt] = Field(..., min_length=1, max_length=6)
    apiKey: Optional[str] = None


class GeneratedVariant(BaseModel):
    imageUrl: str
    prompt: str


class GenerateAnimationRequest(BaseModel):
    imageUrl: Optional[str] = None
    imageUrls: Optional[List[str]] = None
    prompt: Optional[str] = None
    duration: Union[str, int] = '5'
    aspectRatio: str = '16:9'
    fps: int = 8
    apiKey: Optional[str] = None
    falApiKey: Optional[str] = None


class EnhancePromptRequest(BaseModel):
    # Any JSON value; type is checked by the handler
    userPrompt: Any = None


class HealthResponse(BaseModel):
    success: bool = True
    status: str
    backend: str
    falConfigured: bool
    groqConfigured: bool
    googleConfigured: bool
