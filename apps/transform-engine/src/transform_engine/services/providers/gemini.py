"""Image generation via Gemini on Vertex AI."""

import asyncio
import logging
from typing import Dict, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from transform_engine.core.config import settings
from transform_engine.core.errors import AIModelError, SafetyFilteredError
from transform_engine.services.providers.base import (
    GeneratedImageData,
    ImageGenerationRequest,
    LabeledImage,
)

logger = logging.getLogger(__name__)

# Models only served from the global endpoint
GLOBAL_ONLY_MODELS = {"gemini-3-pro-image-preview"}

SAFETY_FINISH_REASONS = {
    "SAFETY",
    "PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
    "IMAGE_SAFETY",
    "IMAGE_PROHIBITED_CONTENT",
}


def _reason_name(reason) -> Optional[str]:
    if reason is None:
        return None
    return getattr(reason, "name", None) or str(reason)


class GeminiImageProvider:
    """Single-call image generation returning JPEG bytes."""

    def __init__(self, project: Optional[str] = None, location: Optional[str] = None):
        self.project = project or settings.GOOGLE_CLOUD_PROJECT
        if not self.project:
            raise RuntimeError("GOOGLE_CLOUD_PROJECT is required for Gemini image generation")
        self.location = location or settings.VERTEX_AI_LOCATION
        self._clients: Dict[str, genai.Client] = {}

    def _client_for(self, model: str) -> genai.Client:
        location = "global" if model in GLOBAL_ONLY_MODELS else self.location
        if location not in self._clients:
            self._clients[location] = genai.Client(vertexai=True, project=self.project, location=location)
        return self._clients[location]

    async def _image_part(self, image: LabeledImage) -> List[types.Part]:
        data = await asyncio.to_thread(image.path.read_bytes)
        return [
            types.Part.from_text(text=f"Image Reference ID: <{image.label}>"),
            types.Part.from_bytes(data=data, mime_type=image.mime_type),
        ]

    async def generate(self, request: ImageGenerationRequest) -> GeneratedImageData:
        parts: List[types.Part] = []
        if request.source_image:
            parts.extend(await self._image_part(request.source_image))
        for ref in request.reference_images:
            parts.extend(await self._image_part(ref))
        parts.append(types.Part.from_text(text=request.prompt))

        config = types.GenerateContentConfig(
            max_output_tokens=32768,
            temperature=1,
            top_p=0.95,
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=request.aspect_ratio),
        )

        logger.info(
            "Calling Gemini %s (aspect %s, %d reference images)",
            request.model, request.aspect_ratio, len(request.reference_images),
        )

        try:
            response = await self._client_for(request.model).aio.models.generate_content(
                model=request.model,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            )
        except genai_errors.APIError as e:
            logger.error("Gemini API error %s: %s", getattr(e, "code", None), e)
            raise AIModelError(f"Image generation failed: {e}", step="generate-image") from e

        return self._extract_image(response)

    @staticmethod
    def _extract_image(response: types.GenerateContentResponse) -> GeneratedImageData:
        feedback = response.prompt_feedback
        if feedback is not None and feedback.block_reason is not None:
            raise SafetyFilteredError(
                f"Prompt blocked: {_reason_name(feedback.block_reason)}", step="generate-image"
            )

        if not response.candidates:
            raise SafetyFilteredError("No candidates in image response", step="generate-image")

        candidate = response.candidates[0]
        for part in (candidate.content.parts if candidate.content and candidate.content.parts else []):
            if part.inline_data is not None and part.inline_data.data:
                return GeneratedImageData(
                    data=part.inline_data.data,
                    mime_type=part.inline_data.mime_type or "image/jpeg",
                )

        reason = _reason_name(candidate.finish_reason)
        if reason in SAFETY_FINISH_REASONS:
            raise SafetyFilteredError(f"Image filtered: {reason}", step="generate-image")
        raise AIModelError(f"No image data in response (finish reason {reason})", step="generate-image")
