"""Thin async wrapper around the Gemini API."""

from __future__ import annotations

import logging

from google import genai
from google.genai import types

from drc.services.http import UpstreamError

logger = logging.getLogger(__name__)

LOCATION_PROMPT = (
    "Extract only the location name from the following disaster description. "
    "Respond with just the location name, no commentary or extra words.\n\n"
    "Example:\nInput: Heavy flooding in Manhattan, NYC\nOutput: Manhattan, NYC\n\n"
    "Input: {description}\nOutput:"
)
IMAGE_PROMPT = (
    "Analyze this image for disaster authenticity and manipulation. "
    "Respond with a short summary and confidence level."
)


class GeminiClient:
    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._api_key:
            raise UpstreamError("Missing Gemini API key")
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def extract_location(self, description: str) -> str | None:
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self._model,
                contents=LOCATION_PROMPT.format(description=description),
                config=types.GenerateContentConfig(temperature=0),
            )
        except Exception as exc:
            raise UpstreamError(f"Gemini location extraction failed: {exc}") from exc
        text = (response.text or "").strip()
        return text or None

    async def describe_image(self, image_bytes: bytes, mime_type: str) -> str | None:
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self._model,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    IMAGE_PROMPT,
                ],
            )
        except Exception as exc:
            raise UpstreamError(f"Gemini image verification failed: {exc}") from exc
        return response.text or None
