"""
AI service package for resume extraction.

This package provides:
- mode: choosing text-only, image-only or hybrid extraction and the model tier
- extraction: prompt construction and parsing of the model's JSON answer

The AIService class owns the OpenAI client and exposes a single
`complete(model, messages)` capability that the extraction module drives.
"""

import json
import logging
from typing import Any

import httpx
import openai

from ...config import get_settings
from ..exceptions import InferenceEmpty, InferenceUnavailable
from .extraction import (
    EXTRACTION_SYSTEM_PROMPT,
    build_extraction_messages,
    invoke_extraction,
    parse_extraction_response,
)
from .mode import ExtractionMode, ModeDecision, ModelTier, select_mode

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "EXTRACTION_SYSTEM_PROMPT",
    "ExtractionMode",
    "ModeDecision",
    "ModelTier",
    "build_extraction_messages",
    "get_ai_service",
    "invoke_extraction",
    "parse_extraction_response",
    "select_mode",
]


MOCK_RESUME: dict[str, Any] = {
    "profile": {
        "name": "Jane",
        "surname": "Doe",
        "email": "jane.doe@example.com",
        "headline": "Senior Software Engineer",
        "professionalSummary": "MOCK resume returned in development mode.",
        "linkedIn": "https://www.linkedin.com/in/janedoe",
        "website": None,
        "country": "United States",
        "city": "Austin",
        "relocation": False,
        "remote": True,
    },
    "workExperiences": [
        {
            "jobTitle": "Senior Software Engineer",
            "company": "Example Corp",
            "employmentType": "FULL_TIME",
            "locationType": "HYBRID",
            "location": "Austin, TX",
            "description": "Builds document processing services.",
            "startMonth": 3,
            "startYear": 2021,
            "endMonth": None,
            "endYear": None,
            "current": True,
        }
    ],
    "educations": [
        {
            "school": "State University",
            "degree": "BACHELOR",
            "major": "Computer Science",
            "description": "",
            "startMonth": 9,
            "startYear": 2013,
            "endMonth": 6,
            "endYear": 2017,
            "current": False,
        }
    ],
    "skills": [{"name": "Python"}, {"name": "SQL"}],
    "licenses": [],
    "languages": [{"language": "English", "level": "NATIVE"}],
    "achievements": [],
    "publications": [],
    "honors": [],
}


class AIService:
    """
    Service for AI-powered resume extraction.

    Wraps the OpenAI Chat Completions API in JSON object mode. Mock mode is
    opt-in (USE_MOCK_AI) and answers every call with a canned resume. Without
    an API key and without mock mode every call is InferenceUnavailable.
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        use_mock: bool | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. If None, reads from config/environment.
            timeout_seconds: Per-request timeout for the OpenAI client.
            use_mock: If True, return mock data instead of calling OpenAI.
                If None, reads `use_mock_ai` from config.
        """
        settings = get_settings()
        if api_key is None:
            api_key = settings.openai_api_key
        if timeout_seconds is None:
            timeout_seconds = settings.openai_timeout_seconds
        if use_mock is None:
            use_mock = settings.use_mock_ai

        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.use_mock = bool(use_mock)
        self._client: openai.AsyncOpenAI | None = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Unset USE_MOCK_AI for real extraction."
            )
        elif not self.api_key:
            logger.warning(
                "OPENAI_API_KEY is not set. Extraction requests will fail as unavailable."
            )

    @property
    def client(self) -> openai.AsyncOpenAI:
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise InferenceUnavailable(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout_seconds,
            )
        return self._client

    async def complete(self, model: str, messages: list[dict[str, Any]]) -> str:
        """
        Run one chat completion in JSON object mode.

        Returns:
            The raw message content.

        Raises:
            InferenceUnavailable: On transport or API errors.
            InferenceEmpty: If the response carries no content.
        """
        if self.use_mock:
            logger.info("Returning mock resume for model %s", model)
            return json.dumps(MOCK_RESUME)

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as e:
            logger.error("OpenAI network error: %s", e)
            raise InferenceUnavailable(f"OpenAI network error: {e}") from e
        except openai.APIError as e:
            logger.error("OpenAI API error: %s", e)
            raise InferenceUnavailable(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise InferenceEmpty("OpenAI returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise InferenceEmpty("OpenAI returned empty response")
        return content

    def model_for(self, tier: ModelTier) -> str:
        """Configured model name for a tier."""
        settings = get_settings()
        if tier is ModelTier.HIGH:
            return settings.high_tier_model
        return settings.low_tier_model


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service
