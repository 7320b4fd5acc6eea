"""Tests for AI service: prompts, response parsing and the OpenAI wrapper."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from app.resume_extraction.config import get_settings
from app.resume_extraction.models import RESUME_TOP_LEVEL_KEYS, ResumeData
from app.resume_extraction.services.ai import (
    AIService,
    build_extraction_messages,
    invoke_extraction,
    parse_extraction_response,
)
from app.resume_extraction.services.ai.mode import ExtractionMode, ModeDecision, ModelTier
from app.resume_extraction.services.exceptions import (
    InferenceEmpty,
    InferenceMalformed,
    InferenceUnavailable,
)

TEXT_ONLY = ModeDecision(ExtractionMode.TEXT_ONLY, ModelTier.LOW)
HYBRID = ModeDecision(ExtractionMode.HYBRID, ModelTier.LOW)
IMAGE_ONLY = ModeDecision(ExtractionMode.IMAGE_ONLY, ModelTier.HIGH)


def _completion(content: str | None) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    response = MagicMock()
    response.choices = [choice]
    return response


def _live_service(create: AsyncMock) -> AIService:
    service = AIService(api_key="sk-test")
    client = MagicMock()
    client.chat.completions.create = create
    service._client = client
    return service


class TestBuildExtractionMessages:
    """Tests for prompt construction."""

    def test_text_only_sends_plain_string(self):
        """Test TEXT_ONLY user content is a single string with the text and template."""
        messages = build_extraction_messages(TEXT_ONLY, "Jane Doe resume text", [])

        assert [m["role"] for m in messages] == ["system", "user"]
        user = messages[1]["content"]
        assert isinstance(user, str)
        assert "Jane Doe resume text" in user
        assert '"workExperiences"' in user
        assert "15. Use ISO8601 format for publicationDate" in user

    def test_text_is_truncated(self):
        """Test resume text is capped at the configured length."""
        text = "a" * 100 + "TAIL"
        user = build_extraction_messages(TEXT_ONLY, text, [], max_text_chars=100)[1]["content"]
        assert "a" * 100 in user
        assert "TAIL" not in user

    def test_hybrid_sends_text_and_images(self, raster_factory):
        """Test HYBRID carries both the text and one image part per image."""
        images = [raster_factory(0), raster_factory(1, fmt="JPEG")]
        content = build_extraction_messages(HYBRID, "resume text", images)[1]["content"]

        assert content[0]["type"] == "text"
        assert "resume text" in content[0]["text"]
        image_parts = [part for part in content if part["type"] == "image_url"]
        assert [part["image_url"]["url"] for part in image_parts] == [
            images[0].data_url,
            images[1].data_url,
        ]

    def test_image_only_omits_text(self, raster_factory):
        """Test IMAGE_ONLY never includes the (insufficient) text layer."""
        content = build_extraction_messages(IMAGE_ONLY, "stray-text", [raster_factory(0)])[1][
            "content"
        ]
        assert "stray-text" not in content[0]["text"]
        assert "(1 page)" in content[0]["text"]

    def test_at_most_three_images(self, raster_factory):
        """Test no more than three images enter the request."""
        images = [raster_factory(i) for i in range(5)]
        content = build_extraction_messages(IMAGE_ONLY, "", images)[1]["content"]
        assert sum(1 for part in content if part["type"] == "image_url") == 3

    def test_image_cap_follows_max_images(self, raster_factory):
        """Test a larger page limit lets more images into the request."""
        images = [raster_factory(i) for i in range(5)]
        content = build_extraction_messages(IMAGE_ONLY, "", images, max_images=5)[1][
            "content"
        ]
        assert sum(1 for part in content if part["type"] == "image_url") == 5
        assert "(5 pages)" in content[0]["text"]

    def test_text_only_ignores_images(self, raster_factory):
        """Test TEXT_ONLY never attaches images."""
        user = build_extraction_messages(TEXT_ONLY, "text", [raster_factory(0)])[1]["content"]
        assert "data:image" not in user

    def test_system_prompt_forbids_fabrication(self):
        """Test the system message instructs the model not to invent data."""
        system = build_extraction_messages(TEXT_ONLY, "text", [])[0]["content"]
        assert "expert resume parser" in system
        assert "Do NOT make up" in system


class TestParseExtractionResponse:
    """Tests for parse_extraction_response."""

    @pytest.mark.parametrize("content", [None, "", "   \n", "{}", "null"])
    def test_empty_answers(self, content):
        """Test empty answers raise InferenceEmpty."""
        with pytest.raises(InferenceEmpty):
            parse_extraction_response(content)

    @pytest.mark.parametrize(
        "content",
        ["not json", '{"profile": ', "[1, 2]", '"text"', '{"foo": 1, "bar": 2}'],
    )
    def test_malformed_answers(self, content):
        """Test non-resume answers raise InferenceMalformed."""
        with pytest.raises(InferenceMalformed):
            parse_extraction_response(content)

    def test_unvalidatable_payload(self):
        """Test a resume-shaped answer with impossible types is malformed."""
        with pytest.raises(InferenceMalformed):
            parse_extraction_response(json.dumps({"workExperiences": "lots"}))

    def test_missing_keys_filled_from_template(self):
        """Test a partial answer still produces all nine top-level keys."""
        result = parse_extraction_response(json.dumps({"profile": {"name": "Jane"}}))
        wire = result.to_wire()
        assert tuple(wire) == RESUME_TOP_LEVEL_KEYS
        assert wire["profile"]["name"] == "Jane"
        assert wire["honors"] == []

    def test_numeric_values_in_string_fields(self):
        """Test bare numbers for string fields are kept as text."""
        payload = {
            "licenses": [{"name": "PE", "licenseNumber": 12345}],
            "achievements": [{"title": "Award", "date": 2020}],
        }
        result = parse_extraction_response(json.dumps(payload))
        assert result.licenses[0].license_number == "12345"
        assert result.achievements[0].date == "2020"

    def test_full_answer(self, sample_resume_json):
        """Test a complete answer parses into ResumeData."""
        result = parse_extraction_response(sample_resume_json)
        assert isinstance(result, ResumeData)
        assert result.profile.surname == "Doe"
        assert len(result.work_experiences) == 2


class TestInvokeExtraction:
    """Tests for invoke_extraction."""

    @pytest.mark.asyncio
    async def test_calls_model_and_parses(self, fake_ai_factory, sample_resume_json):
        """Test the requested model receives the built messages."""
        ai = fake_ai_factory(sample_resume_json)
        result = await invoke_extraction(ai, TEXT_ONLY, "resume text", [], "gpt-4o-mini")

        assert result.profile.name == "Jane"
        model, messages = ai.calls[0]
        assert model == "gpt-4o-mini"
        assert "resume text" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_unavailable(self, fake_ai_factory):
        """Test arbitrary inference errors surface as InferenceUnavailable."""
        ai = fake_ai_factory(RuntimeError("socket closed"))
        with pytest.raises(InferenceUnavailable):
            await invoke_extraction(ai, TEXT_ONLY, "text", [], "gpt-4o-mini")

    @pytest.mark.asyncio
    async def test_typed_failures_pass_through(self, fake_ai_factory):
        """Test typed errors from the service are not rewrapped."""
        ai = fake_ai_factory(InferenceEmpty("nothing"))
        with pytest.raises(InferenceEmpty):
            await invoke_extraction(ai, TEXT_ONLY, "text", [], "gpt-4o-mini")


class TestAIServiceMockMode:
    """Tests for AI service in mock mode."""

    def test_missing_api_key_does_not_enable_mock(self):
        """Test that a missing API key leaves mock mode off."""
        service = AIService(api_key="")
        assert service.use_mock is False

    @pytest.mark.asyncio
    async def test_missing_api_key_is_unavailable(self):
        """Test completions without a key fail instead of returning canned data."""
        service = AIService(api_key="")
        with pytest.raises(InferenceUnavailable):
            await service.complete("gpt-4o-mini", [])

    def test_mock_mode_from_settings(self, monkeypatch):
        """Test that USE_MOCK_AI turns mock mode on."""
        monkeypatch.setenv("USE_MOCK_AI", "true")
        get_settings.cache_clear()
        try:
            assert AIService(api_key="").use_mock is True
        finally:
            get_settings.cache_clear()

    def test_mock_mode_enabled_explicitly(self):
        """Test that mock mode can be explicitly enabled."""
        service = AIService(api_key="fake-key", use_mock=True)
        assert service.use_mock is True

    @pytest.mark.asyncio
    async def test_mock_completion_is_a_resume(self):
        """Test mock answers parse into a non-empty resume."""
        service = AIService(use_mock=True)
        content = await service.complete("gpt-4o-mini", [])
        result = parse_extraction_response(content)
        assert result.profile.name
        assert result.work_experiences

    def test_model_for_tier(self):
        """Test tiers map to the configured model names."""
        service = AIService(use_mock=True)
        assert service.model_for(ModelTier.LOW) == "gpt-4o-mini"
        assert service.model_for(ModelTier.HIGH) == "gpt-4o"

    def test_client_requires_api_key(self):
        """Test the lazy client refuses to start without a key."""
        service = AIService(api_key="")
        with pytest.raises(InferenceUnavailable):
            service.client


class TestAIServiceComplete:
    """Tests for AIService.complete against a mocked OpenAI client."""

    @pytest.mark.asyncio
    async def test_returns_content_in_json_mode(self):
        """Test the request uses JSON object mode and returns the content."""
        create = AsyncMock(return_value=_completion('{"profile": {}}'))
        service = _live_service(create)

        content = await service.complete("gpt-4o", [{"role": "user", "content": "x"}])

        assert content == '{"profile": {}}'
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_none_content_is_empty(self):
        """Test a response without content raises InferenceEmpty."""
        service = _live_service(AsyncMock(return_value=_completion(None)))
        with pytest.raises(InferenceEmpty):
            await service.complete("gpt-4o", [])

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self):
        """Test network failures raise InferenceUnavailable."""
        error = openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )
        service = _live_service(AsyncMock(side_effect=error))
        with pytest.raises(InferenceUnavailable, match="network error"):
            await service.complete("gpt-4o", [])

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        """Test transport timeouts raise InferenceUnavailable."""
        service = _live_service(AsyncMock(side_effect=httpx.ReadTimeout("slow")))
        with pytest.raises(InferenceUnavailable):
            await service.complete("gpt-4o", [])
