"""
Structured resume extraction.

Builds the chat messages for the chosen extraction mode, runs the inference
call and parses the JSON answer into ResumeData.
"""

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ...models import RESUME_TOP_LEVEL_KEYS, ResumeData, create_empty_resume_template
from ..exceptions import (
    ExtractionError,
    InferenceEmpty,
    InferenceMalformed,
    InferenceUnavailable,
)
from ..pdf_service import RasterImage
from .mode import ExtractionMode, ModeDecision

if TYPE_CHECKING:
    from . import AIService

logger = logging.getLogger(__name__)

MAX_PROMPT_IMAGES = 3


# =============================================================================
# Prompts
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """You are an expert resume parser. Your task is to extract all available information from the resume{source} and populate the JSON structure.
Extract every piece of information you can find - names, emails, work experience, education, skills, etc.
Do NOT make up information that is not in the resume.
Do NOT leave fields empty if the information exists in the resume. Only leave fields empty if the information is truly not present."""

FIELD_INSTRUCTIONS = """Instructions:
1. Extract the person's name and split it into name and surname fields
2. Extract email address if present
3. Extract all work experience with job titles, companies, dates, and descriptions
4. Extract all education with schools, degrees, majors, and dates
5. Extract all skills listed
6. Extract licenses, languages, achievements, publications, and honors if mentioned
7. For dates: extract startMonth (1-12), startYear (number), endMonth (number or null), endYear (number or null), current (boolean)
8. For employmentType use: FULL_TIME, PART_TIME, INTERNSHIP, or CONTRACT (infer if not explicitly stated)
9. For locationType use: ONSITE, REMOTE, or HYBRID (infer if not explicitly stated)
10. For degree use: HIGH_SCHOOL, ASSOCIATE, BACHELOR, MASTER, or DOCTORATE (infer based on common degree names)
11. For language level use: BEGINNER, INTERMEDIATE, ADVANCED, or NATIVE (infer if not explicitly stated)
12. Extract professional summary/objective if present
13. Extract LinkedIn, website, location (country, city), and work preferences if mentioned
14. Return dates in YYYY-MM format where applicable (for achievements, publications)
15. Use ISO8601 format for publicationDate"""

_SOURCES = {
    ExtractionMode.TEXT_ONLY: " text",
    ExtractionMode.IMAGE_ONLY: " page images using OCR",
    ExtractionMode.HYBRID: " text and page images",
}


def _pages(count: int) -> str:
    return f"{count} page{'s' if count != 1 else ''}"


def _lead_in(mode: ExtractionMode, text: str, image_count: int) -> str:
    if mode is ExtractionMode.TEXT_ONLY:
        return (
            "Extract all information from the following resume data and populate "
            "the JSON structure. Fill in ALL fields with actual data from the resume. "
            "Only leave fields empty if the information is not available in the resume."
            f"\n\nResume content:\n{text}"
        )
    if mode is ExtractionMode.HYBRID:
        return (
            "Extract all information from the following resume text and populate "
            "the JSON structure. Fill in ALL fields with actual data from the resume."
            f"\n\nResume text:\n{text}"
            f"\n\nAdditionally, analyze all resume images ({_pages(image_count)}) to "
            "extract any information that might not be in the text, such as visual "
            "elements or text that wasn't properly extracted. Extract information "
            "from ALL pages."
        )
    return (
        f"Extract all information from this resume ({_pages(image_count)}) and "
        "populate the JSON structure. Fill in ALL fields with actual data from the "
        "resume. Extract information from ALL pages."
    )


def _closing(mode: ExtractionMode) -> str:
    if mode is ExtractionMode.HYBRID:
        return (
            "IMPORTANT: Combine information from both the text AND all images. "
            "Do not return empty strings or empty arrays unless the information is "
            "truly not in the resume. Extract everything you can find!"
        )
    if mode is ExtractionMode.IMAGE_ONLY:
        return (
            "IMPORTANT: Analyze all pages of the resume. Do not return empty strings "
            "or empty arrays unless the information is truly not in the resume. "
            "Extract everything you can find from all pages!"
        )
    return (
        "IMPORTANT: Do not return empty strings or empty arrays unless the "
        "information is truly not in the resume. Extract everything you can find!"
    )


def build_extraction_messages(
    decision: ModeDecision,
    text: str,
    images: list[RasterImage],
    max_text_chars: int = 50_000,
    max_images: int = MAX_PROMPT_IMAGES,
) -> list[dict[str, Any]]:
    """
    Build the chat messages for one extraction call.

    TEXT_ONLY sends the user prompt as a plain string; image modes send a
    content-part list with one image_url part per page image (at most `max_images`).
    """
    mode = decision.mode
    images = images[:max_images] if mode.uses_images else []
    prompt_text = text[:max_text_chars] if mode.uses_text else ""

    user_prompt = "\n\n".join(
        [
            _lead_in(mode, prompt_text, len(images)),
            "Return a complete JSON object matching this schema with all available "
            "data extracted:\n"
            + json.dumps(create_empty_resume_template(), indent=2),
            FIELD_INSTRUCTIONS,
            _closing(mode),
        ]
    )

    if mode is ExtractionMode.TEXT_ONLY:
        user_content: Any = user_prompt
    else:
        user_content = [{"type": "text", "text": user_prompt}]
        for image in images:
            user_content.append(
                {"type": "image_url", "image_url": {"url": image.data_url}}
            )

    return [
        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT.format(source=_SOURCES[mode])},
        {"role": "user", "content": user_content},
    ]


def parse_extraction_response(content: str | None) -> ResumeData:
    """
    Parse the raw model answer into ResumeData.

    Raises:
        InferenceEmpty: For an empty answer, `{}` or `null`.
        InferenceMalformed: For invalid JSON, a non-object, an object that
            shares no key with the resume template, or one that fails validation.
    """
    if content is None or not content.strip():
        raise InferenceEmpty("Empty response from OpenAI")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse extraction response: %s", content[:500])
        raise InferenceMalformed(f"Invalid JSON in extraction response: {e}") from e

    if data is None or data == {}:
        raise InferenceEmpty("OpenAI returned an empty JSON object")
    if not isinstance(data, dict):
        raise InferenceMalformed(
            f"Extraction response is a {type(data).__name__}, expected an object"
        )
    if not any(key in data for key in RESUME_TOP_LEVEL_KEYS):
        raise InferenceMalformed(
            f"Extraction response has none of the resume keys: {sorted(data)[:10]}"
        )

    try:
        return ResumeData.model_validate(data)
    except ValidationError as e:
        logger.error("Extraction response failed validation: %s", e)
        raise InferenceMalformed(f"Extraction response failed validation: {e}") from e


async def invoke_extraction(
    ai_service: "AIService",
    decision: ModeDecision,
    text: str,
    images: list[RasterImage],
    model: str,
    max_text_chars: int = 50_000,
    max_images: int = MAX_PROMPT_IMAGES,
) -> ResumeData:
    """Run one extraction call and return the parsed resume."""
    messages = build_extraction_messages(
        decision, text, images, max_text_chars, max_images
    )
    image_count = min(len(images), max_images) if decision.mode.uses_images else 0
    logger.info(
        "Calling %s (mode=%s, text=%d chars, images=%d)",
        model,
        decision.mode.value,
        len(text) if decision.mode.uses_text else 0,
        image_count,
    )

    try:
        content = await ai_service.complete(model, messages)
    except ExtractionError:
        raise
    except Exception as e:
        logger.exception("Inference call failed")
        raise InferenceUnavailable(f"Inference call failed: {e}") from e

    result = parse_extraction_response(content)
    logger.info("OpenAI response parsed (%d chars)", len(content))
    return result
