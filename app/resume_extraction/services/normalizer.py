"""
Post-processing of extracted resume data.

Puts a freshly parsed ResumeData into canonical shape: dated sections in
reverse chronological order with current entries first, and skills
de-duplicated.
"""

import logging
from typing import TypeVar

from ..models import DateRange, ResumeData, Skill
from .ai.mode import ExtractionMode
from .exceptions import ExtractionEmpty

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=DateRange)


def _chronological_key(entry: DateRange) -> tuple[int, int, int]:
    # sorted() is stable, so ties keep their extracted order
    if entry.current:
        return (0, 0, 0)
    if entry.start_year is None:
        return (2, 0, 0)
    return (1, -entry.start_year, -(entry.start_month or 0))


def sort_dated(entries: list[D]) -> list[D]:
    """Current entries first, then newest start date first, undated last."""
    return sorted(entries, key=_chronological_key)


def dedupe_skills(skills: list[Skill]) -> list[Skill]:
    """Drop blank and case-insensitively repeated skills, keeping first occurrences."""
    seen: set[str] = set()
    unique: list[Skill] = []
    for skill in skills:
        key = skill.name.strip().casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(skill)
    return unique


def normalize(result: ResumeData) -> ResumeData:
    """
    Return a normalized copy of an extraction result.

    Idempotent: normalizing an already normalized result returns an equal
    value. End dates of current entries are already cleared by the model
    validators.
    """
    return result.model_copy(
        update={
            "work_experiences": sort_dated(result.work_experiences),
            "educations": sort_dated(result.educations),
            "skills": dedupe_skills(result.skills),
        }
    )


def is_empty(result: ResumeData) -> bool:
    """True when nothing identifying or substantive was extracted."""
    profile = result.profile
    return (
        not profile.name.strip()
        and not profile.surname.strip()
        and not result.work_experiences
        and not result.educations
        and not result.skills
    )


def ensure_not_empty(
    result: ResumeData,
    mode: ExtractionMode,
    text_length: int,
    min_text_chars: int = 50,
) -> ResumeData:
    """
    Reject empty results that came from image-based documents.

    A text-based document that yields nothing is returned as-is with a
    warning; it may be a legitimately sparse resume.

    Raises:
        ExtractionEmpty: If the result is empty and the document was image-based.
    """
    if not is_empty(result):
        return result

    if mode is ExtractionMode.IMAGE_ONLY or text_length < min_text_chars:
        raise ExtractionEmpty(
            f"Empty resume data from image-based PDF (mode={mode.value}, "
            f"text={text_length} chars)",
            user_message=(
                "Failed to extract data from image-based PDF. The image quality "
                "may be insufficient, or the PDF may not contain readable resume "
                "information."
            ),
        )

    logger.warning(
        "Text-based PDF returned minimal data (mode=%s, text=%d chars)",
        mode.value,
        text_length,
    )
    return result
