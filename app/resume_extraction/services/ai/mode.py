"""
Extraction mode selection.

Decides, from how much text and how many page images were recovered, what
to send to the model and which model tier to use.
"""

from dataclasses import dataclass
from enum import Enum

from ..exceptions import Unprocessable


class ExtractionMode(str, Enum):
    TEXT_ONLY = "text_only"
    IMAGE_ONLY = "image_only"
    HYBRID = "hybrid"

    @property
    def uses_text(self) -> bool:
        return self is not ExtractionMode.IMAGE_ONLY

    @property
    def uses_images(self) -> bool:
        return self is not ExtractionMode.TEXT_ONLY


class ModelTier(str, Enum):
    LOW = "low"
    HIGH = "high"


@dataclass(frozen=True)
class ModeDecision:
    mode: ExtractionMode
    tier: ModelTier


def select_mode(
    text_length: int,
    image_count: int,
    *,
    min_text_chars: int = 50,
    abundant_text_chars: int = 100,
) -> ModeDecision:
    """
    Pick the extraction mode for the recovered signal.

    | text             | images | mode       | tier |
    |------------------|--------|------------|------|
    | >= min           | 0      | TEXT_ONLY  | low  |
    | >= min           | > 0    | HYBRID     | low  |
    | < min            | > 0    | IMAGE_ONLY | high |
    | < min            | 0      | Unprocessable     |

    `abundant_text_chars` does not change the outcome here; the pipeline
    uses it to skip rasterization once enough text is known.

    Raises:
        Unprocessable: If there is neither enough text nor any image.
    """
    if abundant_text_chars < min_text_chars:
        raise ValueError("abundant_text_chars must be >= min_text_chars")

    has_text = text_length >= min_text_chars
    if image_count > 0:
        if has_text:
            return ModeDecision(ExtractionMode.HYBRID, ModelTier.LOW)
        return ModeDecision(ExtractionMode.IMAGE_ONLY, ModelTier.HIGH)
    if has_text:
        return ModeDecision(ExtractionMode.TEXT_ONLY, ModelTier.LOW)
    raise Unprocessable(
        f"Only {text_length} text chars and no page images available"
    )
