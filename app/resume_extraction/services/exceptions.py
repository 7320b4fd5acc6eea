"""
Error taxonomy for the resume extraction pipeline.

Every failure the pipeline can surface is an ExtractionError subclass with a
stable `kind`, the HTTP status it maps to, and a user-safe message that is
kept apart from the internal diagnostic (`str(exc)`).
"""


class ExtractionError(Exception):
    """Base class for all typed pipeline failures."""

    kind: str = "Internal"
    status_code: int = 500
    default_user_message: str = "Failed to process the file. Please try again."

    def __init__(self, message: str = "", *, user_message: str | None = None):
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message

    def to_payload(self) -> dict:
        """Error envelope body for API responses."""
        return {"error": self.user_message, "kind": self.kind}


class Timeout(ExtractionError):
    """A stage exceeded its wall-clock budget."""

    kind = "Timeout"
    status_code = 504
    default_user_message = (
        "PDF processing timed out. The file may be too large or complex. "
        "Please try a simpler PDF."
    )


class MissingCapability(ExtractionError):
    """A required external capability is not configured."""

    kind = "MissingCapability"
    status_code = 503
    default_user_message = (
        "This appears to be an image-based PDF and image conversion is not "
        "configured. Please upload a text-based PDF."
    )


class Unprocessable(ExtractionError):
    """The document does not contain enough usable content."""

    kind = "Unprocessable"
    status_code = 422
    default_user_message = (
        "Could not extract enough content from the PDF. The file may be "
        "image-based, corrupted, or empty."
    )


class MalformedDocument(Unprocessable):
    """The uploaded bytes are not a readable PDF."""

    kind = "MalformedDocument"
    default_user_message = (
        "Invalid PDF file. The file may be corrupted or not a valid PDF."
    )


class RasterizationError(Unprocessable):
    """The remote page rasterization failed or produced no images."""

    kind = "RasterizationError"
    default_user_message = (
        "Could not convert the PDF pages to images. Please try a text-based PDF."
    )


class InferenceEmpty(ExtractionError):
    """The inference call returned nothing usable."""

    kind = "InferenceEmpty"
    status_code = 502
    default_user_message = "No data was extracted from the resume. Please try again."


class InferenceMalformed(ExtractionError):
    """The inference call returned something other than a resume object."""

    kind = "InferenceMalformed"
    status_code = 502
    default_user_message = (
        "Could not parse the extracted resume data. Please try again."
    )


class InferenceUnavailable(ExtractionError):
    """The inference service could not be reached or rejected the request."""

    kind = "InferenceUnavailable"
    status_code = 502
    default_user_message = (
        "The extraction service is temporarily unavailable. Please try again later."
    )


class ExtractionEmpty(ExtractionError):
    """Extraction succeeded but produced no meaningful data."""

    kind = "ExtractionEmpty"
    status_code = 422
    default_user_message = (
        "No resume data could be extracted. The PDF may be image-based or "
        "contain no readable text. Please upload a text-based PDF."
    )


class PrincipalNotFound(ExtractionError):
    """The requesting principal has no account."""

    kind = "PrincipalNotFound"
    status_code = 404
    default_user_message = "User not found"


class InsufficientCredits(ExtractionError):
    """The principal's balance does not cover the cost of a job."""

    kind = "InsufficientCredits"
    status_code = 402
    default_user_message = "Insufficient credits"

    def __init__(
        self,
        credits_remaining: int,
        credits_required: int,
        *,
        hint: str = "",
    ):
        super().__init__(
            f"Insufficient credits: {credits_remaining} remaining, "
            f"{credits_required} required"
        )
        self.credits_remaining = credits_remaining
        self.credits_required = credits_required
        self.hint = hint

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(
            message=(
                f"You need {self.credits_required} credits to process a resume, "
                f"but you only have {self.credits_remaining}. {self.hint}"
            ).strip(),
            creditsRemaining=self.credits_remaining,
            creditsRequired=self.credits_required,
        )
        return payload


class StoreError(ExtractionError):
    """The persistent store rejected a write."""

    kind = "StoreError"
    status_code = 500
    default_user_message = "Failed to save the extraction result. Please try again."


class InvalidRequest(ExtractionError):
    """The upload was rejected before reaching the pipeline."""

    kind = "InvalidRequest"
    status_code = 400
    default_user_message = "Invalid request"

    def __init__(self, message: str):
        super().__init__(message, user_message=message)


class Unauthenticated(ExtractionError):
    """The request carries no usable principal id."""

    kind = "Unauthenticated"
    status_code = 401
    default_user_message = "Unauthorized"


class JobNotFound(ExtractionError):
    """The job does not exist or belongs to another principal."""

    kind = "JobNotFound"
    status_code = 404
    default_user_message = "Job not found"


class JobStateError(Exception):
    """Raised on an illegal job lifecycle transition."""

    pass
