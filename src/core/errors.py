"""
Pipeline error types.

Every failure that leaves the pipeline is one of these. Each carries a
stable `kind` string so the invocation surface can report it without
knowing the concrete class. Recoverable problems (a single bad frame, a
malformed AI response) never show up here; they are handled where they
happen.
"""


class PipelineError(Exception):
    """Base class for structured pipeline failures."""

    kind = "PipelineError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class InvalidInputError(PipelineError):
    """Bad path, unreadable file, or unsupported extension."""
    kind = "InvalidInput"


class MetadataUnavailableError(PipelineError):
    """The transcoder could not probe the file or found no video stream."""
    kind = "MetadataUnavailable"


class InsufficientContentError(PipelineError):
    """Video is shorter than one sampling interval."""
    kind = "InsufficientContent"


class ExtractionFailedError(PipelineError):
    """Every frame extraction attempt failed."""
    kind = "ExtractionFailed"


class ConfigurationError(PipelineError):
    """
    Missing or invalid configuration (e.g. AI credentials).

    Raised at construction time, never retried.
    """
    kind = "ConfigurationError"


class AIServiceError(PipelineError):
    """The AI collaborator kept failing after the retry budget ran out."""
    kind = "AIServiceError"


class RenderError(PipelineError):
    """Document assembly or write failed."""
    kind = "RenderError"
