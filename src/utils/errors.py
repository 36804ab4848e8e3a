"""Error types for storyboard generation.

Every error carries a structured ``kind`` set where the failure is detected.
Callers branch on the type or the kind, never on the message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a storyboard failure."""

    AUTHORIZATION = "authorization"
    RATE_LIMIT = "rate_limit"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    NO_IMAGE = "no_image"
    REFERENCE_VIEW = "reference_view"
    EXPORT_PRECONDITION = "export_precondition"
    SCENE_NOT_FOUND = "scene_not_found"
    BACKEND = "backend"
    INTERNAL = "internal"


class StoryboardError(Exception):
    """Base error for storyboard generation."""

    default_kind = ErrorKind.BACKEND
    retryable = True

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind


class BackendError(StoryboardError):
    """The generation backend rejected or failed a request."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, kind)
        self.status_code = status_code


class AuthorizationError(BackendError):
    """The backend refused the credentials or the project lacks entitlement.

    Never retried: the caller must re-establish credentials first.
    """

    default_kind = ErrorKind.AUTHORIZATION
    retryable = False


class AnalysisError(StoryboardError):
    """Script analysis returned an empty or unparseable payload."""

    default_kind = ErrorKind.MALFORMED_RESPONSE


class NoImageProducedError(StoryboardError):
    """An image generation call returned no inline image."""

    default_kind = ErrorKind.NO_IMAGE


class ReferenceViewError(StoryboardError):
    """A reference sheet view exhausted its retries."""

    default_kind = ErrorKind.REFERENCE_VIEW

    def __init__(self, view: str, cause: Exception):
        super().__init__(f"Reference view '{view}' failed: {cause}")
        self.view = view
        self.cause = cause


class ExportPreconditionError(StoryboardError):
    """An export was requested before the storyboard was ready for it."""

    default_kind = ErrorKind.EXPORT_PRECONDITION
    retryable = False


class SceneNotFoundError(StoryboardError):
    """A patch addressed a scene id that is not in the storyboard."""

    default_kind = ErrorKind.SCENE_NOT_FOUND
    retryable = False

    def __init__(self, scene_id: int):
        super().__init__(f"Scene {scene_id} not found")
        self.scene_id = scene_id


def is_retryable(error: BaseException) -> bool:
    """Whether a retry wrapper may attempt the failed operation again."""
    return bool(getattr(error, "retryable", True))
