"""
Error taxonomy for the feed client core.

  SubmitError       — a submission rejected before reaching the Feed Service
  ServiceFailure    — a Directory / Feed Service fault (network or server side)
  InvalidStateError — lifecycle misuse (subscribe twice, load after close)

None of these is fatal; callers decide what to show the user.
"""


class FeedSyncError(Exception):
    pass


class SubmitError(FeedSyncError):
    pass


class ContentValidationError(SubmitError):
    reason = "invalid"


class EmptyContentError(ContentValidationError):
    reason = "empty"

    def __init__(self) -> None:
        super().__init__("Post content is empty")


class ContentTooLongError(ContentValidationError):
    reason = "too_long"

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Post content is {length} characters, limit is {limit}")
        self.length = length
        self.limit = limit


class SubmissionInFlightError(SubmitError):
    def __init__(self) -> None:
        super().__init__("Another post is still being submitted")


class IdentityNotReadyError(SubmitError):
    def __init__(self) -> None:
        super().__init__("Profile is still loading, try again shortly")


class ServiceFailure(FeedSyncError):
    """A call to an external service failed."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class ProfileConflict(ServiceFailure):
    """The Directory Service already holds a profile for this user."""


class InvalidStateError(FeedSyncError):
    pass
