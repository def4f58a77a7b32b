"""CMS error taxonomy. The error handler middleware maps these onto HTTP responses."""


class CmsError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(CmsError):
    status_code = 404


class InvalidInputError(CmsError):
    status_code = 400


class InvalidSegmentError(InvalidInputError):
    """Raised when a userType value is not one of the accepted segments."""


class ConflictError(CmsError):
    """Raised when a layout save was based on a stale layout version."""

    status_code = 409


class ReferentialCleanupFailure(CmsError):
    """An owned carousel could not be removed after its feature. Logged, never surfaced."""


class LayoutSaveError(CmsError):
    """A layout save failed part-way. The transaction was rolled back."""

    def __init__(self, detail: str, rolled_back: bool = True):
        super().__init__(detail)
        self.rolled_back = rolled_back
