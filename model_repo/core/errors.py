# model_repo/core/errors.py
"""
Domain errors raised by the repository core.

Every error carries a human-readable message and the HTTP status class it maps
to. The API layer renders them uniformly as ``{"detail": message}``.
"""


class RepositoryError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RepositoryError):
    status_code = 400
    default_message = "Invalid request"


class PayloadTooLarge(ValidationError):
    status_code = 413
    default_message = "Upload exceeds the maximum allowed size"


class AuthenticationError(RepositoryError):
    status_code = 401
    default_message = "Authentication required"


class RegistrationDisabled(RepositoryError):
    status_code = 403
    default_message = "Registration is disabled"


class NotFoundOrUnauthorized(RepositoryError):
    """
    Raised both when a resource does not exist and when the caller may not see
    it, so that responses never disclose whether a hidden model exists.
    """

    status_code = 404
    default_message = "Model not found or unauthorized"


class NotFound(NotFoundOrUnauthorized):
    default_message = "Not found"


class ConflictError(RepositoryError):
    status_code = 409
    default_message = "Resource already exists"


class StorageError(RepositoryError):
    status_code = 500
    default_message = "Storage failure"


class CatalogError(RepositoryError):
    status_code = 500
    default_message = "Database failure"
