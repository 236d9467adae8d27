class ApiError(Exception):
    """Domain error carrying the HTTP status it should surface as."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None, extra: dict | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409
