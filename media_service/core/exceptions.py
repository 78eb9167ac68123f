class AppError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class MediaError(Exception):
    """Base class for failures raised by the media pipeline."""

    status_code = 500


class InvalidInputError(MediaError):
    status_code = 400


class TranscodingError(MediaError):
    status_code = 422


class UploadError(MediaError):
    status_code = 502

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class TransientUploadError(UploadError):
    """Raised once the retry budget for a remote upload is spent."""

    def __init__(self, cause: BaseException, attempts: int) -> None:
        super().__init__(f"Upload failed after {attempts} attempts: {cause}", cause)
        self.attempts = attempts


class UploadFailedError(UploadError):
    pass


class EntityTooLargeError(UploadFailedError):
    status_code = 413


class DeletionError(MediaError):
    pass


class CloudinaryError(Exception):
    """Non-2xx answer from the Cloudinary REST API."""

    def __init__(self, http_code: int, message: str) -> None:
        super().__init__(message)
        self.http_code = http_code
        self.message = message

    def __str__(self) -> str:
        return f"{self.message} (http {self.http_code})"


def is_entity_too_large(error: BaseException | None) -> bool:
    while error is not None:
        if isinstance(error, EntityTooLargeError):
            return True
        if getattr(error, "http_code", None) == 413:
            return True
        error = getattr(error, "cause", None)
    return False
