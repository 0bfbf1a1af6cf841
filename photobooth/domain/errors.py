# photobooth/domain/errors.py
"""Error taxonomy shared by the domain services and the HTTP layer."""


class PhotoboothError(Exception):
    """Base class for every error raised by the photobooth domain."""


class InputValidationError(PhotoboothError, ValueError):
    """Bad user input. The operation is aborted and nothing is mutated."""


class UploadRejectedError(InputValidationError):
    def __init__(self, message: str, too_large: bool = False):
        super().__init__(message)
        self.too_large = too_large


class ResourceUnavailableError(PhotoboothError, RuntimeError):
    """A device or rendering resource could not be acquired."""


class CaptureStepError(PhotoboothError, RuntimeError):
    """One shot inside a capture sequence failed."""


class NotFoundError(PhotoboothError, LookupError):
    pass


class InvalidTransitionError(PhotoboothError, RuntimeError):
    pass
