class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class AuthorizationError(AppError):
    pass


class ConflictError(AppError):
    pass


class InsufficientStockError(AppError):
    def __init__(self, message: str, available: int):
        super().__init__(message)
        self.available = int(available)


class StorageError(AppError):
    """A store call failed. The original exception is kept as ``__cause__``."""


class CompensatedWriteFailure(AppError):
    """A dependent write failed and the earlier write was rolled back."""

    def __init__(self, message: str, cause: BaseException):
        super().__init__(message)
        self.cause = cause


class CompensationFailure(AppError):
    """The rollback write itself failed; stock and sales may disagree."""

    def __init__(self, message: str, original: BaseException, rollback_error: BaseException):
        super().__init__(message)
        self.original = original
        self.rollback_error = rollback_error
