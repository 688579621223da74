class StockCheckError(Exception):
    """Base exception for the stock checklist service."""

    status_code = 500

    def __init__(self, message=None, code=None, details=None):
        self.message = message or "An error occurred in the stock checklist service"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a JSON-friendly dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ValidationError(StockCheckError):
    """A required field is missing or malformed."""

    status_code = 400

    def __init__(self, message=None, code=None, details=None):
        message = message or "Validation error"
        super().__init__(message, code, details)


class ReferenceNotFoundError(StockCheckError):
    """A referenced row (usually an item) does not exist."""

    status_code = 404

    def __init__(self, message=None, code=None, details=None):
        message = message or "Referenced record not found"
        super().__init__(message, code, details)


class StorageError(StockCheckError):
    """The underlying database failed (disk, lock, connection...)."""

    status_code = 503

    def __init__(self, message=None, code=None, details=None):
        message = message or "Storage error"
        super().__init__(message, code, details)
