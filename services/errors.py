"""
Error taxonomy shared by the CivicLens services

Each error carries the status code a transport adapter should answer with.
"""


class CivicError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
        self.message = message


class ValidationError(CivicError, ValueError):
    status_code = 400

    def __init__(self, message: str = "Bad request"):
        super().__init__(message)


class UnauthorizedError(CivicError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(CivicError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(CivicError, LookupError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ConflictError(CivicError):
    status_code = 409

    def __init__(self, message: str = "Conflict"):
        super().__init__(message)


class StorageError(CivicError):
    """Blob storage could not accept an image"""
    status_code = 502

    def __init__(self, message: str = "Image upload failed"):
        super().__init__(message)
