from fastapi import status

class LocalLinkError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class Unauthenticated(LocalLinkError):
    status_code = status.HTTP_401_UNAUTHORIZED

class Forbidden(LocalLinkError):
    status_code = status.HTTP_403_FORBIDDEN

class NotFound(LocalLinkError):
    status_code = status.HTTP_404_NOT_FOUND

class ValidationError(LocalLinkError):
    status_code = status.HTTP_400_BAD_REQUEST

class NoTransition(LocalLinkError):
    """Status is already terminal."""
    status_code = status.HTTP_400_BAD_REQUEST

class ServiceUnavailable(LocalLinkError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
