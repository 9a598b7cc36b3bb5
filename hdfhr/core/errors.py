from fastapi import HTTPException, status

RATE_LIMIT_MESSAGE = "Too many attempts. Please wait a moment and try again."
NETWORK_MESSAGE = "Network error. Please check your connection and try again."


class HDFHRError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(HDFHRError):
    pass


class AuthError(HDFHRError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(HDFHRError):
    status_code = status.HTTP_403_FORBIDDEN


class EmailDeliveryError(HDFHRError):
    status_code = status.HTTP_502_BAD_GATEWAY


def user_message(error) -> str:
    """Turn any error into the text shown to the user."""
    message = getattr(error, "message", None) or str(error) or "Something went wrong"
    lowered = message.lower()
    if "rate limit" in lowered or "too many requests" in lowered:
        return RATE_LIMIT_MESSAGE
    if "network" in lowered:
        return NETWORK_MESSAGE
    return message


def to_http(error: HDFHRError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=user_message(error))
