# hyperlocal/core/error_messages.py
from fastapi import HTTPException, status


class ErrorResponses:
    MISSING_TOKEN = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No token, authorization denied",
        headers={"WWW-Authenticate": "Bearer"},
    )
    INVALID_TOKEN = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authorized, token failed",
        headers={"WWW-Authenticate": "Bearer"},
    )
    INVALID_ROLE = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid role",
    )
    ADMIN_ONLY = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Admin access only",
    )
    PROVIDER_ONLY = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Provider access required",
    )
