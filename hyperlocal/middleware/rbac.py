# hyperlocal/middleware/rbac.py
import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from hyperlocal.core.error_messages import ErrorResponses
from hyperlocal.models.user import Actor, Role, actor_from_claims
from hyperlocal.utils.auth_utils import decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


def get_current_user(token: str = Depends(oauth2_scheme)) -> Actor:
    if not token:
        raise ErrorResponses.MISSING_TOKEN
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise ErrorResponses.INVALID_TOKEN
    actor = actor_from_claims(payload)
    if actor is None:
        raise ErrorResponses.INVALID_ROLE
    return actor


def is_admin(user: Actor = Depends(get_current_user)) -> Actor:
    if user.role is not Role.ADMIN:
        raise ErrorResponses.ADMIN_ONLY
    return user


def is_provider(user: Actor = Depends(get_current_user)) -> Actor:
    if user.role is not Role.PROVIDER:
        raise ErrorResponses.PROVIDER_ONLY
    return user
