from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from repairshop.core.config import Settings, get_settings

ANONYMOUS_USER_ID = "anonymous"


class User:
    """Authenticated operator. ``user_id`` is opaque and only namespaces data."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    def __repr__(self) -> str:
        return f"User({self.user_id!r})"


bearer_scheme = HTTPBearer(auto_error=False)


def resolve_user_from_token(token: str | None, settings: Settings) -> User:
    """Return the user a bearer token belongs to."""

    if not token:
        if not settings.allow_anonymous:
            raise HTTPException(status_code=401, detail="Authentication required")
        return User(ANONYMOUS_USER_ID)

    user_id = settings.api_tokens.get(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return User(user_id)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token, settings)
    request.state.user = user
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
