from typing import Optional
from uuid import uuid4

from starlette.requests import Request

SESSION_USER_KEY = "user_id"
SESSION_CHAT_KEY = "chat_id"

# chat ids handed to sessions without a user
ANONYMOUS_PREFIX = "anonymous:"


def current_user_id(request: Request) -> Optional[str]:
    """User id stored in the session cookie, or None for anonymous requests."""
    return request.session.get(SESSION_USER_KEY)


def login_session(request: Request, user_id: str) -> None:
    request.session[SESSION_USER_KEY] = user_id


def logout_session(request: Request) -> None:
    request.session.clear()


def chat_id(request: Request) -> str:
    """
    Conversation id for the caller: the user id when logged in, otherwise a
    random id kept in the session so each anonymous visitor gets its own thread.
    """
    user_id = current_user_id(request)
    if user_id is not None:
        return user_id
    anonymous_id = request.session.get(SESSION_CHAT_KEY)
    if anonymous_id is None:
        anonymous_id = f"{ANONYMOUS_PREFIX}{uuid4().hex}"
        request.session[SESSION_CHAT_KEY] = anonymous_id
    return anonymous_id


def is_anonymous_id(user_id: Optional[str]) -> bool:
    return user_id is None or user_id.startswith(ANONYMOUS_PREFIX)
