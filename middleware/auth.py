# middleware/auth.py
from functools import wraps
from typing import Optional

from flask import current_app, session

from middleware.errors import AuthenticationRequiredError


def current_username() -> Optional[str]:
    """Return the logged-in username from the session, if any."""
    username = session.get("username")
    if isinstance(username, str) and username.strip():
        return username.strip()
    return None


def login_required(view_func):
    """Decorator that requires a logged-in user (session['username'])."""
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        if current_app.config.get("LOGIN_DISABLED"):
            return view_func(*args, **kwargs)
        if current_username() is None:
            raise AuthenticationRequiredError()
        return view_func(*args, **kwargs)
    return wrapper
