import logging
import weakref
from dataclasses import dataclass
from functools import wraps

from flask import current_app, redirect, request, url_for
from flask_login import current_user, user_logged_in, user_logged_out

logger = logging.getLogger(__name__)


# -------------------------------
# Session check
# -------------------------------
@dataclass(frozen=True)
class Authorized:
    user_id: int


@dataclass(frozen=True)
class Unauthorized:
    reason: str


def check_session():
    if not current_user.is_authenticated:
        return Unauthorized("not logged in")
    if not current_user.is_active:
        return Unauthorized("account disabled")
    return Authorized(current_user.id)


def session_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        result = check_session()
        if isinstance(result, Unauthorized):
            logger.debug("redirecting %s to login: %s", request.path, result.reason)
            return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))
        return fn(*args, **kwargs)
    return wrapper


# -------------------------------
# Session change notifications
# -------------------------------
class SessionSubscription:
    def __init__(self, app, callback):
        self._app = weakref.ref(app)
        self._callback = callback
        self.active = True

        user_logged_in.connect(self._on_login, sender=app, weak=False)
        user_logged_out.connect(self._on_logout, sender=app, weak=False)

    def _on_login(self, sender, user, **extra):
        self._callback("logged_in", user)

    def _on_logout(self, sender, user, **extra):
        self._callback("logged_out", user)

    def cancel(self):
        if not self.active:
            return
        app = self._app()
        if app is not None:
            user_logged_in.disconnect(self._on_login, sender=app)
            user_logged_out.disconnect(self._on_logout, sender=app)
        self.active = False


def on_session_change(callback, app=None) -> SessionSubscription:
    """Call ``callback(event, user)`` on every login/logout of ``app``.

    ``event`` is ``"logged_in"`` or ``"logged_out"``. The subscription stays
    connected until ``cancel()`` is called on the returned handle, even if
    the caller drops it.
    """
    if app is None:
        app = current_app._get_current_object()
    return SessionSubscription(app, callback)
