import gc

from flask_login import AnonymousUserMixin, login_user, logout_user

from vinylstock.models import User
from vinylstock.permissions import Authorized, Unauthorized, check_session, on_session_change


def test_check_session_anonymous(app):
    with app.test_request_context("/"):
        assert check_session() == Unauthorized("not logged in")


def test_check_session_logged_in(app):
    user = User.query.filter_by(email="admin@example.com").one()
    with app.test_request_context("/"):
        login_user(user)
        assert check_session() == Authorized(user.id)


def test_check_session_disabled_account(app, monkeypatch):
    class Disabled(AnonymousUserMixin):
        is_authenticated = True
        is_active = False

    monkeypatch.setattr("vinylstock.permissions.current_user", Disabled())
    with app.test_request_context("/"):
        assert check_session() == Unauthorized("account disabled")


def test_session_change_subscription(app):
    events = []
    sub = on_session_change(lambda event, user: events.append((event, user.email)), app)
    user = User.query.filter_by(email="admin@example.com").one()

    with app.test_request_context("/"):
        login_user(user)
        logout_user()

    assert events == [("logged_in", user.email), ("logged_out", user.email)]

    sub.cancel()
    sub.cancel()
    with app.test_request_context("/"):
        login_user(user)

    assert len(events) == 2
    assert not sub.active


def test_login_through_client_notifies(client, app):
    events = []
    sub = on_session_change(lambda event, user: events.append(event), app)

    client.post("/auth/login", data={"email": "admin@example.com", "password": "secret123"})
    client.get("/auth/logout")
    sub.cancel()

    assert events == ["logged_in", "logged_out"]


def test_session_change_survives_dropped_handle(app):
    events = []
    on_session_change(lambda event, user: events.append(event), app)
    gc.collect()
    user = User.query.filter_by(email="admin@example.com").one()

    with app.test_request_context("/"):
        login_user(user)

    assert events == ["logged_in"]
