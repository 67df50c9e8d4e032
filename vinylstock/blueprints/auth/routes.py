from urllib.parse import urlsplit

from flask import render_template, request, redirect, url_for, flash
from flask_login import login_user, logout_user, current_user

from vinylstock.models import User
from . import auth_bp


def _safe_next(nxt):
    # only local paths
    if not nxt or urlsplit(nxt).netloc or not nxt.startswith("/"):
        return url_for("rolls.dashboard")
    return nxt


@auth_bp.get("/login")
def login():
    if current_user.is_authenticated:
        return redirect(url_for("rolls.dashboard"))
    return render_template("auth/login.html", next=request.args.get("next", ""))


@auth_bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""

    u = User.query.filter_by(email=email, active=True).first()
    if not u or not u.check_password(password):
        flash("Invalid email or password.", "danger")
        return redirect(url_for("auth.login", next=request.args.get("next", "")))

    login_user(u)
    return redirect(_safe_next(request.args.get("next")))


@auth_bp.get("/logout")
def logout():
    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))
