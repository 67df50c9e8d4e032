from flask import Blueprint

rolls_bp = Blueprint("rolls", __name__)

from . import routes  # noqa: E402,F401
