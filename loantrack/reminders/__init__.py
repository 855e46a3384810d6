from flask import Blueprint

reminders_bp = Blueprint('reminders', __name__)

from loantrack.reminders import routes  # noqa: E402,F401
