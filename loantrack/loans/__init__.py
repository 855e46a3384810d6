from flask import Blueprint

loans_bp = Blueprint('loans', __name__)

from loantrack.loans import routes  # noqa: E402,F401
