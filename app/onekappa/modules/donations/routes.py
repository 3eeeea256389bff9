from __future__ import annotations

from flask import Blueprint, jsonify

from app.onekappa.db import db_session
from app.onekappa.modules.donations.service import total_donations_cents

bp = Blueprint("donations", __name__)


@bp.get("/total")
def donations_total():
    return jsonify({"total_donations_cents": total_donations_cents(db_session())})
