from flask import Blueprint, request, jsonify

from utils.auth_context import login_required
from utils.availability import day_availability, is_available
from utils.booking_store import query_confirmed_bookings
from utils.checkout import parse_date
from utils.pricing import pricing_table

availability_bp = Blueprint("availability", __name__)


# ---------- booking page: whole-day grid ----------
@availability_bp.get("/availability")
@login_required
def get_day_availability():
    day = parse_date(request.args.get("date"))
    confirmed = query_confirmed_bookings(day)
    return jsonify(date=day.isoformat(), availability=day_availability(confirmed)), 200


# ---------- single (date, slot, room) check ----------
@availability_bp.post("/availability/check")
@login_required
def check_availability():
    data = request.get_json(silent=True) or {}
    day = parse_date(data.get("date"))
    slot = data.get("slot") or ""
    room = data.get("room") or ""

    confirmed = query_confirmed_bookings(day)
    return jsonify(
        date=day.isoformat(),
        slot=slot,
        room=room,
        available=is_available(confirmed, slot, room),
    ), 200


@availability_bp.get("/pricing")
def get_pricing():
    return jsonify(pricing_table()), 200
