"""Blueprint registration and the public catalog routes."""
from flask import Blueprint, jsonify

from models import DEFAULT_ROOMS, REPORT_STATUSES, SNAG_PRIORITIES, SNAG_STATUSES, SNAG_TEMPLATES
from utils.aggregator import SORT_KEYS, SORT_ORDERS
from .auth import auth_bp
from .reports import reports_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    return jsonify(
        {
            "service": "snagging-report-writer",
            "reportStatuses": list(REPORT_STATUSES),
            "snagPriorities": list(SNAG_PRIORITIES),
            "snagStatuses": list(SNAG_STATUSES),
            "sortKeys": list(SORT_KEYS),
            "sortOrders": list(SORT_ORDERS),
        }
    )


@main_bp.route("/api/templates", methods=["GET"])
def templates():
    return jsonify({category: list(items) for category, items in SNAG_TEMPLATES.items()})


@main_bp.route("/api/rooms", methods=["GET"])
def room_catalog():
    return jsonify(list(DEFAULT_ROOMS))


__all__ = ["main_bp", "auth_bp", "reports_bp"]
