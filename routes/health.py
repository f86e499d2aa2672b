import math
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request

from utils.cold_start import loading_message

health_bp = Blueprint("health", __name__)


@health_bp.route("/", methods=["GET"])
def index():
    return jsonify({"message": "AgriVision API is running"}), 200


@health_bp.route("/health", methods=["GET"])
def health():
    """
    Lightweight liveness check. External pingers hit this to keep the
    instance from going cold.
    """
    timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return jsonify({"status": "ok", "timestamp": timestamp}), 200


@health_bp.route("/api/inference/loading-message", methods=["GET"])
def inference_loading_message():
    raw = request.args.get("elapsed", "0")
    try:
        elapsed = float(raw)
    except ValueError:
        return jsonify({"error": "elapsed must be a number of seconds"}), 400
    if math.isnan(elapsed) or elapsed < 0:
        return jsonify({"error": "elapsed must not be negative"}), 400

    return jsonify({"message": loading_message(elapsed)}), 200
