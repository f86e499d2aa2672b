from flask import Blueprint, current_app, g, jsonify, request

from infrastructure.cancellation import CancelToken
from infrastructure.disconnect import watch_client
from infrastructure.logger import get_logger
from infrastructure.relay_errors import handle_relay_errors
from services.prediction_service import predict

logger = get_logger(__name__)

predictions_bp = Blueprint("predictions", __name__, url_prefix="/api")


def request_cancel_token() -> CancelToken:
    """
    Cancel token owned by the current request, cancelled when the client
    closes its connection. Call it only after request.files has been read;
    the watcher treats any later EOF on the socket as a hang-up.
    """
    token = getattr(g, "cancel_token", None)
    if token is None:
        token = CancelToken()
        g.cancel_token = token
        g.disconnect_watcher = watch_client(request.environ, token)
    return token


@predictions_bp.teardown_app_request
def stop_disconnect_watcher(exc=None):
    g.pop("cancel_token", None)
    watcher = g.pop("disconnect_watcher", None)
    if watcher is not None:
        watcher.stop()


@predictions_bp.route("/disease/predict", methods=["POST"])
@handle_relay_errors("Failed to predict disease")
def predict_disease():
    """
    Relays the multipart field "file" to the disease classifier and returns
    its JSON verbatim.
    """
    upload = request.files.get("file")
    result = predict("disease", upload, current_app.config, cancel_token=request_cancel_token())
    return jsonify(result), 200


@predictions_bp.route("/pest/predict", methods=["POST"])
@handle_relay_errors("Failed to predict pest")
def predict_pest():
    upload = request.files.get("file")
    result = predict("pest", upload, current_app.config, cancel_token=request_cancel_token())
    return jsonify(result), 200
