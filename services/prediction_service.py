from typing import Any, Callable, Mapping, Optional

from class_defs.upstream_def import RetryPolicy
from infrastructure.cancellation import CancelToken
from infrastructure.logger import get_logger
from infrastructure.relay_errors import InvalidInputError
from services.multipart_relay import build_upstream_request, relay
from services.upstream_service import ResilientUpstreamCall

logger = get_logger(__name__)

UPSTREAM_URL_KEYS = {
    "disease": "HF_DISEASE_URL",
    "pest": "HF_PEST_URL",
}


def has_prediction(body: Any) -> bool:
    """ An upstream body with nothing in it is not a prediction. """
    return body not in (None, {}, [], "")


def upstream_url(kind: str, config: Mapping[str, Any]) -> str:
    key = UPSTREAM_URL_KEYS.get(kind)
    if not key:
        raise InvalidInputError(f"Unknown prediction type: {kind}", status_code=404)
    return config.get(key, "")


def predict(kind: str, file_storage, config: Mapping[str, Any], cancel_token: Optional[CancelToken] = None,
            observer: Optional[Callable] = None, session_factory=None, sleeper=None) -> Any:
    """
    Relays one uploaded image to the `kind` inference service.

    Args:
        kind: "disease" or "pest"
        file_storage: werkzeug FileStorage from request.files, or None
        config: Flask config mapping
        cancel_token: token of the inbound request

    Returns:
        The upstream JSON body, unchanged.

    Raises:
        InvalidInputError: missing, empty or oversized upload, unknown kind
        UpstreamCallError / UpstreamCancelled: from the upstream call
    """
    target_url = upstream_url(kind, config)

    if file_storage is None:
        raise InvalidInputError("Image file is required")

    payload = file_storage.read()
    max_bytes = int(config.get("MAX_UPLOAD_BYTES", 0) or 0)
    if max_bytes and len(payload) > max_bytes:
        size_mb = len(payload) / (1024 * 1024)
        max_mb = max_bytes / (1024 * 1024)
        raise InvalidInputError(f"Image size ({size_mb:.1f}MB) exceeds limit of {max_mb:.0f}MB", status_code=413)

    upstream_request = build_upstream_request(
        target_url,
        payload,
        filename=file_storage.filename,
        mime_type=file_storage.mimetype,
    )
    logger.info("%s prediction request received: %s", kind.capitalize(), upstream_request.to_dict())

    call_kwargs = {
        "observer": observer,
        "cancel_token": cancel_token,
        "sleeper": sleeper,
        "accept": has_prediction,
    }
    if session_factory is not None:
        call_kwargs["session_factory"] = session_factory

    call = ResilientUpstreamCall(RetryPolicy.from_config(config), **call_kwargs)
    result = relay(upstream_request, call)
    logger.info("%s prediction successful", kind.capitalize())
    return result
