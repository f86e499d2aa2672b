from typing import Any, Optional, Tuple

from urllib3.filepost import encode_multipart_formdata

from class_defs.upstream_def import UpstreamRequest
from infrastructure.relay_errors import InvalidInputError
from services.upstream_service import ResilientUpstreamCall

DEFAULT_FILENAME = "upload"
DEFAULT_MIME_TYPE = "application/octet-stream"
FILE_FIELD = "file"


def build_upstream_request(target_url: str, payload: Optional[bytes], filename: Optional[str] = None,
                           mime_type: Optional[str] = None) -> UpstreamRequest:
    """
    Validates an inbound upload and wraps it for relaying.

    Raises:
        InvalidInputError: payload missing or empty. Raised before any
        network activity.
    """
    if not payload:
        raise InvalidInputError("Image file is required")
    if not target_url:
        raise ValueError("target_url is required")

    return UpstreamRequest(
        target_url=target_url,
        binary_payload=bytes(payload),
        filename=filename or DEFAULT_FILENAME,
        mime_type=mime_type or DEFAULT_MIME_TYPE,
    )


def encode_multipart(upstream_request: UpstreamRequest, field_name: str = FILE_FIELD) -> Tuple[bytes, str]:
    """
    Encodes the upload as a single-file multipart/form-data body.

    Returns:
        (body, content_type) where content_type carries the boundary.
    """
    fields = {
        field_name: (
            upstream_request.filename,
            upstream_request.binary_payload,
            upstream_request.mime_type,
        )
    }
    return encode_multipart_formdata(fields)


def relay(upstream_request: UpstreamRequest, call: ResilientUpstreamCall, field_name: str = FILE_FIELD) -> Any:
    """
    POSTs the upload to its target through `call`. The body is encoded once
    and the same bytes are sent on every attempt.

    Returns:
        Decoded JSON body from the upstream.
    """
    body, content_type = encode_multipart(upstream_request, field_name)
    return call.execute(
        "POST",
        upstream_request.target_url,
        data=body,
        headers={"Content-Type": content_type},
    )
