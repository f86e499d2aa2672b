from typing import Optional

from class_defs.upstream_def import ErrorCode

SUGGESTION = "The AI model may be starting up. Please try again in a few seconds."

LOADING_MESSAGES = [
    (5, "Analyzing..."),
    (15, "Model is starting up, please wait..."),
    (30, "Still processing, almost done..."),
]

LONG_WAIT_MESSAGE = "This is taking longer than expected, but still trying..."


def loading_message(elapsed_seconds: float) -> str:
    """
    Progress text shown while an upload waits on a possibly cold model.

    Args:
        elapsed_seconds: seconds since the upload was sent

    Returns:
        str: message for the current wait bracket
    """
    for limit, message in LOADING_MESSAGES:
        if elapsed_seconds < limit:
            return message
    return LONG_WAIT_MESSAGE


def failure_hint(code: Optional[str], details: Optional[str]) -> dict:
    """
    Maps a failure to the title/message/action triple rendered on the
    frontend's error card.
    """
    details = details or ""
    if details.startswith("Failed after"):
        return {
            "title": "Model Starting Up",
            "message": "The AI model is waking up from sleep. Please try again in 10-15 seconds.",
            "action": "Try Again",
        }

    if code == ErrorCode.TIMEOUT or "timeout" in details.lower():
        return {
            "title": "Request Timeout",
            "message": "The request took too long. The model might be cold starting.",
            "action": "Try Again",
        }

    if "HTTP 503" in details or code == ErrorCode.CONNECTION_ERROR:
        return {
            "title": "Model Unavailable",
            "message": "The AI model is temporarily unavailable. Please try again shortly.",
            "action": "Retry",
        }

    return {
        "title": "Request Failed",
        "message": details or "An unexpected error occurred.",
        "action": "Try Again",
    }
