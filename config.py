from dotenv import load_dotenv
import os

load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"


def _origins(raw):
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Config:
    ## Upstream inference services (Hugging Face Spaces)
    HF_DISEASE_URL = os.environ.get("HF_DISEASE_URL", "https://Happy-1234-dis-32-happy.hf.space/predict")
    HF_PEST_URL = os.environ.get("HF_PEST_URL", "https://Happy-1234-pest-2-happy.hf.space/predict-pest")

    ## Retry policy applied to every upstream call
    UPSTREAM_MAX_ATTEMPTS = int(os.environ.get("UPSTREAM_MAX_ATTEMPTS", 3))
    UPSTREAM_TIMEOUT_MS = int(os.environ.get("UPSTREAM_TIMEOUT_MS", 50000))
    UPSTREAM_BASE_DELAY_MS = int(os.environ.get("UPSTREAM_BASE_DELAY_MS", 1000))
    UPSTREAM_MAX_DELAY_MS = int(os.environ.get("UPSTREAM_MAX_DELAY_MS", 5000))

    MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", 10 * 1024 * 1024))  # 10MB
    # werkzeug rejects anything bigger than this before the route runs
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 64 * 1024

    ## Explicit allow-list; there is no allow-all fallback
    CORS_ALLOWED_ORIGINS = _origins(os.environ.get("CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS))

    LOGGER_LEVEL = os.environ.get("LOGGER_LEVEL", "INFO")
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "False").lower() == "true"
    LOG_FILE = os.environ.get("LOG_FILE", "agrivision.log")
