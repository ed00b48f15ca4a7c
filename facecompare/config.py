import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name, default):
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name, default):
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- External services ---
GOOGLE_CLIENT_EMAIL = os.getenv("GOOGLE_CLIENT_EMAIL")
# Private keys pasted into env files keep their newlines escaped
GOOGLE_PRIVATE_KEY = (os.getenv("GOOGLE_PRIVATE_KEY") or "").replace("\\n", "\n") or None
GOOGLE_PROJECT_ID = os.getenv("GOOGLE_PROJECT_ID")
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_MAX_TOKENS = int(_env_float("OPENAI_MAX_TOKENS", 500))
OPENAI_TEMPERATURE = _env_float("OPENAI_TEMPERATURE", 0.7)

FACE_DETECTION_MAX_RESULTS = int(_env_float("FACE_DETECTION_MAX_RESULTS", 10))
DOMINANT_COLOR_COUNT = int(_env_float("DOMINANT_COLOR_COUNT", 3))

# --- Commentary ---
COMMENTARY_LANGUAGE = os.getenv("COMMENTARY_LANGUAGE", "Japanese")
COMMENTARY_MAX_CHARS = int(_env_float("COMMENTARY_MAX_CHARS", 400))
COMMENTARY_FALLBACK = "Commentary could not be generated for this comparison."

# --- Geometry ---
# Approximate conversion used by the pixel measurement family
PIXEL_TO_MM = _env_float("PIXEL_TO_MM", 0.1)
NORMALIZATION_EPSILON = _env_float("NORMALIZATION_EPSILON", 1e-9)
ENABLE_REALIGNMENT = _env_bool("ENABLE_REALIGNMENT", True)
ALIGNED_JPEG_QUALITY = 90

# --- Skin ---
# Midpoint of the 0-255 saturation scale; "balanced" saturation moves toward it
SKIN_SATURATION_TARGET = _env_float("SKIN_SATURATION_TARGET", 127.5)

# --- Composite weights ---
LIFT_INDEX_WEIGHTS = {
    'face_lift_angle': _env_float("LIFT_INDEX_ANGLE_WEIGHT", 0.6),
    'lower_face_ratio': _env_float("LIFT_INDEX_RATIO_WEIGHT", 0.4),
}
OVERALL_SCORE_BASELINE = 50.0
OVERALL_SCORE_WEIGHTS = {
    'cheek_droop_index': 0.6,
    'jaw_line_angle': 0.4,
}
SLIM_INDEX_WEIGHTS = {
    'cheek_width': 0.4,
    'jaw_width': 0.3,
    'face_area': 0.3,
}
SLIM_INDEX_THRESHOLD = 5.0

# --- API ---
ALLOWED_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp"]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(_env_float("PORT", 8000))
