import os

def env_bool(key, default=False):
    return os.getenv(key, str(default)).lower() in ("1", "true", "yes", "on")

def env_int(key, default):
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default

DEBUG_PRINT = env_bool("DEBUG_PRINT")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Gender from IC parity is only applied when a deployment opts in
IC_INFER_GENDER = env_bool("IC_INFER_GENDER")

UPLOAD_SAMPLE_SIZE = env_int("UPLOAD_SAMPLE_SIZE", 5)
UPLOAD_MAX_BYTES = env_int("UPLOAD_MAX_BYTES", 10 * 1024 * 1024)
UPLOAD_SESSION_TTL_SECONDS = env_int("UPLOAD_SESSION_TTL_SECONDS", 3600)
