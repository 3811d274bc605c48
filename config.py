"""Configuration settings for the Distraction Detection client."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment ("true", "1", "yes")."""
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


# Load environment variables from .env file (only in development)
if not is_bundled():
    # Explicitly load from the project root (where config.py lives)
    # This ensures .env is found regardless of current working directory
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# --- Remote service ---
# Address of the Socket.IO classification service. No default in production:
# a missing value is reported as a status message, not a crash.
BACKEND_URL = os.getenv("BACKEND_URL", "")

# Used instead of BACKEND_URL when running the local testing variant
LOCAL_BACKEND_URL = "http://localhost:5000"

# Local testing variant: no provisioning call, localhost fallback address
LOCAL_MODE = _get_bool("LOCAL_MODE")

# One-time provisioning endpoint that wakes the backend before connecting
LAUNCH_URL = os.getenv("LAUNCH_URL", "https://launch-ec2instance-production.up.railway.app/launch")
LAUNCH_REQUEST_TIMEOUT = 30.0  # Seconds to wait for the launch endpoint
LAUNCH_SETTLE_SECONDS = 3.0  # Wait after "launched" before the server is treated as ready


def get_backend_url(local: bool = False) -> str:
    """
    Resolve the backend address.

    Args:
        local: Whether the local testing variant is active.

    Returns:
        Backend URL, or empty string if none is configured.
    """
    if BACKEND_URL:
        return BACKEND_URL
    if local:
        return LOCAL_BACKEND_URL
    return ""


# --- Transport ---
SOCKETIO_PATH = "socket.io"
SOCKETIO_TRANSPORTS = ["websocket"]
RECONNECTION_ATTEMPTS = 5
RECONNECTION_DELAY = 1.0  # Seconds, fixed between attempts
CONNECT_TIMEOUT = 10.0  # Seconds
SSL_VERIFY = _get_bool("SSL_VERIFY")  # Off by default: the backend uses a self-signed certificate

# Channels
CHANNEL_FRAME = "frame"
CHANNEL_FOCUS_STATUS = "focus_status"
CHANNEL_ERROR = "error"

# --- Timing ---
CAPTURE_INTERVAL = 0.7  # Seconds between frame captures
ACCUMULATOR_INTERVAL = 0.01  # Seconds between duration updates

# --- Camera ---
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))
FRAME_WIDTH = 1280
FRAME_HEIGHT = 720
JPEG_QUALITY = 92  # Matches the browser's default toDataURL("image/jpeg") quality

# --- Status text shown to the user ---
STATUS_IDLE = "Click start to begin inferences"
STATUS_SERVER_LOADING = "Server loading..."
STATUS_CONNECTED = "Connected to server"
STATUS_DISCONNECTED = "Disconnected from server"
STATUS_CONNECTION_ERROR = "Connection error: {reason}"
STATUS_NO_BACKEND_URL = "Error: No backend URL configured"
STATUS_PROCESSING_ERROR = "Error processing frame"
STATUS_WEBCAM_ERROR = "Error accessing webcam"

# Remote label that maps to the distracted bucket
REMOTE_DISTRACTED_STATUS = "Distracted"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
