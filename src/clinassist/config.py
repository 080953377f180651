# Environment-driven configuration constants, centralized so every module imports the same values.

import os

# Provider selection and credentials (settings file values are overridden by these when set)
PROVIDER = os.environ.get("CLINASSIST_PROVIDER", "anthropic").strip().lower() or "anthropic"
API_KEY = os.environ.get("CLINASSIST_API_KEY")
MODEL = os.environ.get("CLINASSIST_MODEL", "").strip()
BASE_URL = os.environ.get("CLINASSIST_BASE_URL", "").strip()

# Network bounds for the streaming read loop: (connect, seconds between received bytes)
CONNECT_TIMEOUT_SEC = float(os.environ.get("CLINASSIST_CONNECT_TIMEOUT_SEC", "10") or "10")
READ_TIMEOUT_SEC = float(os.environ.get("CLINASSIST_READ_TIMEOUT_SEC", "60") or "60")

# Sampling defaults used when a command does not override them
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 4096

# Secret/config store location
SETTINGS_FILE = os.environ.get(
    "CLINASSIST_SETTINGS_FILE",
    os.path.join(os.path.expanduser("~"), ".clinassist", "settings.yaml"),
)

# Optional: directory receiving a .http dump of every outbound request (empty disables)
HTTP_DUMP_DIR = os.environ.get("CLINASSIST_HTTP_DUMP_DIR", "").strip()

# Emit [LOG] lines from Context.log
VERBOSE = os.environ.get("CLINASSIST_VERBOSE", "").strip().lower() in ("1", "true", "yes", "on")
