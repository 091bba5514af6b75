"""
DeployCheck Constants

Centralized constants for magic values, defaults, and configuration.
"""

# Default SSH Configuration
DEFAULT_SSH_USER = "root"
DEFAULT_SSH_KEY_PATH = None
SSH_CONNECTION_TIMEOUT = 10
SSH_COMMAND_TIMEOUT = 30
RSYNC_TIMEOUT = 300

# Default Build Configuration
DEFAULT_BUILD_PROFILE = "lto"
DEFAULT_BUILD_DIR = "."
DEFAULT_BINARY_NAME = "easyp"
BUILD_SOURCE_GLOBS = ("src/**/*", "*/src/**/*")

# Default Service Configuration
DEFAULT_REMOTE_DIR = "/opt/easyp"
DEFAULT_WEB_ROOT = "/var/www/html"
DEFAULT_CERT_ROOT = "/var/lib/easyp/certs"
CERT_AUTHORITY_MODES = ("staging", "production")
DEFAULT_UNPRIVILEGED_USER = "nobody"
SERVER_LOG_NAME = "server.log"
STAGING_FLAG = "--staging"

# Port Configuration
HTTP_PORT = 80
PRIVILEGED_HTTPS_PORT = 443
UNPRIVILEGED_HTTPS_PORT = 9443

# Timing Configuration (seconds)
DEPLOY_SETTLE_SECONDS = 10
CERT_SETTLE_SECONDS = 3
STAGE_PAUSE_SECONDS = 1
RESTART_MAX_ATTEMPTS = 15
RESTART_RETRY_DELAY = 1
PORT_PROBE_TIMEOUT = 5
CERT_FETCH_TIMEOUT = 15

# HTTP probe timeouts
HTTP_CONNECT_TIMEOUT = 5
HTTP_MAX_TIME = 10
HTTPS_CONNECT_TIMEOUT = 10
HTTPS_MAX_TIME = 15
CONTENT_CONNECT_TIMEOUT = 15
CONTENT_MAX_TIME = 20

# Primary HTTPS configuration
HTTPS_PRIMARY_CIPHERS = (
    "ECDHE+AESGCM:ECDHE+CHACHA20:DHE+AESGCM:DHE+CHACHA20:!aNULL:!MD5:!DSS"
)
HTTPS_PRIMARY_RETRIES = 2
HTTPS_PRIMARY_RETRY_DELAY = 1

# Fallback HTTPS configuration
HTTPS_FALLBACK_RETRIES = 1
HTTPS_FALLBACK_RETRY_DELAY = 1

# Content validation
HTML_MARKERS = ("<html", "<!doctype")
CONTENT_PREVIEW_LINES = 5

# Diagnostics
LOG_TAIL_LINES = 20
STARTUP_LOG_LINES = 5

# Local state
DEFAULT_HOST_FILE = ".remote"
DEFAULT_CONFIG_FILE = "deploycheck.yml"
DEFAULT_LOG_DIR = "logs"

# Environment overrides
ENV_STAGING = "DEPLOYCHECK_STAGING"
ENV_PROFILE = "DEPLOYCHECK_PROFILE"
ENV_EXTRA_FLAGS = "DEPLOYCHECK_EXTRA_FLAGS"

# CLI
QUIT_AFTER_TOKEN = "quitafter"

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
