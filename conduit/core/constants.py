"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Client defaults
DEFAULT_BACKEND_URL = "http://localhost:8000"
DEFAULT_PUBLIC_PREFIX = "/api"
DEFAULT_REQUEST_TIMEOUT_MS = 10000

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"

# Multipart field that carries the uploaded file
UPLOAD_FILE_FIELD = "file"

# Security
DEFAULT_HSTS_MAX_AGE = 31536000  # 1 year in seconds

# Security and redaction
REDACTED = "[REDACTED]"
