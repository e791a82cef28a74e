"""API-related constants."""

# HTTP Headers
REQUEST_ID_HEADER = "X-Request-ID"

# Headers that describe a single connection and are never forwarded
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}

# Dropped from relayed backend responses: httpx already decoded the body
RELAYED_RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {
    "content-encoding",
    "content-length",
}

# Dropped from forwarded requests: httpx recomputes them for the new target
FORWARDED_REQUEST_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}
