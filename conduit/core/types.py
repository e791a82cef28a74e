"""Type aliases for dynamic data structures throughout the application.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning for request bodies and multipart upload
fields.
"""

# JSON-compatible type that represents any valid JSON value
# Used for request bodies and decoded response payloads
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Scalar values accepted as extra multipart fields; coerced to strings on send
type FormScalar = str | int | float | bool
