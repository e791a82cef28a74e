"""Edge helpers: orjson-backed JSON responses."""
