"""JSON response class using orjson serialization.

``ORJSONResponse`` is the default response class of the edge application,
so health, info and error bodies are all rendered by orjson.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """FastAPI response class rendering content with orjson."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize; Pydantic models are dumped first.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")
        return orjson.dumps(content, option=orjson.OPT_SORT_KEYS)
