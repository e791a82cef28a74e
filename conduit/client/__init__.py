"""Typed HTTP request client.

- **ApiClient**: get/post/put/patch/delete/upload_file, never raises
- **RequestExecutor**: builds, sends, times out and classifies one request
- **ResponseEnvelope**: success/data/error/message result of every call
- **RequestSpec / UploadPayload**: per-call request descriptions
"""

from conduit.client.api_client import ApiClient
from conduit.client.envelope import FailureKind, ResponseEnvelope
from conduit.client.executor import RequestExecutor
from conduit.client.request import HttpMethod, RequestSpec, UploadPayload

__all__ = [
    "ApiClient",
    "FailureKind",
    "HttpMethod",
    "RequestExecutor",
    "RequestSpec",
    "ResponseEnvelope",
    "UploadPayload",
]
