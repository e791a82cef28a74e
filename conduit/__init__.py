"""Conduit - typed HTTP client and routing edge for single-page applications.

Conduit gives application code one uniform way to call a separately deployed
backend API and routes same-origin-looking paths to that backend.

Architecture Overview:
- **Client Layer**: ApiClient / RequestExecutor returning a ResponseEnvelope
  for every call; failures never raise across the client boundary
- **API Layer**: FastAPI edge that rewrites ``/api/*`` to the backend origin
  and adds security headers to every response
- **Core Layer**: Configuration, logging, tracing, exceptions and context
"""
