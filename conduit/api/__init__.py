"""Edge HTTP layer built on FastAPI.

- **main**: Application factory and lifecycle management
- **routing**: Rewrite rules and the first-match-wins router
- **middleware**: Security headers, correlation IDs, request logging,
  path-rewrite forwarding and exception handlers
- **schemas**: Error body returned for edge-side failures
- **utils**: orjson-backed JSON responses
"""
