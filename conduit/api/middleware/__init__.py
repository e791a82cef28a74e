"""Edge middleware for cross-cutting request/response concerns.

- **SecurityHeadersMiddleware**: Adds X-Frame-Options, X-Content-Type-Options,
  HSTS and related headers to every response
- **RequestContextMiddleware**: Manages correlation IDs
- **RequestLoggingMiddleware**: Structured request logging with timing
- **PathRewriteMiddleware**: Forwards rewritten paths to the backend origin
- **error_handler**: Exception handlers producing uniform error bodies

Execution order for an inbound request:
1. Security headers (first to process, last to respond)
2. Request context (sets up correlation IDs)
3. Request logging (logs with correlation context)
4. Path rewrite (forwards or passes to local routes)
"""
