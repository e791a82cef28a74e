"""Core package for shared application functionality.

- **config**: Pydantic Settings for client, edge, logging and tracing
- **constants**: Defaults shared by client and edge
- **context**: Correlation ID propagation across async boundaries
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Loguru setup with console and JSON formatters
- **observability**: OpenTelemetry tracing
- **types**: Type aliases for JSON bodies and form fields
"""
