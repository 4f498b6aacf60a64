"""Core infrastructure package for shared application functionality.

This package provides the foundational components used across all layers
of the Civitas application:

- **config**: Centralized configuration management with environment support
- **context**: Per-request state (start time, correlation id, scoped logger)
- **exceptions**: Structured exception hierarchy with error codes
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Structured logging on Loguru
- **observability**: Distributed tracing with OpenTelemetry
- **timing**: Human-readable durations for log output
- **types**: Type aliases for better code clarity
"""
