"""Package initialization for apm-normalizer.

Telemetry normalization for an APM agent: log values, HTTP request/response
context, exceptions and stack frames become bounded, structured records.
See `apm_normalizer.parsers` for the public entry points.
"""

__all__ = []
