"""
Shared utilities for the OIDC Gateway.

- config: Process settings via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- test_helpers: Fake identity provider and token factories for tests

Gateway logic lives in oidc_gateway; do not import from it here.
"""
