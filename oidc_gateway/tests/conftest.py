"""
Shared fixtures for gateway tests.
"""

import pytest

from oidc_gateway.app.models import AuthConfig
from shared.test_helpers import (
    TEST_CLIENT_ID,
    TEST_ISSUER,
    FakeIdentityProvider,
    create_signing_key,
)


@pytest.fixture(scope="session")
def signing_key():
    """RSA signing key (generated once; key generation is slow)."""
    return create_signing_key("test-key-1")


@pytest.fixture(scope="session")
def rotated_key():
    """Second key used to simulate rotation and foreign signatures."""
    return create_signing_key("test-key-2")


@pytest.fixture
def provider(signing_key):
    """Fake identity provider publishing ``signing_key``."""
    return FakeIdentityProvider(keys=[signing_key])


@pytest.fixture
def auth_config():
    return AuthConfig(issuer=TEST_ISSUER, client_id=TEST_CLIENT_ID, client_secret="s3cret")
