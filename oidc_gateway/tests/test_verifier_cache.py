"""
Unit tests for VerifierCache.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from oidc_gateway.app.auth import ProviderDiscovery, VerifierCache, VerifierState
from oidc_gateway.app.models import AuthConfig
from shared.errors import ProviderUnavailableError
from shared.metrics import MetricsCollector
from shared.test_helpers import TEST_ISSUER


class TestVerifierCache:
    """Test cases for VerifierCache."""

    @pytest.fixture
    def cache(self, provider):
        return VerifierCache(ProviderDiscovery(http_client=provider.client()))

    @pytest.mark.asyncio
    async def test_state_transitions_to_ready(self, cache, auth_config):
        assert cache.state(auth_config) is VerifierState.UNINITIALIZED

        verifier = await cache.get(auth_config)

        assert cache.state(auth_config) is VerifierState.READY
        assert verifier.audience == auth_config.client_id

    @pytest.mark.asyncio
    async def test_state_discovering_while_in_flight(self, provider, cache, auth_config):
        provider.latency = 0.05

        task = asyncio.ensure_future(cache.get(auth_config))
        await asyncio.sleep(0)

        assert cache.state(auth_config) is VerifierState.DISCOVERING
        await task
        assert cache.state(auth_config) is VerifierState.READY

    @pytest.mark.asyncio
    async def test_verifier_reused(self, provider, cache, auth_config):
        """A READY verifier serves later requests without re-discovery."""
        first = await cache.get(auth_config)
        second = await cache.get(auth_config)

        assert first is second
        assert provider.discovery_calls == 1

    @pytest.mark.asyncio
    async def test_equal_configs_share_verifier(self, provider, cache, auth_config):
        """AuthConfigs are keyed by value, not identity."""
        twin = AuthConfig(
            issuer=auth_config.issuer,
            client_id=auth_config.client_id,
            client_secret=auth_config.client_secret,
        )

        assert await cache.get(auth_config) is await cache.get(twin)
        assert provider.discovery_calls == 1

    @pytest.mark.asyncio
    async def test_distinct_configs_get_distinct_verifiers(self, provider, cache, auth_config):
        other = AuthConfig(issuer=TEST_ISSUER, client_id="another-client")

        first = await cache.get(auth_config)
        second = await cache.get(other)

        assert first is not second
        assert second.audience == "another-client"
        assert provider.discovery_calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_use_discovers_once(self, provider, cache, auth_config):
        """N concurrent first requests trigger exactly one discovery."""
        provider.latency = 0.02

        verifiers = await asyncio.gather(*(cache.get(auth_config) for _ in range(25)))

        assert provider.discovery_calls == 1
        assert provider.jwks_calls == 1
        assert all(verifier is verifiers[0] for verifier in verifiers)

    @pytest.mark.asyncio
    async def test_failed_discovery_is_retried_on_next_request(self, provider, cache, auth_config):
        provider.available = False

        with pytest.raises(ProviderUnavailableError):
            await cache.get(auth_config)
        assert cache.state(auth_config) is VerifierState.FAILED

        provider.available = True
        verifier = await cache.get(auth_config)

        assert cache.state(auth_config) is VerifierState.READY
        assert verifier is not None
        assert provider.discovery_calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_failures_share_one_attempt(self, provider, cache, auth_config):
        provider.available = False
        provider.latency = 0.02

        results = await asyncio.gather(*(cache.get(auth_config) for _ in range(10)), return_exceptions=True)

        assert all(isinstance(result, ProviderUnavailableError) for result in results)
        assert provider.discovery_calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_abort_discovery(self, provider, cache, auth_config):
        provider.latency = 0.05

        waiter = asyncio.ensure_future(cache.get(auth_config))
        other = asyncio.ensure_future(cache.get(auth_config))
        await asyncio.sleep(0.01)
        waiter.cancel()

        verifier = await other

        assert verifier is not None
        assert provider.discovery_calls == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_rediscovery(self, provider, cache, auth_config):
        await cache.get(auth_config)

        cache.invalidate(auth_config)

        assert cache.state(auth_config) is VerifierState.UNINITIALIZED
        await cache.get(auth_config)
        assert provider.discovery_calls == 2

    @pytest.mark.asyncio
    async def test_warmup_tolerates_failures(self, provider, auth_config):
        metrics = MetricsCollector("gateway")
        cache = VerifierCache(ProviderDiscovery(http_client=provider.client(), metrics=metrics))
        broken = AuthConfig(issuer="https://unknown.example.com", client_id="x")

        await cache.warmup([auth_config, broken])

        assert cache.state(auth_config) is VerifierState.READY
        assert cache.state(broken) is VerifierState.FAILED
        assert metrics.sample("provider_discoveries_total", status="ok") == 1.0
        assert metrics.sample("provider_discoveries_total", status="error") == 1.0

    @pytest.mark.asyncio
    async def test_warmup_logs_unexpected_errors(self, cache, auth_config):
        """Non-gateway failures during warmup are logged with their traceback."""
        failure = RuntimeError("boom")
        cache.logger = MagicMock()

        with patch.object(cache.discovery, "discover", AsyncMock(side_effect=failure)):
            await cache.warmup([auth_config])

        cache.logger.error.assert_called_once()
        assert cache.logger.error.call_args.kwargs["exc_info"] is failure
        assert cache.logger.error.call_args.kwargs["issuer"] == auth_config.issuer
        assert cache.state(auth_config) is VerifierState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_warmup_logs_provider_failures_as_warnings(self, provider, cache, auth_config):
        provider.available = False
        cache.logger = MagicMock()

        await cache.warmup(iter([auth_config]))

        cache.logger.warning.assert_called_once()
        assert cache.logger.warning.call_args.kwargs["issuer"] == auth_config.issuer
        cache.logger.error.assert_not_called()
