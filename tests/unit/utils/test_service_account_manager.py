"""Unit tests for ServiceAccountManager."""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from managed_serviceaccount.constants import (
    DEFAULT_REMOTE_CALL_TIMEOUT,
    LABEL_KEY_IS_MANAGED_SERVICEACCOUNT,
)
from managed_serviceaccount.errors import KubernetesAPIError, ReconciliationError
from managed_serviceaccount.utils.service_account_manager import (
    IssuedToken,
    ServiceAccountManager,
)

from ..conftest import SPOKE_NAMESPACE


@pytest.fixture
def mock_v1():
    return MagicMock()


@pytest.fixture
def manager(mock_v1):
    manager = ServiceAccountManager(k8s_client=MagicMock(), namespace=SPOKE_NAMESPACE)
    manager._v1 = mock_v1
    return manager


class TestEnsureServiceAccount:
    """Test ServiceAccount creation on the managed cluster."""

    @pytest.mark.asyncio
    async def test_creates_labelled_service_account(self, manager, mock_v1):
        created = await manager.ensure_service_account("my-sa")

        assert created is True
        mock_v1.create_namespaced_service_account.assert_called_once()
        kwargs = mock_v1.create_namespaced_service_account.call_args.kwargs
        assert kwargs["namespace"] == SPOKE_NAMESPACE
        assert kwargs["_request_timeout"] == DEFAULT_REMOTE_CALL_TIMEOUT
        metadata = kwargs["body"]["metadata"]
        assert metadata["name"] == "my-sa"
        assert metadata["namespace"] == SPOKE_NAMESPACE
        assert metadata["labels"] == {LABEL_KEY_IS_MANAGED_SERVICEACCOUNT: "true"}

    @pytest.mark.asyncio
    async def test_already_exists_is_success(self, manager, mock_v1):
        mock_v1.create_namespaced_service_account.side_effect = ApiException(
            status=409, reason="AlreadyExists"
        )

        assert await manager.ensure_service_account("my-sa") is False

    @pytest.mark.asyncio
    async def test_idempotent_against_real_semantics(self, service_account_manager, spoke_api):
        assert await service_account_manager.ensure_service_account("my-sa") is True
        assert await service_account_manager.ensure_service_account("my-sa") is False
        assert len(spoke_api.service_accounts) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 422, 500])
    async def test_other_failures_raise_retryable_error(self, manager, mock_v1, status):
        mock_v1.create_namespaced_service_account.side_effect = ApiException(
            status=status, reason="Nope"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await manager.ensure_service_account("my-sa")

        error = exc_info.value
        assert error.retryable is True
        assert error.reason == "Nope"
        assert f"Failed ensuring service account {SPOKE_NAMESPACE}/my-sa" in str(error)
        assert f"HTTP {status}" in str(error)

    @pytest.mark.asyncio
    async def test_uses_configured_timeout(self, mock_v1):
        manager = ServiceAccountManager(MagicMock(), SPOKE_NAMESPACE, timeout=2.5)
        manager._v1 = mock_v1

        await manager.ensure_service_account("my-sa")

        kwargs = mock_v1.create_namespaced_service_account.call_args.kwargs
        assert kwargs["_request_timeout"] == 2.5


class TestRequestToken:
    """Test TokenRequest issuance."""

    @pytest.mark.asyncio
    async def test_requests_configured_lifetime(self, manager, mock_v1):
        expiry = datetime(2026, 12, 1, tzinfo=UTC)
        mock_v1.create_namespaced_service_account_token.return_value = SimpleNamespace(
            status=SimpleNamespace(token="jwt", expiration_timestamp=expiry)
        )

        issued = await manager.request_token("my-sa", 3600)

        assert issued == IssuedToken(token="jwt", expiration_timestamp=expiry)
        kwargs = mock_v1.create_namespaced_service_account_token.call_args.kwargs
        assert kwargs["name"] == "my-sa"
        assert kwargs["namespace"] == SPOKE_NAMESPACE
        assert kwargs["body"]["kind"] == "TokenRequest"
        assert kwargs["body"]["spec"] == {"expirationSeconds": 3600}

    @pytest.mark.asyncio
    async def test_failure_raises_retryable_error(self, manager, mock_v1):
        mock_v1.create_namespaced_service_account_token.side_effect = ApiException(
            status=404, reason="NotFound"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await manager.request_token("my-sa", 3600)

        assert exc_info.value.retryable is True
        assert "Failed to request token" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            SimpleNamespace(token="", expiration_timestamp=None),
            SimpleNamespace(token="jwt", expiration_timestamp=None),
            None,
        ],
    )
    async def test_incomplete_response_is_an_error(self, manager, mock_v1, status):
        mock_v1.create_namespaced_service_account_token.return_value = SimpleNamespace(
            status=status
        )

        with pytest.raises(ReconciliationError):
            await manager.request_token("my-sa", 3600)


def test_v1_client_is_created_lazily():
    manager = ServiceAccountManager(k8s_client=MagicMock(), namespace=SPOKE_NAMESPACE)
    assert manager._v1 is None

    api = manager.v1

    assert api is manager.v1
