"""Shared pytest fixtures for agent unit tests.

Provides in-memory stand-ins for the two Kubernetes APIs the agent writes to:
the managed cluster CoreV1 API (ServiceAccounts and TokenRequests) and the
hub CustomObjects API (status subresource with resourceVersion checks).
"""

import copy
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from kubernetes.client.rest import ApiException

from managed_serviceaccount.constants import MSA_GROUP, MSA_KIND, MSA_VERSION
from managed_serviceaccount.services.request_cache import ManagedServiceAccountCache
from managed_serviceaccount.services.token_reconciler import TokenReconciler
from managed_serviceaccount.utils.kubernetes import SpokeClientConfig
from managed_serviceaccount.utils.service_account_manager import ServiceAccountManager
from managed_serviceaccount.utils.status_publisher import StatusPublisher

HUB_NAMESPACE = "cluster1"
SPOKE_NAMESPACE = "open-cluster-management-managed-serviceaccount"
CA_BUNDLE = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


def make_msa_body(
    name: str = "my-sa",
    namespace: str = HUB_NAMESPACE,
    validity: str = "1h",
    status: dict | None = None,
    resource_version: str = "1",
) -> dict:
    """Build a raw ManagedServiceAccount as the watch stream delivers it."""
    body = {
        "apiVersion": f"{MSA_GROUP}/{MSA_VERSION}",
        "kind": MSA_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": resource_version,
            "uid": f"uid-{name}",
        },
        "spec": {"rotation": {"enabled": True, "validity": validity}},
    }
    if status is not None:
        body["status"] = status
    return body


class FakeSpokeCoreV1:
    """ServiceAccounts and TokenRequests of one managed cluster."""

    def __init__(self):
        self.service_accounts: dict[tuple[str, str], dict] = {}
        self.token_requests: list[tuple[str, str, int]] = []
        self.create_calls = 0
        self.token_error: ApiException | None = None
        self.create_error: ApiException | None = None
        self.clamp_seconds: int | None = None
        self._issued = 0

    def create_namespaced_service_account(self, namespace, body, **kwargs):
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        key = (namespace, body["metadata"]["name"])
        if key in self.service_accounts:
            raise ApiException(status=409, reason="AlreadyExists")
        self.service_accounts[key] = copy.deepcopy(body)
        return body

    def create_namespaced_service_account_token(self, name, namespace, body, **kwargs):
        if self.token_error is not None:
            raise self.token_error
        if (namespace, name) not in self.service_accounts:
            raise ApiException(status=404, reason="NotFound")
        seconds = body["spec"]["expirationSeconds"]
        self.token_requests.append((namespace, name, seconds))
        if self.clamp_seconds is not None:
            seconds = min(seconds, self.clamp_seconds)
        self._issued += 1
        return SimpleNamespace(
            status=SimpleNamespace(
                token=f"token-{name}-{self._issued}",
                expiration_timestamp=datetime.now(UTC) + timedelta(seconds=seconds),
            )
        )


class FakeHubCustomObjects:
    """ManagedServiceAccount storage enforcing optimistic concurrency."""

    def __init__(self):
        self.objects: dict[tuple[str, str], dict] = {}
        self.status_writes = 0

    def add(self, body: dict) -> None:
        metadata = body["metadata"]
        self.objects[(metadata["namespace"], metadata["name"])] = copy.deepcopy(body)

    def bump(self, namespace: str, name: str) -> None:
        """Simulate a concurrent writer."""
        metadata = self.objects[(namespace, name)]["metadata"]
        metadata["resourceVersion"] = str(int(metadata["resourceVersion"]) + 1)

    def replace_namespaced_custom_object_status(
        self, group, version, namespace, plural, name, body, **kwargs
    ):
        stored = self.objects.get((namespace, name))
        if stored is None:
            raise ApiException(status=404, reason="NotFound")
        if body["metadata"].get("resourceVersion") != stored["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        self.status_writes += 1
        stored["status"] = copy.deepcopy(body["status"])
        self.bump(namespace, name)
        return stored


@pytest.fixture
def spoke_api():
    return FakeSpokeCoreV1()


@pytest.fixture
def hub_api():
    return FakeHubCustomObjects()


@pytest.fixture
def request_cache():
    return ManagedServiceAccountCache()


@pytest.fixture
def service_account_manager(spoke_api):
    manager = ServiceAccountManager(k8s_client=None, namespace=SPOKE_NAMESPACE)
    manager._v1 = spoke_api
    return manager


@pytest.fixture
def status_publisher(hub_api):
    publisher = StatusPublisher(
        hub_client=None, spoke_config=SpokeClientConfig(ca_data=CA_BUNDLE)
    )
    publisher._custom_api = hub_api
    return publisher


@pytest.fixture
def reconciler(request_cache, service_account_manager, status_publisher):
    return TokenReconciler(
        cache=request_cache,
        service_accounts=service_account_manager,
        publisher=status_publisher,
    )


@pytest.fixture
def store(request_cache, hub_api):
    """Put an object on the fake hub and into the cache, like a watch event."""

    def _store(body: dict) -> dict:
        hub_api.add(body)
        request_cache.apply_event({"type": "ADDED", "object": body})
        return body

    return _store


@pytest.fixture
def sync_cache(request_cache, hub_api):
    """Deliver the hub's current version of an object to the cache."""

    def _sync(namespace: str = HUB_NAMESPACE, name: str = "my-sa") -> dict:
        body = hub_api.objects[(namespace, name)]
        request_cache.apply_event({"type": "MODIFIED", "object": body})
        return body

    return _sync
