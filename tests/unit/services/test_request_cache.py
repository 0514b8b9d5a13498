"""Unit tests for the watch-backed ManagedServiceAccount cache."""

import pytest

from managed_serviceaccount.errors import ReconciliationError, RequestNotFoundError
from managed_serviceaccount.services.request_cache import ManagedServiceAccountCache

from ..conftest import HUB_NAMESPACE, make_msa_body


@pytest.fixture
def cache():
    return ManagedServiceAccountCache()


class TestApplyEvent:
    """Test feeding watch events into the cache."""

    @pytest.mark.parametrize("event_type", [None, "ADDED", "MODIFIED"])
    def test_stores_object(self, cache, event_type):
        """Initial listing (type None), additions and modifications all store."""
        cache.apply_event({"type": event_type, "object": make_msa_body()})

        assert (HUB_NAMESPACE, "my-sa") in cache
        assert len(cache) == 1

    def test_modified_replaces_previous_version(self, cache):
        cache.apply_event({"type": "ADDED", "object": make_msa_body(validity="1h")})
        cache.apply_event(
            {
                "type": "MODIFIED",
                "object": make_msa_body(validity="2h", resource_version="2"),
            }
        )

        loaded = cache.get((HUB_NAMESPACE, "my-sa"))
        assert loaded.spec.rotation.validity == "2h"
        assert loaded.resource_version == "2"

    def test_deleted_removes_object(self, cache):
        cache.apply_event({"type": "ADDED", "object": make_msa_body()})
        cache.apply_event({"type": "DELETED", "object": make_msa_body()})

        assert (HUB_NAMESPACE, "my-sa") not in cache
        assert cache.keys() == []

    def test_deleting_unknown_object_is_noop(self, cache):
        cache.apply_event({"type": "DELETED", "object": make_msa_body(name="ghost")})
        assert len(cache) == 0

    def test_ignores_objects_without_name(self, cache):
        cache.apply_event({"type": "ADDED", "object": {"metadata": {}}})
        cache.apply_event({"type": "ADDED"})
        assert len(cache) == 0

    def test_stores_a_copy(self, cache):
        """Later mutation of the event body does not leak into the cache."""
        body = make_msa_body()
        cache.apply_event({"type": "ADDED", "object": body})

        body["spec"]["rotation"]["validity"] = "5m"

        assert cache.get((HUB_NAMESPACE, "my-sa")).spec.rotation.validity == "1h"

    def test_keys_are_namespace_and_name(self, cache):
        cache.apply_event({"type": "ADDED", "object": make_msa_body(name="a")})
        cache.apply_event(
            {"type": "ADDED", "object": make_msa_body(name="b", namespace="cluster2")}
        )

        assert sorted(cache.keys()) == [(HUB_NAMESPACE, "a"), ("cluster2", "b")]


class TestGet:
    """Test loading requests by key."""

    def test_missing_key_raises_not_found(self, cache):
        with pytest.raises(RequestNotFoundError) as exc_info:
            cache.get((HUB_NAMESPACE, "absent"))

        assert exc_info.value.namespace == HUB_NAMESPACE
        assert exc_info.value.name == "absent"

    def test_returns_fresh_model_each_time(self, cache):
        cache.apply_event({"type": "ADDED", "object": make_msa_body()})

        first = cache.get((HUB_NAMESPACE, "my-sa"))
        first.metadata["resourceVersion"] = "99"
        second = cache.get((HUB_NAMESPACE, "my-sa"))

        assert first is not second
        assert second.resource_version == "1"

    def test_invalid_validity_raises_reconciliation_error(self, cache):
        cache.apply_event(
            {"type": "ADDED", "object": make_msa_body(validity="forever")}
        )

        with pytest.raises(ReconciliationError) as exc_info:
            cache.get((HUB_NAMESPACE, "my-sa"))

        assert exc_info.value.retryable is True
        assert "is invalid" in str(exc_info.value)

    def test_corrupt_status_raises_reconciliation_error(self, cache):
        body = make_msa_body(
            status={
                "token": "abc",
                "expirationTimestamp": "2026-11-01T00:00:00Z",
                "caCertificateData": "Y2Et*YnVuZGxl",
            }
        )
        cache.apply_event({"type": "ADDED", "object": body})

        with pytest.raises(ReconciliationError) as exc_info:
            cache.get((HUB_NAMESPACE, "my-sa"))

        assert exc_info.value.retryable is True
        assert "caCertificateData" in str(exc_info.value)

    def test_parses_published_status(self, cache):
        body = make_msa_body(
            status={
                "token": "abc",
                "expirationTimestamp": "2026-11-01T00:00:00Z",
                "caCertificateData": "Y2EtYnVuZGxl",
            }
        )
        cache.apply_event({"type": "ADDED", "object": body})

        status = cache.get((HUB_NAMESPACE, "my-sa")).status

        assert status.token == "abc"
        assert status.expiration_timestamp.year == 2026
        assert status.ca_certificate_data == b"ca-bundle"
