"""
Watch-backed cache of ManagedServiceAccount resources.

kopf's watch stream feeds every event into the cache, and reconciliation
passes read requests from it by key instead of from the handler arguments.
"""

import copy
import logging
from typing import Any, TypeAlias

from pydantic import ValidationError

from ..errors import ReconciliationError, RequestNotFoundError
from ..models import ManagedServiceAccount
from ..models.types import KubernetesObject

logger = logging.getLogger(__name__)

RequestKey: TypeAlias = tuple[str, str]


class ManagedServiceAccountCache:
    """Local mapping of (namespace, name) to the latest observed object."""

    def __init__(self):
        self._objects: dict[RequestKey, KubernetesObject] = {}

    def apply_event(self, event: dict[str, Any]) -> None:
        """
        Apply one watch event.

        Args:
            event: kopf raw event with ``type`` (None for the initial listing)
                and ``object``
        """
        body = event.get("object") or {}
        metadata = body.get("metadata") or {}
        key = (metadata.get("namespace", ""), metadata.get("name", ""))
        if not key[1]:
            return

        if event.get("type") == "DELETED":
            self._objects.pop(key, None)
            logger.debug(f"Removed {key[0]}/{key[1]} from cache")
        else:
            self._objects[key] = copy.deepcopy(dict(body))

    def get(self, key: RequestKey) -> ManagedServiceAccount:
        """
        Load a request by key.

        Returns a fresh model on every call; callers never share or mutate
        the cached object.

        Raises:
            RequestNotFoundError: If the object is not in the cache
            ReconciliationError: If the cached object cannot be parsed
        """
        namespace, name = key
        body = self._objects.get(key)
        if body is None:
            raise RequestNotFoundError(namespace, name)

        try:
            return ManagedServiceAccount.from_k8s(body)
        except ValidationError as e:
            raise ReconciliationError(
                f"ManagedServiceAccount {namespace}/{name} is invalid: {e}",
                user_action=(
                    "Fix spec.rotation.validity or clear the status of the resource"
                ),
            ) from e

    def keys(self) -> list[RequestKey]:
        return list(self._objects)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)
