"""
Pydantic models for ManagedServiceAccount resources.

This module defines type-safe data models for the ManagedServiceAccount
specification and status. The status is owned by the agent and is always
written as a whole: token, expiration timestamp and CA bundle travel together.
"""

import base64
import copy
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from ..constants import DEFAULT_ROTATION_VALIDITY
from .types import KubernetesMetadata, KubernetesObject, format_timestamp, parse_duration


class Rotation(BaseModel):
    """Token rotation settings of a ManagedServiceAccount."""

    model_config = {"populate_by_name": True}

    enabled: bool = Field(True, description="Whether token rotation is enabled")
    validity: str = Field(
        DEFAULT_ROTATION_VALIDITY,
        description="Requested lifetime of issued tokens as a Go duration",
    )

    @field_validator("validity")
    @classmethod
    def validate_validity(cls, v):
        if parse_duration(v).total_seconds() <= 0:
            raise ValueError("Rotation validity must be a positive duration")
        return v

    @property
    def validity_seconds(self) -> int:
        """Requested token lifetime truncated to whole seconds."""
        return int(parse_duration(self.validity).total_seconds())


class ManagedServiceAccountSpec(BaseModel):
    """Specification of a ManagedServiceAccount."""

    model_config = {"populate_by_name": True}

    rotation: Rotation = Field(
        default_factory=Rotation, description="Token rotation settings"
    )


class ManagedServiceAccountStatus(BaseModel):
    """
    Status written by the agent.

    Empty token means no token was ever issued. When a token is present the
    expiration timestamp and CA bundle are present as well.
    """

    model_config = {"populate_by_name": True}

    token: str = Field("", description="Issued ServiceAccount token")
    expiration_timestamp: datetime | None = Field(
        None, alias="expirationTimestamp", description="When the token expires"
    )
    ca_certificate_data: bytes | None = Field(
        None,
        alias="caCertificateData",
        description="CA bundle of the managed cluster API server",
    )

    @field_validator("ca_certificate_data", mode="before")
    @classmethod
    def decode_ca_certificate_data(cls, v):
        # Wire format carries []byte as base64
        if isinstance(v, str):
            return base64.b64decode(v, validate=True)
        return v

    def is_complete(self) -> bool:
        """Whether token, expiry and CA bundle are all set."""
        return bool(
            self.token and self.expiration_timestamp and self.ca_certificate_data
        )

    def to_k8s(self) -> dict[str, Any]:
        """Serialize to the status layout stored on the hub object."""
        body: dict[str, Any] = {"token": self.token}
        if self.expiration_timestamp is not None:
            body["expirationTimestamp"] = format_timestamp(self.expiration_timestamp)
        if self.ca_certificate_data:
            body["caCertificateData"] = base64.b64encode(
                self.ca_certificate_data
            ).decode()
        return body


class ManagedServiceAccount(BaseModel):
    """A ManagedServiceAccount as loaded from the hub."""

    model_config = {"populate_by_name": True}

    api_version: str = Field("", alias="apiVersion")
    kind: str = Field("")
    metadata: KubernetesMetadata = Field(default_factory=dict)
    spec: ManagedServiceAccountSpec = Field(default_factory=ManagedServiceAccountSpec)
    status: ManagedServiceAccountStatus = Field(
        default_factory=ManagedServiceAccountStatus
    )

    _body: KubernetesObject = PrivateAttr(default_factory=dict)

    @classmethod
    def from_k8s(cls, body: KubernetesObject) -> "ManagedServiceAccount":
        """Build the model from a raw object, keeping a private copy of it."""
        raw = copy.deepcopy(dict(body))
        model = cls.model_validate(
            {
                "apiVersion": raw.get("apiVersion", ""),
                "kind": raw.get("kind", ""),
                "metadata": raw.get("metadata") or {},
                "spec": raw.get("spec") or {},
                "status": raw.get("status") or {},
            }
        )
        model._body = raw
        return model

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.name)

    @property
    def resource_version(self) -> str | None:
        return self.metadata.get("resourceVersion")

    def deep_copy_with_status(
        self, status: ManagedServiceAccountStatus
    ) -> KubernetesObject:
        """
        Return a full copy of the loaded object with its status replaced.

        The copy keeps the original resourceVersion so the API server rejects
        the write if the object changed after it was loaded.
        """
        body = copy.deepcopy(self._body)
        body["status"] = status.to_k8s()
        return body
