# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ._http import Fields, HeaderValue
from ._io import Body
from .exceptions import MissingFieldException

REQUIRED_FIELDS: tuple[str, ...] = (
    "host",
    "method",
    "path",
    "region",
    "service",
    "access_key_id",
    "secret_access_key",
)

# Keys of the ``values`` mapping assembled by command line and config loaders,
# mapped to SigningRequest attribute names.
VALUES_KEY_MAP: dict[str, str] = {
    "host": "host",
    "http_method": "method",
    "path": "path",
    "querystring": "query",
    "region": "region",
    "service": "service",
    "access_key_id": "access_key_id",
    "secret_access_key": "secret_access_key",
    "hexdigest_body": "body_digest",
    "fixed_datetime": "timestamp",
}


@dataclass(kw_only=True, frozen=True)
class SigningRequest:
    """Description of a single HTTP request to be signed with SigV4.

    Values are validated on construction so that a missing required field fails
    before any hashing takes place.
    """

    host: str
    """The value sent in the ``host`` header, for example ``ec2.amazonaws.com``."""

    method: str
    """The HTTP method, for example ``GET``."""

    path: str
    """The request path, with ``%2F`` left escaped where a literal slash is meant."""

    region: str
    """The region the request is scoped to, for example ``us-east-1``."""

    service: str
    """The signing name of the target service, for example ``ec2``."""

    access_key_id: str
    """A unique identifier for an AWS user or role."""

    secret_access_key: str = field(repr=False)
    """A secret key used in conjunction with the access key ID."""

    query: str = ""
    """Everything after ``?`` in the request URI, without the ``?``."""

    headers: Fields | Mapping[str, HeaderValue] = field(default_factory=Fields)
    """Headers to sign. Plain mappings are normalized to :py:class:`Fields`."""

    body_digest: str | None = None
    """Precomputed hex SHA-256 of the body, or ``UNSIGNED-PAYLOAD``."""

    body: Body | None = None
    """Body content to hash at signing time when no digest is given."""

    timestamp: datetime | None = None
    """A fixed signing time. The signer's clock is used when unset."""

    def __post_init__(self) -> None:
        for name in REQUIRED_FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                raise MissingFieldException(name)
            if not isinstance(value, str):
                raise TypeError(
                    f"Expected {name!r} to be a str but received {type(value)}."
                )

        if self.query is None:
            object.__setattr__(self, "query", "")

        headers: Any = self.headers
        if headers is None:
            object.__setattr__(self, "headers", Fields())
        elif not isinstance(headers, Fields):
            object.__setattr__(self, "headers", Fields.from_mapping(headers))

        if self.body_digest is not None and self.body is not None:
            raise ValueError(
                "Received both body_digest and body. Provide the body so it can be "
                "hashed, or its digest, but not both."
            )

        if self.timestamp is not None:
            object.__setattr__(self, "timestamp", _as_utc(self.timestamp))

    @classmethod
    def from_values(
        cls,
        values: Mapping[str, Any],
        headers: Fields | Mapping[str, HeaderValue] | None = None,
    ) -> SigningRequest:
        """Create a request from a loader's ``values`` mapping.

        Recognized keys are ``host``, ``http_method``, ``path``, ``querystring``,
        ``region``, ``service``, ``access_key_id``, ``secret_access_key``,
        ``hexdigest_body`` and ``fixed_datetime``. Unknown keys are rejected so a
        typo can't silently drop a value from the signature.
        """
        unknown = set(values) - set(VALUES_KEY_MAP)
        if unknown:
            raise ValueError(
                f"Unrecognized signing values: {', '.join(sorted(unknown))}."
            )
        kwargs: dict[str, Any] = {
            VALUES_KEY_MAP[key]: value for key, value in values.items()
        }
        for name in REQUIRED_FIELDS:
            kwargs.setdefault(name, None)
        return cls(headers=headers if headers is not None else Fields(), **kwargs)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
