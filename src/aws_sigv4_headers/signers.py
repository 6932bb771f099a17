# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
import logging
import re
from collections.abc import Callable, Iterable
from copy import deepcopy
from datetime import UTC, datetime
from hashlib import sha256
from operator import itemgetter
from typing import Final
from urllib.parse import parse_qs, quote

from ._http import Field, Fields
from ._io import DEFAULT_CHUNK_SIZE, EMPTY_SHA256_HASH, sha256_hexdigest
from ._request import SigningRequest
from .exceptions import MissingFieldException

logger: Final = logging.getLogger(__name__)

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = ("authorization",)

SIGV4_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
SIGV4_TERMINATOR: str = "aws4_request"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
CONTENT_SHA256_HEADER: str = "x-amz-content-sha256"
DATE_HEADER: str = "x-amz-date"

# ASCII whitespace only; other Unicode spacing is part of the value.
_WHITESPACE_RE: Final = re.compile(r"[ \t\r\n\f\v]+")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SigV4HeaderSigner:
    """Request signer for applying the AWS Signature Version 4 algorithm to headers.

    The signer holds no per-request state and may be shared between threads.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        :param clock: Zero-argument callable returning the current UTC time. Used
            when a request carries no fixed timestamp.
        :param chunk_size: Number of bytes read per call when hashing a body stream.
        """
        if chunk_size <= 0:
            raise ValueError(
                f"chunk_size must be a positive integer, got {chunk_size}."
            )
        self._clock = clock if clock is not None else _utc_now
        self._chunk_size = chunk_size

    def sign(self, request: SigningRequest) -> dict[str, str]:
        """Generate a SigV4 signature for the request and return the signed headers.

        The returned mapping holds every header from ``request.headers`` plus
        ``host``, ``x-amz-date``, ``x-amz-content-sha256`` and ``authorization``.
        The supplied request is left unmodified.

        :param request: A validated description of the request to sign.
        """
        # A single timestamp feeds the date header, the scope and the key.
        timestamp = self.format_timestamp(self._resolve_time(request))

        # Plain mappings were normalized when the request was constructed.
        assert isinstance(request.headers, Fields)
        fields = deepcopy(request.headers)
        self._apply_required_fields(
            fields=fields, request=request, timestamp=timestamp
        )

        canonical_request = self.canonical_request(
            method=request.method,
            path=request.path,
            query=request.query,
            fields=fields,
            payload_hash=fields[CONTENT_SHA256_HEADER].as_string(),
        )
        credential_scope = self.credential_scope(
            timestamp=timestamp, region=request.region, service=request.service
        )
        string_to_sign = self.string_to_sign(
            timestamp=timestamp,
            credential_scope=credential_scope,
            canonical_request=canonical_request,
        )
        signature = self.signature(
            string_to_sign=string_to_sign,
            secret_key=request.secret_access_key,
            timestamp=timestamp,
            region=request.region,
            service=request.service,
        )

        authorization = self.generate_authorization_field(
            credential=f"{request.access_key_id}/{credential_scope}",
            signed_headers=self.signed_headers(fields),
            signature=signature,
        )
        fields.set_field(authorization)
        return fields.as_dict()

    def format_timestamp(self, value: datetime) -> str:
        """Format a datetime as a SigV4 ``YYYYMMDDTHHMMSSZ`` timestamp in UTC."""
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.strftime(SIGV4_TIMESTAMP_FORMAT)

    def _resolve_time(self, request: SigningRequest) -> datetime:
        if request.timestamp is not None:
            return request.timestamp
        return self._clock()

    def _apply_required_fields(
        self, *, fields: Fields, request: SigningRequest, timestamp: str
    ) -> None:
        fields.set_field(Field(name="host", values=[request.host]))
        fields.set_field(Field(name=DATE_HEADER, values=[timestamp]))
        # A digest already present on the request wins, so callers can send
        # UNSIGNED-PAYLOAD or the digest of a body this signer never sees.
        if CONTENT_SHA256_HEADER in fields:
            payload_hash = fields[CONTENT_SHA256_HEADER].values
        else:
            payload_hash = [self._compute_payload_hash(request=request)]
        fields.set_field(Field(name=CONTENT_SHA256_HEADER, values=payload_hash))

    def _compute_payload_hash(self, *, request: SigningRequest) -> str:
        if request.body_digest is not None:
            return request.body_digest
        if request.body is None:
            return EMPTY_SHA256_HASH
        return sha256_hexdigest(request.body, chunk_size=self._chunk_size)

    def canonical_request(
        self,
        *,
        method: str,
        path: str,
        query: str,
        fields: Fields,
        payload_hash: str,
    ) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        The canonical request is defined as:
            <HTTPMethod>\n
            <CanonicalURI>\n
            <CanonicalQueryString>\n
            <CanonicalHeaders>\n
            <SignedHeaders>\n
            <HashedPayload>

        :param method: The HTTP method of the request.
        :param path: The request path.
        :param query: The raw query string, without a leading ``?``.
        :param fields: Headers participating in the signature.
        :param payload_hash: Hex SHA-256 of the body, normally the value of the
            ``x-amz-content-sha256`` header.
        """
        canonical_request = (
            f"{method.upper()}\n"
            f"{self.canonical_path(path)}\n"
            f"{self.canonical_query(query)}\n"
            f"{self.canonical_headers(fields)}\n"
            f"{self.signed_headers(fields)}\n"
            f"{payload_hash}"
        )
        logger.debug("Canonical request:\n%s", canonical_request)
        return canonical_request

    def canonical_path(self, path: str) -> str:
        # Only escaped slashes are restored; the path is otherwise used as given.
        return path.replace("%2F", "/")

    def canonical_query(self, query: str) -> str:
        """Format the query string, keeping only the first value of repeated keys.

        Keys and values are percent-encoded with RFC 3986 unreserved characters
        left intact, and pairs are sorted on the encoded key.
        """
        if not query:
            return ""

        # Both "&" and ";" separate parameters.
        query_params = parse_qs(
            qs=query.replace(";", "&"), keep_blank_values=True, errors="strict"
        )
        query_parts = (
            (quote(string=key, safe=""), quote(string=values[0], safe=""))
            for key, values in query_params.items()
        )
        return "&".join(
            f"{key}={value}" for key, value in sorted(query_parts, key=itemgetter(0))
        )

    def canonical_headers(self, fields: Fields) -> str:
        """Format signable headers as sorted ``name:value`` lines.

        Each line ends with a newline, including the last one.
        """
        return "".join(
            f"{name}:{value}\n" for name, value in self._normalize_signing_fields(fields)
        )

    def signed_headers(self, fields: Fields) -> str:
        """Semicolon-separated, sorted list of the lower-case signed header names."""
        return ";".join(name for name, _ in self._normalize_signing_fields(fields))

    def _normalize_signing_fields(self, fields: Fields) -> list[tuple[str, str]]:
        normalized_fields = (
            (field.name.lower(), self._collapse_whitespace(field.as_string()))
            for field in fields
            if self._is_signable_header(field.name.lower())
        )
        return sorted(normalized_fields, key=itemgetter(0))

    def _collapse_whitespace(self, value: str) -> str:
        return _WHITESPACE_RE.sub(" ", value).strip(" ")

    def _is_signable_header(self, field_name: str) -> bool:
        return field_name not in HEADERS_EXCLUDED_FROM_SIGNING

    def credential_scope(self, *, timestamp: str, region: str, service: str) -> str:
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        return f"{timestamp[0:8]}/{region}/{service}/{SIGV4_TERMINATOR}"

    def string_to_sign(
        self,
        *,
        timestamp: str | None,
        credential_scope: str,
        canonical_request: str,
    ) -> str:
        """The string to sign is the second step of our signing algorithm which
        concatenates the formal identifier of our signing algorithm, the signing
        DateTime, the scope of our credentials, and a hash of our previously generated
        canonical request. This is another checkpoint that can be used to ensure we're
        constructing our signature as intended.

        The string to sign is defined as:
            Algorithm \n
            RequestDateTime \n
            CredentialScope  \n
            HashedCanonicalRequest

        :param timestamp: Signing time formatted as ``YYYYMMDDTHHMMSSZ``.
        :param credential_scope: String generated from ``credential_scope``.
        :param canonical_request: String generated from ``canonical_request``.
        """
        if not timestamp:
            raise MissingFieldException(
                "timestamp",
                "Cannot generate string_to_sign without a valid timestamp. "
                f"Current value: {timestamp!r}",
            )
        string_to_sign = (
            f"{SIGV4_ALGORITHM}\n"
            f"{timestamp}\n"
            f"{credential_scope}\n"
            f"{sha256(canonical_request.encode()).hexdigest()}"
        )
        logger.debug("String to sign:\n%s", string_to_sign)
        return string_to_sign

    def signing_key(
        self, *, secret_key: str, date: str, region: str, service: str
    ) -> bytes:
        """Derive the key scoped to a date, region and service.

        Each step keys the next HMAC with the raw digest of the previous one.
        """

        # Components of Signing Key Calculation
        #
        # DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
        # DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
        # DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
        # SigningKey = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
        k_date = self._hash(key=f"AWS4{secret_key}".encode(), value=date[0:8])
        k_region = self._hash(key=k_date, value=region)
        k_service = self._hash(key=k_region, value=service)
        return self._hash(key=k_service, value=SIGV4_TERMINATOR)

    def signature(
        self,
        *,
        string_to_sign: str,
        secret_key: str,
        timestamp: str,
        region: str,
        service: str,
    ) -> str:
        """Sign the string to sign.

        In SigV4, a signing key is created that is scoped to a specific region and
        service. The date, region, service and resulting signing key are individually
        hashed, then the composite hash is used to sign the string to sign.
        """
        k_signing = self.signing_key(
            secret_key=secret_key, date=timestamp, region=region, service=service
        )
        return self._hash(key=k_signing, value=string_to_sign).hex()

    def _hash(self, key: bytes, value: str) -> bytes:
        return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()

    def generate_authorization_field(
        self, *, credential: str, signed_headers: str | Iterable[str], signature: str
    ) -> Field:
        """Generate the ``authorization`` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/<request_type>
        :param signed_headers:
            The field names used in signing, either already joined with ``;`` or as
            an iterable of names.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        if not isinstance(signed_headers, str):
            signed_headers = ";".join(signed_headers)
        auth_str = (
            f"{SIGV4_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        return Field(name="authorization", values=[auth_str])
