# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS SigV4 Headers computes the Signature Version 4 ``authorization`` header and its
supporting headers for a single HTTP request, for use with any HTTP transport."""

from __future__ import annotations

from ._http import Field, Fields
from ._io import DEFAULT_CHUNK_SIZE, EMPTY_SHA256_HASH, sha256_hexdigest
from ._request import SigningRequest
from .exceptions import BaseSigV4Exception, MissingFieldException
from .signers import UNSIGNED_PAYLOAD, SigV4HeaderSigner

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "DEFAULT_CHUNK_SIZE",
    "EMPTY_SHA256_HASH",
    "UNSIGNED_PAYLOAD",
    "BaseSigV4Exception",
    "Field",
    "Fields",
    "MissingFieldException",
    "SigV4HeaderSigner",
    "SigningRequest",
    "sha256_hexdigest",
)
