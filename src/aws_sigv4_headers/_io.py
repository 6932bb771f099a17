# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from hashlib import sha256
from typing import Final, TypeAlias

from .interfaces.io import SeekableByteStream

logger: Final = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE: Final = 1024 * 1024
EMPTY_SHA256_HASH: Final = (
    "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
)

Body: TypeAlias = bytes | bytearray | memoryview | str | SeekableByteStream
"""Request body content accepted for hashing."""


def sha256_hexdigest(value: Body, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Return the lower-case hex SHA-256 digest of a request body.

    In-memory values are hashed directly; ``str`` values are UTF-8 encoded first.
    Streams are hashed ``chunk_size`` bytes at a time starting from their current
    position, and are returned to that position afterwards so the transport can
    read the body again. The position is restored even if reading fails.

    :param value: The body to hash.
    :param chunk_size: Maximum number of bytes read from a stream per call.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be a positive integer, got {chunk_size}.")

    if isinstance(value, str):
        return sha256(value.encode("utf-8")).hexdigest()
    if isinstance(value, bytes | bytearray | memoryview):
        return sha256(value).hexdigest()
    if not isinstance(value, SeekableByteStream):
        raise TypeError(
            "Body must be bytes, str or a seekable binary stream, "
            f"got {type(value).__name__}."
        )
    return _digest_stream(value, chunk_size)


def _digest_stream(source: SeekableByteStream, chunk_size: int) -> str:
    checksum = sha256()
    position = source.tell()
    try:
        while chunk := source.read(chunk_size):
            checksum.update(chunk)
    except BaseException:
        try:
            source.seek(position)
        except Exception:
            logger.warning(
                "Unable to restore body stream to position %s after a failed read.",
                position,
                exc_info=True,
            )
        raise
    source.seek(position)
    logger.debug(
        "Computed body digest from stream starting at position %s.", position
    )
    return checksum.hexdigest()
