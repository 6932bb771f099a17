# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class BaseSigV4Exception(Exception):
    """Top-level exception to capture signing-related errors."""


class MissingFieldException(BaseSigV4Exception, ValueError):
    """A field required to sign a request was absent or empty."""

    def __init__(self, field_name: str, message: str | None = None):
        self.field_name = field_name
        super().__init__(
            message or f"Cannot sign request without a value for {field_name!r}."
        )
