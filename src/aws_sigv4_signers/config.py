# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass, replace
from enum import Enum, StrEnum
from typing import Any, Required, TypedDict

SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

MAX_PRESIGN_EXPIRATION_SECONDS: int = 7 * 24 * 60 * 60
DEFAULT_CHUNK_SIZE: int = 128 * 1024


class SigningAlgorithm(StrEnum):
    """Algorithm identifiers that appear in the string to sign."""

    SIGV4 = "AWS4-HMAC-SHA256"
    SIGV4A = "AWS4-ECDSA-P256-SHA256"

    @property
    def chunk_algorithm(self) -> str:
        """Identifier used in the string to sign of each aws-chunked chunk."""
        return f"{self.value}-PAYLOAD"

    @property
    def streaming_payload(self) -> str:
        """Payload hash token of the seed request of an aws-chunked upload."""
        return f"STREAMING-{self.value}-PAYLOAD"


class BodyHeaderPolicy(Enum):
    """Whether the resolved payload hash is echoed in ``X-Amz-Content-SHA256``."""

    NONE = 0
    """Never add the header."""

    ADD_HEADER_IF_SIGNED = 1
    """Add the header when the signature is carried in headers.

    The header value is the resolved payload token, so it's ``UNSIGNED-PAYLOAD``
    when payload signing is disabled. Presigned requests never get the header.
    """


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    """The signing region, or the region set when signing with SigV4A."""

    service: Required[str]
    """The signing name of the target service."""

    date: str
    """Optional signing time in ``YYYYMMDDTHHMMSSZ`` form, overriding the clock."""


@dataclass(kw_only=True, frozen=True)
class SigningConfig:
    """Options controlling canonicalization and payload handling.

    The defaults are correct for most services. S3 deviates in several ways, use
    :py:meth:`SigningConfig.s3` for its defaults.
    """

    double_url_encode: bool = True
    """Percent-encode the already encoded request path a second time."""

    normalize_uri_path: bool = True
    """Remove ``.`` and ``..`` segments and repeated slashes from the path."""

    payload_signing_enabled: bool | None = None
    """Force payload signing on or off. ``None`` lets the signer decide."""

    chunked_encoding_enabled: bool = False
    """Sign streamed bodies with the aws-chunked encoding."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Maximum number of payload bytes carried in one aws-chunked chunk."""

    expiration_seconds: int | None = None
    """Lifetime of a presigned request. Only used when presigning."""

    body_header_policy: BodyHeaderPolicy = BodyHeaderPolicy.NONE

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}.")

    @classmethod
    def s3(cls, **overrides: Any) -> "SigningConfig":
        """Default configuration for Amazon S3.

        S3 decodes the path only once and treats ``.`` segments as part of object
        keys, so the path is neither double encoded nor normalized.
        """
        defaults = cls(
            double_url_encode=False,
            normalize_uri_path=False,
            chunked_encoding_enabled=True,
            body_header_policy=BodyHeaderPolicy.ADD_HEADER_IF_SIGNED,
        )
        return replace(defaults, **overrides)
