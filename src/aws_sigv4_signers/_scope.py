# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
from collections.abc import Callable
from dataclasses import dataclass
from hashlib import sha256
from typing import TypeAlias

from .config import SIGV4_TIMESTAMP_FORMAT, SigningAlgorithm, SigV4SigningProperties
from .exceptions import InvalidRegionOrServiceError, MissingExpectedParameterException

Clock: TypeAlias = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass(kw_only=True, frozen=True)
class SigningScope:
    """The time, region and service a signature is bound to.

    ``region`` holds the region set when signing with SigV4A.
    """

    timestamp: datetime.datetime
    region: str
    service: str

    def __post_init__(self) -> None:
        if not self.region:
            raise InvalidRegionOrServiceError(
                "A non-empty region (or region set) is required for signing."
            )
        if not self.service:
            raise InvalidRegionOrServiceError(
                "A non-empty service name is required for signing."
            )
        timestamp = self.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=datetime.UTC)
        timestamp = timestamp.astimezone(datetime.UTC).replace(microsecond=0)
        object.__setattr__(self, "timestamp", timestamp)

    @classmethod
    def from_properties(
        cls, signing_properties: SigV4SigningProperties, *, clock: Clock = utc_now
    ) -> "SigningScope":
        """Resolve the scope, preferring an explicit ``date`` over the clock."""
        if (date := signing_properties.get("date")) is not None:
            try:
                timestamp = datetime.datetime.strptime(date, SIGV4_TIMESTAMP_FORMAT)
            except ValueError as e:
                raise MissingExpectedParameterException(
                    "Cannot sign without a valid date in your signing_properties. "
                    f"Expected {SIGV4_TIMESTAMP_FORMAT}, received {date!r}."
                ) from e
        else:
            timestamp = clock()
        return cls(
            timestamp=timestamp,
            region=signing_properties.get("region", ""),
            service=signing_properties.get("service", ""),
        )

    @property
    def amz_date(self) -> str:
        return self.timestamp.strftime(SIGV4_TIMESTAMP_FORMAT)

    @property
    def short_date(self) -> str:
        return self.timestamp.strftime("%Y%m%d")

    def credential_scope(self, algorithm: SigningAlgorithm) -> str:
        if algorithm is SigningAlgorithm.SIGV4A:
            # The region set travels in X-Amz-Region-Set instead.
            return f"{self.short_date}/{self.service}/aws4_request"
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        return f"{self.short_date}/{self.region}/{self.service}/aws4_request"

    def string_to_sign(
        self, *, canonical_request: str, algorithm: SigningAlgorithm
    ) -> str:
        """The string to sign concatenates the formal identifier of the signing
        algorithm, the signing time, the credential scope and a hash of the canonical
        request.

        The SigV4 specification defines the string to sign as:
            Algorithm \n
            RequestDateTime \n
            CredentialScope  \n
            HashedCanonicalRequest
        """
        return (
            f"{algorithm}\n"
            f"{self.amz_date}\n"
            f"{self.credential_scope(algorithm)}\n"
            f"{sha256(canonical_request.encode()).hexdigest()}"
        )
