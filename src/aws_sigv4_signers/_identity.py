# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from datetime import datetime
from typing import Self, TypeAlias

from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from ._crypto import derive_ecdsa_key, validate_ecdsa_key
from .exceptions import InvalidKeyError
from .interfaces.identity import AWSCredentialsIdentity, ECDSAIdentity


@dataclass(kw_only=True)
class AWSCredentialIdentity(AWSCredentialsIdentity):
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    expiration: datetime | None = None


@dataclass(kw_only=True)
class AWSECDSAIdentity(ECDSAIdentity):
    """Access key id paired with a P-256 private key for SigV4A signing."""

    access_key_id: str
    private_key: EllipticCurvePrivateKey
    session_token: str | None = None
    expiration: datetime | None = None

    def __post_init__(self) -> None:
        validate_ecdsa_key(self.private_key)

    @property
    def public_key(self) -> EllipticCurvePublicKey:
        return self.private_key.public_key()

    @classmethod
    def from_credentials(cls, credentials: AWSCredentialsIdentity) -> Self:
        """Derive the SigV4A key pair that AWS associates with ``credentials``."""
        return cls(
            access_key_id=credentials.access_key_id,
            private_key=derive_ecdsa_key(
                access_key_id=credentials.access_key_id,
                secret_access_key=credentials.secret_access_key,
            ),
            session_token=credentials.session_token,
            expiration=credentials.expiration,
        )

    @classmethod
    def from_pem(
        cls,
        *,
        access_key_id: str,
        pem: bytes,
        password: bytes | None = None,
        session_token: str | None = None,
    ) -> Self:
        try:
            private_key = load_pem_private_key(pem, password=password)
        except (TypeError, ValueError) as e:
            raise InvalidKeyError(f"Unable to load SigV4A private key: {e}") from e
        return cls(
            access_key_id=access_key_id,
            private_key=validate_ecdsa_key(private_key),
            session_token=session_token,
        )


SigningIdentity: TypeAlias = AWSCredentialIdentity | AWSECDSAIdentity
"""The two identity variants a signer accepts.

Symmetric credentials sign with SigV4, ECDSA key pairs sign with SigV4A.
"""
