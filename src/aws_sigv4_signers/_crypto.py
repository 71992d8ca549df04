# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Key derivation and signature primitives for SigV4 and SigV4A.

SigV4 signs with HMAC-SHA256 using a key derived per day, region and service.
SigV4A signs with ECDSA over P-256 and SHA-256 using a long-term key pair, which
makes the signature valid in any region of the region set.

ECDSA signatures are produced with deterministic nonces (:rfc:`6979`), so signing
the same string to sign with the same key always yields the same signature. This is
a property of this implementation; services accept randomized signatures as well.
"""

import hmac
from hashlib import sha256
from typing import Protocol

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from .config import SigningAlgorithm
from .exceptions import (
    InvalidCredentialsError,
    InvalidKeyError,
    SignatureComputationError,
)

P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
P256_FIELD_BYTES = 32

_ECDSA_KDF_LABEL = b"AWS4-ECDSA-P256-SHA256"
_ECDSA_KDF_MAX_COUNTER = 254


def hmac_sha256(key: bytes, value: str | bytes) -> bytes:
    if isinstance(value, str):
        value = value.encode()
    return hmac.new(key=key, msg=value, digestmod=sha256).digest()


def derive_signing_key(
    *, secret_access_key: str, date: str, region: str, service: str
) -> bytes:
    """Derive the SigV4 signing key scoped to a day, region and service.

    :param date: The signing date as ``YYYYMMDD``.
    """
    if not secret_access_key:
        raise InvalidCredentialsError(
            "Cannot derive a signing key from an empty secret access key."
        )
    # Components of Signing Key Calculation
    #
    # DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
    # DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
    # DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
    # SigningKey = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
    k_date = hmac_sha256(f"AWS4{secret_access_key}".encode(), date)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, "aws4_request")


def derive_ecdsa_key(
    *, access_key_id: str, secret_access_key: str
) -> ec.EllipticCurvePrivateKey:
    """Derive the SigV4A P-256 key pair belonging to a set of AWS credentials.

    Uses the NIST SP 800-108 counter mode KDF with HMAC-SHA256. The fixed input
    is ``be32(1) || label || 0x00 || access_key_id || counter || be32(256)`` and
    the first candidate ``c <= n - 2`` gives the private scalar ``c + 1``.
    """
    if not access_key_id or not secret_access_key:
        raise InvalidCredentialsError(
            "Both an access key id and a secret access key are required to derive "
            "a SigV4A key pair."
        )
    input_key = f"AWS4A{secret_access_key}".encode()
    for counter in range(1, _ECDSA_KDF_MAX_COUNTER + 1):
        fixed_input = b"".join(
            (
                (1).to_bytes(4, "big"),
                _ECDSA_KDF_LABEL,
                b"\x00",
                access_key_id.encode(),
                bytes([counter]),
                (256).to_bytes(4, "big"),
            )
        )
        candidate = int.from_bytes(hmac_sha256(input_key, fixed_input), "big")
        if candidate <= P256_ORDER - 2:
            return ec.derive_private_key(candidate + 1, ec.SECP256R1())
    raise InvalidKeyError(
        f"Unable to derive a SigV4A key pair after {_ECDSA_KDF_MAX_COUNTER} attempts."
    )


def validate_ecdsa_key(private_key: object) -> ec.EllipticCurvePrivateKey:
    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise InvalidKeyError(
            "SigV4A signing requires an EllipticCurvePrivateKey, received "
            f"{type(private_key)}."
        )
    if not isinstance(private_key.curve, ec.SECP256R1):
        raise InvalidKeyError(
            f"SigV4A signing requires a P-256 key, received {private_key.curve.name}."
        )
    return private_key


class SignatureEngine(Protocol):
    """Computes and checks signatures over a string to sign."""

    algorithm: SigningAlgorithm

    def sign(self, string_to_sign: str) -> str: ...

    def verify(self, string_to_sign: str, signature: str) -> bool: ...


class HMACSignatureEngine:
    algorithm = SigningAlgorithm.SIGV4

    def __init__(self, signing_key: bytes):
        self._signing_key = signing_key

    def sign(self, string_to_sign: str) -> str:
        return hmac_sha256(self._signing_key, string_to_sign).hex()

    def verify(self, string_to_sign: str, signature: str) -> bool:
        return hmac.compare_digest(
            self.sign(string_to_sign).encode(), signature.lower().encode()
        )


class ECDSASignatureEngine:
    algorithm = SigningAlgorithm.SIGV4A

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        self._private_key = validate_ecdsa_key(private_key)

    def sign(self, string_to_sign: str) -> str:
        """Sign ``SHA256(string_to_sign)`` and hex encode ``r || s``.

        Both integers are zero-padded to the 32 byte field size of P-256.
        """
        try:
            der_signature = self._private_key.sign(
                string_to_sign.encode(),
                ec.ECDSA(hashes.SHA256(), deterministic_signing=True),
            )
        except (UnsupportedAlgorithm, ValueError) as e:
            raise SignatureComputationError(
                f"Unable to compute ECDSA signature: {e}"
            ) from e
        r, s = decode_dss_signature(der_signature)
        return (
            r.to_bytes(P256_FIELD_BYTES, "big") + s.to_bytes(P256_FIELD_BYTES, "big")
        ).hex()

    def verify(self, string_to_sign: str, signature: str) -> bool:
        return verify_ecdsa(
            public_key=self._private_key.public_key(),
            string_to_sign=string_to_sign,
            signature=signature,
        )


def verify_ecdsa(
    *, public_key: ec.EllipticCurvePublicKey, string_to_sign: str, signature: str
) -> bool:
    """Check a SigV4A signature.

    Accepts the fixed-width ``r || s`` hex produced by :py:class:`ECDSASignatureEngine`
    as well as hex encoded DER.
    """
    try:
        raw = bytes.fromhex(signature)
    except ValueError:
        return False
    try:
        if len(raw) == 2 * P256_FIELD_BYTES:
            raw = encode_dss_signature(
                int.from_bytes(raw[:P256_FIELD_BYTES], "big"),
                int.from_bytes(raw[P256_FIELD_BYTES:], "big"),
            )
        public_key.verify(raw, string_to_sign.encode(), ec.ECDSA(hashes.SHA256()))
    except (InvalidSignature, ValueError):
        return False
    return True
