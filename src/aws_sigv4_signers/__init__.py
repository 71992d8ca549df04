# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS SigV4 Signers provides stand-alone SigV4 and SigV4A request signing for use
with HTTP tools such as AioHTTP, Curl, Postman, Requests, urllib3, etc."""

from __future__ import annotations

from ._chunked import ChunkedSigningStream, encoded_length
from ._crypto import derive_ecdsa_key, derive_signing_key
from ._http import AWSRequest, Field, Fields, URI
from ._identity import AWSCredentialIdentity, AWSECDSAIdentity
from ._io import AsyncBytesReader
from ._scope import SigningScope
from .config import (
    BodyHeaderPolicy,
    SigningAlgorithm,
    SigningConfig,
    SigV4SigningProperties,
)
from .signers import (
    AsyncSigV4Signer,
    S3SigV4Signer,
    SigningResult,
    SigV4Signer,
    verify_signature,
)

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "AWSCredentialIdentity",
    "AWSECDSAIdentity",
    "AWSRequest",
    "AsyncBytesReader",
    "AsyncSigV4Signer",
    "BodyHeaderPolicy",
    "ChunkedSigningStream",
    "Field",
    "Fields",
    "S3SigV4Signer",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SigningAlgorithm",
    "SigningConfig",
    "SigningResult",
    "SigningScope",
    "derive_ecdsa_key",
    "derive_signing_key",
    "encoded_length",
    "verify_signature",
)
