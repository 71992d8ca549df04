# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
import io
import logging
import warnings
from collections.abc import AsyncIterable, Iterable
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from hashlib import sha256
from inspect import iscoroutinefunction
from typing import cast

from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePublicKey

from ._canonical import canonical_request, signing_fields
from ._chunked import ChunkedSigningStream, encoded_length
from ._crypto import (
    ECDSASignatureEngine,
    HMACSignatureEngine,
    SignatureEngine,
    derive_signing_key,
    validate_ecdsa_key,
    verify_ecdsa,
)
from ._http import AWSRequest, Field
from ._identity import SigningIdentity
from ._io import AsyncBytesReader
from ._scope import Clock, SigningScope, utc_now
from .config import (
    EMPTY_SHA256_HASH,
    MAX_PRESIGN_EXPIRATION_SECONDS,
    SIGV4_TIMESTAMP_FORMAT,
    UNSIGNED_PAYLOAD,
    BodyHeaderPolicy,
    SigningAlgorithm,
    SigningConfig,
    SigV4SigningProperties,
)
from .exceptions import (
    AWSSDKWarning,
    InvalidCredentialsError,
    UnsupportedSigningConfigurationError,
)
from .interfaces.identity import AWSCredentialsIdentity, ECDSAIdentity
from .interfaces.io import AsyncSeekable, ByteStream, Seekable

__all__ = (
    "EMPTY_SHA256_HASH",
    "SIGV4_TIMESTAMP_FORMAT",
    "UNSIGNED_PAYLOAD",
    "AsyncSigV4Signer",
    "S3SigV4Signer",
    "SigV4Signer",
    "SigningContext",
    "SigningResult",
    "SigningState",
    "verify_signature",
)

logger = logging.getLogger(__name__)


class SigningState(Enum):
    """Progress of a single signing operation."""

    UNSIGNED = 0
    CANONICALIZED = 1
    SCOPED_AND_HASHED = 2
    KEYED = 3
    SIGNED = 4


@dataclass(kw_only=True)
class SigningContext:
    """Carries one request through canonicalization, scoping, keying and signing.

    Each step may only run from the state directly before it. Contexts embed the
    signing time and must not be reused for another request.
    """

    request: AWSRequest
    scope: SigningScope
    algorithm: SigningAlgorithm
    config: SigningConfig
    payload_hash: str
    state: SigningState = SigningState.UNSIGNED
    canonical_request: str = ""
    string_to_sign: str = ""
    engine: SignatureEngine | None = None
    signature: str = ""

    def canonicalize(self) -> str:
        self._require(SigningState.UNSIGNED)
        self.canonical_request = canonical_request(
            method=self.request.method,
            destination=self.request.destination,
            fields=self.request.fields,
            payload_hash=self.payload_hash,
            config=self.config,
        )
        logger.debug("Canonical request:\n%s", self.canonical_request)
        self.state = SigningState.CANONICALIZED
        return self.canonical_request

    def scope_and_hash(self) -> str:
        self._require(SigningState.CANONICALIZED)
        self.string_to_sign = self.scope.string_to_sign(
            canonical_request=self.canonical_request, algorithm=self.algorithm
        )
        logger.debug("String to sign:\n%s", self.string_to_sign)
        self.state = SigningState.SCOPED_AND_HASHED
        return self.string_to_sign

    def use_engine(self, engine: SignatureEngine) -> None:
        self._require(SigningState.SCOPED_AND_HASHED)
        if engine.algorithm is not self.algorithm:
            raise UnsupportedSigningConfigurationError(
                f"Cannot sign {self.algorithm} requests with a {engine.algorithm} "
                "signature engine."
            )
        self.engine = engine
        self.state = SigningState.KEYED

    def sign(self) -> str:
        self._require(SigningState.KEYED)
        assert self.engine is not None
        self.signature = self.engine.sign(self.string_to_sign)
        self.state = SigningState.SIGNED
        return self.signature

    def result(self) -> "SigningResult":
        self._require(SigningState.SIGNED)
        assert self.engine is not None
        return SigningResult(
            request=self.request,
            canonical_request=self.canonical_request,
            string_to_sign=self.string_to_sign,
            signature=self.signature,
            scope=self.scope,
            algorithm=self.algorithm,
            engine=self.engine,
        )

    def _require(self, state: SigningState) -> None:
        if self.state is not state:
            raise RuntimeError(
                f"Signing step requires state {state.name}, but the context is "
                f"{self.state.name}."
            )


@dataclass(kw_only=True, frozen=True)
class SigningResult:
    """The signed request along with the intermediate values that produced it.

    The canonical request and string to sign are useful to quickly compare inputs
    when hunting down signature mismatches.
    """

    request: AWSRequest
    canonical_request: str
    string_to_sign: str
    signature: str
    scope: SigningScope
    algorithm: SigningAlgorithm
    engine: SignatureEngine


class SigV4Signer:
    """Request signer for the AWS Signature Version 4 algorithms.

    The identity decides the algorithm: :py:class:`AWSCredentialIdentity` signs with
    SigV4 (HMAC-SHA256) and :py:class:`AWSECDSAIdentity` signs with SigV4A
    (ECDSA-P256-SHA256). For SigV4A the ``region`` signing property holds the
    region set, for example ``*`` or ``us-east-1,us-west-2``.
    """

    def __init__(
        self, *, clock: Clock | None = None, config: SigningConfig | None = None
    ):
        """Constructor.

        :param clock: Returns the current time. Defaults to the system clock in UTC.
        :param config: Default configuration used when ``sign`` or ``presign`` are
            called without one.
        """
        self._clock = clock or utc_now
        self.config = config or self._default_config()

    def _default_config(self) -> SigningConfig:
        return SigningConfig()

    def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
    ) -> AWSRequest:
        """Generate and apply an ``Authorization`` header to a copy of the request.

        :param signing_properties: SigV4SigningProperties to define signing primitives
            such as the target service, region, and date.
        :param http_request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials or a key pair representing an AWS
            Identity or role capacity.
        :param config: Overrides the signer's configuration for this request.
        """
        return self.sign_with_result(
            signing_properties=signing_properties,
            http_request=http_request,
            identity=identity,
            config=config,
        ).request

    def sign_with_result(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
        payload_hash: str | None = None,
    ) -> SigningResult:
        """Sign using headers and return the signed request with its signing details.

        :param payload_hash: A payload token computed by the caller. Skips payload
            resolution entirely when set.
        """
        config = config or self.config
        algorithm = self._validate_identity(identity=identity)
        scope = SigningScope.from_properties(signing_properties, clock=self._clock)

        new_request = deepcopy(http_request)
        if payload_hash is None:
            payload_hash = self._resolve_payload_hash(
                request=new_request, config=config, algorithm=algorithm, presign=False
            )
        chunked = payload_hash == algorithm.streaming_payload
        if chunked and not isinstance(new_request.body, Iterable | ByteStream | None):
            raise UnsupportedSigningConfigurationError(
                "The aws-chunked encoding can't be applied to async bodies. Disable "
                "chunked encoding or payload signing for this request."
            )
        self._apply_required_fields(
            request=new_request,
            scope=scope,
            identity=identity,
            algorithm=algorithm,
        )
        if chunked:
            self._apply_chunked_fields(
                request=new_request, config=config, algorithm=algorithm
            )
        if chunked or config.body_header_policy is BodyHeaderPolicy.ADD_HEADER_IF_SIGNED:
            new_request.fields.set_field(
                Field(name="X-Amz-Content-SHA256", values=[payload_hash])
            )

        context = SigningContext(
            request=new_request,
            scope=scope,
            algorithm=algorithm,
            config=config,
            payload_hash=payload_hash,
        )
        result = self._run(context=context, identity=identity)

        signed_headers = signing_fields(
            fields=new_request.fields, destination=new_request.destination
        )
        authorization = self.generate_authorization_field(
            algorithm=algorithm,
            credential=f"{identity.access_key_id}/{scope.credential_scope(algorithm)}",
            signed_headers=list(signed_headers),
            signature=result.signature,
        )
        new_request.fields.set_field(authorization)

        if chunked:
            new_request.body = ChunkedSigningStream(
                body=cast(Iterable[bytes] | ByteStream, http_request.body),
                engine=result.engine,
                scope=scope,
                seed_signature=result.signature,
                chunk_size=config.chunk_size,
            )
        return result

    def presign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
        expiration: datetime.datetime | None = None,
    ) -> AWSRequest:
        """Generate a copy of the request carrying its signature in query parameters.

        :param expiration: When the presigned request should stop being valid. Takes
            precedence over ``config.expiration_seconds``. The lifetime defaults to
            the maximum of seven days.
        """
        return self.presign_with_result(
            signing_properties=signing_properties,
            http_request=http_request,
            identity=identity,
            config=config,
            expiration=expiration,
        ).request

    def presign_url(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
        expiration: datetime.datetime | None = None,
    ) -> str:
        """Presign the request and return its fully qualified URL."""
        return self.presign(
            signing_properties=signing_properties,
            http_request=http_request,
            identity=identity,
            config=config,
            expiration=expiration,
        ).destination.build()

    def presign_with_result(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
        expiration: datetime.datetime | None = None,
    ) -> SigningResult:
        config = config or self.config
        scope = SigningScope.from_properties(signing_properties, clock=self._clock)
        # Fail on a bad lifetime before doing any cryptographic work.
        expires_in = self._expiration_seconds(
            config=config, expiration=expiration, signing_time=scope.timestamp
        )
        algorithm = self._validate_identity(identity=identity)

        new_request = deepcopy(http_request)
        payload_hash = self._resolve_payload_hash(
            request=new_request, config=config, algorithm=algorithm, presign=True
        )
        signed_headers = signing_fields(
            fields=new_request.fields, destination=new_request.destination
        )
        params = [
            ("X-Amz-Algorithm", str(algorithm)),
            (
                "X-Amz-Credential",
                f"{identity.access_key_id}/{scope.credential_scope(algorithm)}",
            ),
            ("X-Amz-Date", scope.amz_date),
            ("X-Amz-Expires", str(expires_in)),
            ("X-Amz-SignedHeaders", ";".join(signed_headers)),
        ]
        if algorithm is SigningAlgorithm.SIGV4A:
            params.append(("X-Amz-Region-Set", scope.region))
        if identity.session_token is not None:
            params.append(("X-Amz-Security-Token", identity.session_token))
        new_request.destination = new_request.destination.with_query_params(params)

        context = SigningContext(
            request=new_request,
            scope=scope,
            algorithm=algorithm,
            config=config,
            payload_hash=payload_hash,
        )
        result = self._run(context=context, identity=identity)
        new_request.destination = new_request.destination.with_query_params(
            [("X-Amz-Signature", result.signature)]
        )
        return result

    def generate_authorization_field(
        self,
        *,
        algorithm: SigningAlgorithm,
        credential: str,
        signed_headers: list[str],
        signature: str,
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/<request_type>
            The region is omitted for SigV4A.
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final signature generated from the canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{algorithm} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def _run(
        self, *, context: SigningContext, identity: SigningIdentity
    ) -> SigningResult:
        context.canonicalize()
        context.scope_and_hash()
        context.use_engine(
            self._signature_engine(
                identity=identity, algorithm=context.algorithm, scope=context.scope
            )
        )
        context.sign()
        return context.result()

    def _signature_engine(
        self,
        *,
        identity: SigningIdentity,
        algorithm: SigningAlgorithm,
        scope: SigningScope,
    ) -> SignatureEngine:
        if algorithm is SigningAlgorithm.SIGV4A:
            return ECDSASignatureEngine(cast(ECDSAIdentity, identity).private_key)
        return HMACSignatureEngine(
            derive_signing_key(
                secret_access_key=cast(AWSCredentialsIdentity, identity).secret_access_key,
                date=scope.short_date,
                region=scope.region,
                service=scope.service,
            )
        )

    def _validate_identity(self, *, identity: SigningIdentity) -> SigningAlgorithm:
        """Pick the algorithm for ``identity`` and reject unusable identities."""
        if isinstance(identity, ECDSAIdentity):  # pyright: ignore
            validate_ecdsa_key(identity.private_key)
            algorithm = SigningAlgorithm.SIGV4A
        elif isinstance(identity, AWSCredentialsIdentity):  # pyright: ignore
            if not identity.secret_access_key:
                raise InvalidCredentialsError(
                    "Cannot sign with an empty secret access key."
                )
            algorithm = SigningAlgorithm.SIGV4
        else:
            raise InvalidCredentialsError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity or AWSECDSAIdentity but received {type(identity)}."
            )
        if identity.is_expired:
            raise InvalidCredentialsError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )
        return algorithm

    def _expiration_seconds(
        self,
        *,
        config: SigningConfig,
        expiration: datetime.datetime | None,
        signing_time: datetime.datetime,
    ) -> int:
        if expiration is not None:
            if expiration.tzinfo is None:
                expiration = expiration.replace(tzinfo=datetime.UTC)
            expires_in = int((expiration - signing_time).total_seconds())
        elif config.expiration_seconds is not None:
            expires_in = config.expiration_seconds
        else:
            expires_in = MAX_PRESIGN_EXPIRATION_SECONDS

        if not 1 <= expires_in <= MAX_PRESIGN_EXPIRATION_SECONDS:
            raise UnsupportedSigningConfigurationError(
                "Presigned requests must expire between 1 and "
                f"{MAX_PRESIGN_EXPIRATION_SECONDS} seconds after signing, "
                f"requested {expires_in}."
            )
        return expires_in

    def _apply_required_fields(
        self,
        *,
        request: AWSRequest,
        scope: SigningScope,
        identity: SigningIdentity,
        algorithm: SigningAlgorithm,
    ) -> None:
        request.fields.set_field(Field(name="X-Amz-Date", values=[scope.amz_date]))
        # Apply required X-Amz-Security-Token if token present on identity
        if identity.session_token is not None:
            request.fields.set_field(
                Field(name="X-Amz-Security-Token", values=[identity.session_token])
            )
        if algorithm is SigningAlgorithm.SIGV4A:
            request.fields.set_field(
                Field(name="X-Amz-Region-Set", values=[scope.region])
            )

    def _apply_chunked_fields(
        self,
        *,
        request: AWSRequest,
        config: SigningConfig,
        algorithm: SigningAlgorithm,
    ) -> None:
        content_encoding = ["aws-chunked"]
        if (existing := request.fields.get("Content-Encoding")) is not None:
            content_encoding.extend(v for v in existing.values if v != "aws-chunked")
        request.fields.set_field(Field(name="Content-Encoding", values=content_encoding))

        decoded_length = _decoded_content_length(request)
        if decoded_length is None:
            logger.debug(
                "Unable to determine the length of the chunked body, omitting "
                "X-Amz-Decoded-Content-Length and Content-Length."
            )
            return
        request.fields.set_field(
            Field(name="X-Amz-Decoded-Content-Length", values=[str(decoded_length)])
        )
        request.fields.set_field(
            Field(
                name="Content-Length",
                values=[
                    str(
                        encoded_length(
                            decoded_length,
                            chunk_size=config.chunk_size,
                            algorithm=algorithm,
                        )
                    )
                ],
            )
        )

    def _resolve_payload_hash(
        self,
        *,
        request: AWSRequest,
        config: SigningConfig,
        algorithm: SigningAlgorithm,
        presign: bool,
    ) -> str:
        if not presign and (precomputed := _precomputed_payload_hash(request)):
            return precomputed
        if not self._should_sha256_sign_payload(
            request=request, config=config, presign=presign
        ):
            logger.debug("Payload signing disabled, using %s.", UNSIGNED_PAYLOAD)
            return UNSIGNED_PAYLOAD
        if self._use_chunked_encoding(request=request, config=config, presign=presign):
            logger.debug("Signing payload with the aws-chunked encoding.")
            return algorithm.streaming_payload
        return self._compute_payload_hash(request=request)

    def _should_sha256_sign_payload(
        self, *, request: AWSRequest, config: SigningConfig, presign: bool
    ) -> bool:
        # All insecure connections should be signed
        if request.destination.scheme != "https":
            return True

        return config.payload_signing_enabled is not False

    def _use_chunked_encoding(
        self, *, request: AWSRequest, config: SigningConfig, presign: bool
    ) -> bool:
        if presign or not config.chunked_encoding_enabled:
            return False
        # In-memory payloads are cheap to hash up front.
        return request.body is not None and not isinstance(
            request.body, bytes | bytearray
        )

    def _compute_payload_hash(self, *, request: AWSRequest) -> str:
        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, bytes | bytearray):
            return sha256(body).hexdigest()

        if not isinstance(body, Iterable):
            raise TypeError(
                "An async body was attached to a synchronous signer. Please use "
                "AsyncSigV4Signer for async AWSRequests or ensure your body is "
                "of type Iterable[bytes]."
            )

        warnings.warn(
            "Payload signing is enabled. This may result in "
            "decreased performance for large request bodies.",
            AWSSDKWarning,
        )

        checksum = sha256()
        if isinstance(body, Seekable):
            position = body.tell()
            for chunk in body:
                checksum.update(chunk)
            body.seek(position)
        else:
            buffer = io.BytesIO()
            for chunk in body:
                buffer.write(chunk)
                checksum.update(chunk)
            buffer.seek(0)
            request.body = buffer
        return checksum.hexdigest()


class S3SigV4Signer(SigV4Signer):
    """Signer applying the Amazon S3 variations of SigV4 and SigV4A.

    Payloads sent over HTTPS are left unsigned unless payload signing is enabled or
    the body is streamed with the aws-chunked encoding. Presigned S3 requests never
    sign the payload.
    """

    def _default_config(self) -> SigningConfig:
        return SigningConfig.s3()

    def _should_sha256_sign_payload(
        self, *, request: AWSRequest, config: SigningConfig, presign: bool
    ) -> bool:
        if presign:
            return False
        if config.payload_signing_enabled is not None:
            return config.payload_signing_enabled
        if request.destination.scheme != "https":
            return True
        return self._use_chunked_encoding(
            request=request, config=config, presign=presign
        )


class AsyncSigV4Signer:
    """Signs requests whose bodies are async iterables.

    Only payload hashing needs to await the body, the signing itself is delegated
    to a synchronous :py:class:`SigV4Signer`.
    """

    def __init__(self, signer: SigV4Signer | None = None):
        self._signer = signer or SigV4Signer()

    async def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
    ) -> AWSRequest:
        """Generate and apply a signature to a copy of the supplied request.

        :param signing_properties: SigV4SigningProperties to define signing primitives
            such as the target service, region, and date.
        :param http_request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials or a key pair representing an AWS
            Identity or role capacity.
        """
        result = await self.sign_with_result(
            signing_properties=signing_properties,
            http_request=http_request,
            identity=identity,
            config=config,
        )
        return result.request

    async def sign_with_result(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: SigningIdentity,
        config: SigningConfig | None = None,
    ) -> SigningResult:
        config = config or self._signer.config
        new_request = deepcopy(http_request)
        payload_hash = await self._resolve_payload_hash(
            request=new_request, config=config
        )
        return self._signer.sign_with_result(
            signing_properties=signing_properties,
            http_request=new_request,
            identity=identity,
            config=config,
            payload_hash=payload_hash,
        )

    async def _resolve_payload_hash(
        self, *, request: AWSRequest, config: SigningConfig
    ) -> str:
        if precomputed := _precomputed_payload_hash(request):
            return precomputed
        if not self._signer._should_sha256_sign_payload(
            request=request, config=config, presign=False
        ):
            return UNSIGNED_PAYLOAD
        if self._signer._use_chunked_encoding(
            request=request, config=config, presign=False
        ):
            raise UnsupportedSigningConfigurationError(
                "The aws-chunked encoding can't be applied to async bodies. Disable "
                "chunked encoding or payload signing for this request."
            )

        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH

        if not isinstance(body, AsyncIterable):
            raise TypeError(
                "A sync body was attached to an asynchronous signer. Please use "
                "SigV4Signer for sync AWSRequests or ensure your body is "
                "of type AsyncIterable[bytes]."
            )
        warnings.warn(
            "Payload signing is enabled. This may result in "
            "decreased performance for large request bodies.",
            AWSSDKWarning,
        )

        checksum = sha256()
        if isinstance(body, AsyncSeekable) and iscoroutinefunction(body.seek):
            position = body.tell()
            async for chunk in body:
                checksum.update(chunk)
            await body.seek(position)
        else:
            buffer = io.BytesIO()
            async for chunk in body:
                buffer.write(chunk)
                checksum.update(chunk)
            buffer.seek(0)
            request.body = AsyncBytesReader(buffer)
        return checksum.hexdigest()


def verify_signature(
    *,
    canonical_request: str,
    scope: SigningScope,
    signature: str,
    key: bytes | EllipticCurvePublicKey,
) -> bool:
    """Recompute the string to sign and check ``signature`` against it.

    :param key: The derived SigV4 signing key (see ``derive_signing_key``) or the
        public half of the SigV4A key pair. The key type selects the algorithm.
    """
    if isinstance(key, EllipticCurvePublicKey):
        return verify_ecdsa(
            public_key=key,
            string_to_sign=scope.string_to_sign(
                canonical_request=canonical_request, algorithm=SigningAlgorithm.SIGV4A
            ),
            signature=signature,
        )
    return HMACSignatureEngine(key).verify(
        scope.string_to_sign(
            canonical_request=canonical_request, algorithm=SigningAlgorithm.SIGV4
        ),
        signature,
    )


def _precomputed_payload_hash(request: AWSRequest) -> str | None:
    field = request.fields.get("X-Amz-Content-SHA256")
    if field is not None and len(field.values) == 1:
        return field.values[0]
    return None


def _decoded_content_length(request: AWSRequest) -> int | None:
    if (field := request.fields.get("Content-Length")) is not None:
        try:
            return int(field.as_string())
        except ValueError:
            return None
    body = request.body
    if isinstance(body, Seekable) and not iscoroutinefunction(body.seek):
        position = body.tell()
        end = body.seek(0, io.SEEK_END)
        body.seek(position)
        return end - position
    return None
