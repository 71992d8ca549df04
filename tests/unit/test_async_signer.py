# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import copy
import re
import typing
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from io import BytesIO

import pytest
from aws_sigv4_signers import (
    URI,
    AsyncBytesReader,
    AsyncSigV4Signer,
    AWSCredentialIdentity,
    AWSECDSAIdentity,
    AWSRequest,
    BodyHeaderPolicy,
    Field,
    Fields,
    S3SigV4Signer,
    SigningConfig,
    SigV4SigningProperties,
)
from aws_sigv4_signers.config import UNSIGNED_PAYLOAD
from aws_sigv4_signers.exceptions import (
    AWSSDKWarning,
    UnsupportedSigningConfigurationError,
)

SIGV4_RE = re.compile(
    r"AWS4-HMAC-SHA256 "
    r"Credential=(?P<access_key>\w+)/\d+/"
    r"(?P<signing_region>[a-z0-9-]+)/"
)
BODY_HASH = "8d969eef6ecad3c29a3a629280e686cf0c3f5d5a86aff3ca12020c923adc6c92"


@pytest.fixture(scope="module")
def aws_identity() -> AWSCredentialIdentity:
    return AWSCredentialIdentity(
        access_key_id="AKID123456",
        secret_access_key="EXAMPLE1234SECRET",
        session_token="X123456SESSION",
    )


@pytest.fixture(scope="module")
def signing_properties() -> SigV4SigningProperties:
    return SigV4SigningProperties(region="us-west-2", service="ec2")


def _request(body: typing.Any) -> AWSRequest:
    return AWSRequest(
        destination=URI(scheme="https", host="127.0.0.1", port=8000),
        method="GET",
        body=body,
        fields=Fields(),
    )


class UnreadableAsyncStream:
    def __aiter__(self) -> typing.Self:
        return self

    async def __anext__(self) -> bytes:
        raise Exception("Read should not have been called!")


async def _generate(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def _read_all(body: typing.Any) -> bytes:
    return b"".join([chunk async for chunk in body])


class TestAsyncSigV4Signer:
    SIGV4_ASYNC_SIGNER = AsyncSigV4Signer()

    async def test_sign(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        request = _request(AsyncBytesReader(b"123456"))
        with pytest.warns(AWSSDKWarning):
            result = await self.SIGV4_ASYNC_SIGNER.sign_with_result(
                signing_properties=signing_properties,
                http_request=request,
                identity=aws_identity,
            )
        signed_request = result.request
        assert signed_request is not request
        authorization_field = signed_request.fields["authorization"]
        assert SIGV4_RE.match(authorization_field.as_string())
        assert result.canonical_request.endswith(f"\n{BODY_HASH}")
        # Seekable bodies are rewound after hashing.
        assert await _read_all(signed_request.body) == b"123456"

    async def test_sign_doesnt_modify_original_request(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        request = _request(None)
        original_request = copy.deepcopy(request)
        signed_request = await self.SIGV4_ASYNC_SIGNER.sign(
            signing_properties=signing_properties,
            http_request=request,
            identity=aws_identity,
        )
        assert signed_request is not request
        assert request.fields == original_request.fields
        assert signed_request.fields != request.fields

    async def test_non_seekable_body_is_buffered(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        with pytest.warns(AWSSDKWarning):
            result = await self.SIGV4_ASYNC_SIGNER.sign_with_result(
                signing_properties=signing_properties,
                http_request=_request(_generate(b"123", b"456")),
                identity=aws_identity,
            )
        assert result.canonical_request.endswith(f"\n{BODY_HASH}")
        assert isinstance(result.request.body, AsyncBytesReader)
        assert await _read_all(result.request.body) == b"123456"

    @typing.no_type_check
    async def test_sign_with_invalid_identity(
        self, signing_properties: SigV4SigningProperties
    ) -> None:
        """Ignore typing as we're testing an invalid input state."""
        identity = object()
        assert not isinstance(identity, AWSCredentialIdentity)
        with pytest.raises(ValueError):
            await self.SIGV4_ASYNC_SIGNER.sign(
                signing_properties=signing_properties,
                http_request=_request(None),
                identity=identity,
            )

    async def test_sign_with_expired_identity(
        self, signing_properties: SigV4SigningProperties
    ) -> None:
        identity = AWSCredentialIdentity(
            access_key_id="AKID123456",
            secret_access_key="EXAMPLE1234SECRET",
            session_token="X123456SESSION",
            expiration=datetime(1970, 1, 1, tzinfo=UTC),
        )
        with pytest.raises(ValueError):
            await self.SIGV4_ASYNC_SIGNER.sign(
                signing_properties=signing_properties,
                http_request=_request(None),
                identity=identity,
            )

    async def test_unsigned_payload_is_not_read(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        signer = AsyncSigV4Signer()
        signed = await signer.sign(
            signing_properties=signing_properties,
            http_request=_request(UnreadableAsyncStream()),
            identity=aws_identity,
            config=SigningConfig(
                payload_signing_enabled=False,
                body_header_policy=BodyHeaderPolicy.ADD_HEADER_IF_SIGNED,
            ),
        )
        assert signed.fields["X-Amz-Content-SHA256"].as_string() == UNSIGNED_PAYLOAD

    async def test_sync_body_on_async_signer(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        with pytest.raises(TypeError):
            await self.SIGV4_ASYNC_SIGNER.sign(
                signing_properties=signing_properties,
                http_request=_request(BytesIO(b"123456")),
                identity=aws_identity,
            )

    async def test_chunked_async_body_is_unsupported(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        signer = AsyncSigV4Signer(S3SigV4Signer())
        with pytest.raises(UnsupportedSigningConfigurationError):
            await signer.sign(
                signing_properties=signing_properties,
                http_request=_request(_generate(b"123456")),
                identity=aws_identity,
            )

    async def test_sigv4a(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        with pytest.warns(AWSSDKWarning):
            result = await self.SIGV4_ASYNC_SIGNER.sign_with_result(
                signing_properties=signing_properties,
                http_request=_request(AsyncBytesReader(b"123456")),
                identity=AWSECDSAIdentity.from_credentials(aws_identity),
            )
        assert result.request.fields["Authorization"].as_string().startswith(
            "AWS4-ECDSA-P256-SHA256 Credential=AKID123456/"
        )
        assert result.request.fields["X-Amz-Region-Set"].as_string() == "us-west-2"

    async def test_precomputed_streaming_token_with_async_body(
        self,
        aws_identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties,
    ) -> None:
        signer = AsyncSigV4Signer(S3SigV4Signer())
        request = _request(UnreadableAsyncStream())
        request.fields.set_field(
            Field(
                name="X-Amz-Content-SHA256",
                values=["STREAMING-AWS4-HMAC-SHA256-PAYLOAD"],
            )
        )
        with pytest.raises(UnsupportedSigningConfigurationError):
            await signer.sign(
                signing_properties=signing_properties,
                http_request=request,
                identity=aws_identity,
            )
