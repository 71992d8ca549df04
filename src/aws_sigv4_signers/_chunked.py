# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
r"""The aws-chunked content encoding used for signed, streamed S3 uploads.

Each chunk of the body is framed as::

    <hex-length>;chunk-signature=<signature>\r\n<chunk-bytes>\r\n

and the stream ends with a zero-length chunk. Every chunk signature covers the
signature of the chunk before it, starting from the seed signature of the request
headers, so chunks can only be produced one after another.
"""

import logging
from collections.abc import Iterable, Iterator
from hashlib import sha256

from ._crypto import SignatureEngine
from ._scope import SigningScope
from .config import DEFAULT_CHUNK_SIZE, EMPTY_SHA256_HASH, SigningAlgorithm
from .interfaces.io import ByteStream

logger = logging.getLogger(__name__)

_CHUNK_SIGNATURE_EXTENSION = ";chunk-signature="
_CRLF = b"\r\n"

SIGNATURE_LENGTHS: dict[SigningAlgorithm, int] = {
    SigningAlgorithm.SIGV4: 64,
    SigningAlgorithm.SIGV4A: 128,
}


def encoded_length(
    decoded_length: int,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    algorithm: SigningAlgorithm = SigningAlgorithm.SIGV4,
) -> int:
    """Size of the aws-chunked body produced for ``decoded_length`` payload bytes."""
    signature_length = SIGNATURE_LENGTHS[algorithm]

    def framed(data_length: int) -> int:
        header = f"{data_length:x}{_CHUNK_SIGNATURE_EXTENSION}"
        return len(header) + signature_length + len(_CRLF) + data_length + len(_CRLF)

    full_chunks, remainder = divmod(decoded_length, chunk_size)
    total = full_chunks * framed(chunk_size)
    if remainder:
        total += framed(remainder)
    return total + framed(0)


class ChunkedSigningStream:
    """Lazily frames and signs a body with the aws-chunked encoding.

    The stream is an iterator of encoded chunks and can only be consumed once. It
    also offers a ``read`` method so it can be handed to clients that expect a
    file-like body.
    """

    def __init__(
        self,
        *,
        body: Iterable[bytes] | ByteStream | bytes | None,
        engine: SignatureEngine,
        scope: SigningScope,
        seed_signature: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._chunks = _fixed_size_chunks(body, chunk_size)
        self._engine = engine
        self._scope = scope
        self._previous_signature = seed_signature
        self._signatures: list[str] = []
        self._finished = False
        self._buffer = b""

    @property
    def previous_signature(self) -> str:
        """The seed signature, or the signature of the last emitted chunk."""
        return self._previous_signature

    @property
    def signatures(self) -> tuple[str, ...]:
        """Signatures of the chunks emitted so far, in order."""
        return tuple(self._signatures)

    def chunk_string_to_sign(self, *, previous_signature: str, chunk: bytes) -> str:
        return (
            f"{self._engine.algorithm.chunk_algorithm}\n"
            f"{self._scope.amz_date}\n"
            f"{self._scope.credential_scope(self._engine.algorithm)}\n"
            f"{previous_signature}\n"
            f"{EMPTY_SHA256_HASH}\n"
            f"{sha256(chunk).hexdigest()}"
        )

    def chunk_signature(self, *, previous_signature: str, chunk: bytes) -> str:
        """Compute the signature of ``chunk`` following ``previous_signature``."""
        return self._engine.sign(
            self.chunk_string_to_sign(previous_signature=previous_signature, chunk=chunk)
        )

    def verify_chunk(
        self, *, previous_signature: str, chunk: bytes, signature: str
    ) -> bool:
        return self._engine.verify(
            self.chunk_string_to_sign(
                previous_signature=previous_signature, chunk=chunk
            ),
            signature,
        )

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self._finished:
            raise StopIteration

        chunk = next(self._chunks, b"")
        if not chunk:
            self._finished = True
        signature = self.chunk_signature(
            previous_signature=self._previous_signature, chunk=chunk
        )
        logger.debug(
            "Signed chunk %d (%d bytes).", len(self._signatures) + 1, len(chunk)
        )
        self._previous_signature = signature
        self._signatures.append(signature)
        header = f"{len(chunk):x}{_CHUNK_SIGNATURE_EXTENSION}{signature}"
        return header.encode() + _CRLF + chunk + _CRLF

    def read(self, size: int = -1, /) -> bytes:
        """Read up to ``size`` bytes of the encoded body, all of it if negative."""
        if size < 0:
            result = self._buffer + b"".join(self)
            self._buffer = b""
            return result

        while len(self._buffer) < size:
            try:
                self._buffer += next(self)
            except StopIteration:
                break
        result, self._buffer = self._buffer[:size], self._buffer[size:]
        return result


def _fixed_size_chunks(
    body: Iterable[bytes] | ByteStream | bytes | None, chunk_size: int
) -> Iterator[bytes]:
    """Re-slice ``body`` into chunks of exactly ``chunk_size`` except the last."""
    if body is None:
        return
    if isinstance(body, bytes | bytearray):
        pieces: Iterable[bytes] = [bytes(body)]
    elif isinstance(body, ByteStream):
        pieces = iter(lambda: body.read(chunk_size), b"")
    else:
        pieces = body

    buffer = b""
    for piece in pieces:
        buffer += piece
        while len(buffer) >= chunk_size:
            yield buffer[:chunk_size]
            buffer = buffer[chunk_size:]
    if buffer:
        yield buffer
