# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from collections.abc import AsyncIterator
from io import BytesIO

_DEFAULT_CHUNK_SIZE = 1024


class AsyncBytesReader:
    """An async, seekable view over an in-memory buffer.

    Used to hand a body back to async clients after it had to be consumed for
    payload hashing.
    """

    def __init__(self, data: bytes | BytesIO):
        self._data = BytesIO(data) if isinstance(data, bytes) else data

    async def read(self, size: int = -1) -> bytes:
        return self._data.read(size)

    async def seek(self, offset: int, whence: int = 0) -> int:
        return self._data.seek(offset, whence)

    def tell(self) -> int:
        return self._data.tell()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    async def iter_chunks(
        self, chunk_size: int = _DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        while chunk := self._data.read(chunk_size):
            yield chunk
