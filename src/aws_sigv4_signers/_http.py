# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Minimal HTTP request model consumed and produced by the signers.

The signers only need a method, a destination, an ordered collection of header
fields and a body, so these types stay intentionally small. Adapters for other
HTTP libraries are expected to convert into an :py:class:`AWSRequest` before signing.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import AsyncIterable, Iterable, Iterator
from copy import deepcopy
from dataclasses import dataclass, replace
from urllib.parse import quote, urlunparse


class Field:
    """A named header with one or more values.

    Field names are case insensitive. The original casing is preserved for
    transmission, but lookups in :py:class:`Fields` ignore it.
    """

    def __init__(self, *, name: str, values: Iterable[str] | None = None):
        self.name = name
        self.values: list[str] = list(values) if values is not None else []

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def set(self, values: list[str]) -> None:
        """Overwrite existing field values."""
        self.values = values

    def as_string(self, delimiter: str = ",") -> str:
        """Get the values joined by ``delimiter``.

        A field with exactly one value returns it unmodified and a field without
        values returns the empty string.
        """
        return delimiter.join(self.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return False
        return self.name == other.name and self.values == other.values

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, values={self.values!r})"


class Fields:
    def __init__(self, initial: Iterable[Field] | None = None):
        """Ordered, case-insensitive collection of header fields.

        :param initial: Initial ``Field`` objects. Names must be unique once
            lowercased.
        """
        self.entries: OrderedDict[str, Field] = OrderedDict()
        for field in initial or ():
            key = field.name.lower()
            if key in self.entries:
                raise ValueError(
                    "Field names of the initial list of fields must be unique. "
                    f"{field.name!r} appears more than once."
                )
            self.entries[key] = field

    def set_field(self, field: Field) -> None:
        """Set or override the entry for ``field.name``."""
        self.entries[field.name.lower()] = field

    def get(self, key: str, default: Field | None = None) -> Field | None:
        return self[key] if key in self else default

    def __getitem__(self, name: str) -> Field:
        return self.entries[name.lower()]

    def __delitem__(self, name: str) -> None:
        del self.entries[name.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self.entries

    def __iter__(self) -> Iterator[Field]:
        yield from self.entries.values()

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return False
        return self.entries == other.entries

    def __repr__(self) -> str:
        return f"Fields({list(self.entries.values())})"


@dataclass(kw_only=True, frozen=True)
class URI:
    """Target location of an :py:class:`AWSRequest`."""

    scheme: str = "https"
    """For example ``http`` or ``https``."""

    host: str
    """The hostname, for example ``amazonaws.com``."""

    port: int | None = None
    """An explicit port number."""

    path: str | None = None
    """Path component of the URI, already percent-encoded for transmission."""

    query: str | None = None
    """Query component of the URI as a raw, percent-encoded string."""

    fragment: str | None = None
    """Part of the URI specification, but never transmitted or signed."""

    @property
    def netloc(self) -> str:
        if self.port is not None:
            return f"{self.host}:{self.port}"
        return self.host

    def with_query_params(self, params: Iterable[tuple[str, str]]) -> URI:
        """Return a copy of this URI with ``params`` appended to the query.

        Keys and values are percent-encoded; existing parameters keep their order.
        """
        encoded = "&".join(
            f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in params
        )
        if not encoded:
            return self
        query = f"{self.query}&{encoded}" if self.query else encoded
        return replace(self, query=query)

    def build(self) -> str:
        """Construct the string form ``{scheme}://{host}:{port}{path}?{query}``."""
        components = (
            self.scheme,
            self.netloc,
            self.path or "",
            "",  # params
            self.query,
            self.fragment,
        )
        return urlunparse(components)


class AWSRequest:
    def __init__(
        self,
        *,
        destination: URI,
        method: str,
        body: AsyncIterable[bytes] | Iterable[bytes] | None,
        fields: Fields,
    ):
        self.destination = destination
        self.method = method
        self.body = body
        self.fields = fields

    def __deepcopy__(self, memo: dict[int, AWSRequest] | None = None) -> AWSRequest:
        if memo is None:
            memo = {}

        if id(self) in memo:
            return memo[id(self)]

        # the destination doesn't need to be copied because it's immutable
        # the body can't be copied because it may be a one-shot stream
        new_instance = self.__class__(
            destination=self.destination,
            body=self.body,
            method=self.method,
            fields=deepcopy(self.fields, memo),
        )
        memo[id(self)] = new_instance
        return new_instance

    def __repr__(self) -> str:
        return (
            f"AWSRequest(method={self.method!r}, "
            f"destination={self.destination.build()!r}, fields={self.fields!r})"
        )
