# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from urllib.parse import parse_qsl, quote

from ._http import URI, Fields
from .config import SigningConfig

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "accept",
    "accept-encoding",
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
)
DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}


def canonical_request(
    *,
    method: str,
    destination: URI,
    fields: Fields,
    payload_hash: str,
    config: SigningConfig,
) -> str:
    """Build the canonical request for a request that is ready to be signed.

    The SigV4 specification defines the canonical request to be:
        <HTTPMethod>\n
        <CanonicalURI>\n
        <CanonicalQueryString>\n
        <CanonicalHeaders>\n
        <SignedHeaders>\n
        <HashedPayload>

    Every header of ``fields`` that isn't excluded from signing is included, so all
    headers added by the signer must be in place before this is called.

    :param payload_hash: The resolved payload token. Either the hex SHA-256 digest
        of the body, ``UNSIGNED-PAYLOAD`` or a streaming marker.
    """
    normalized_fields = signing_fields(fields=fields, destination=destination)
    return (
        f"{method.upper()}\n"
        f"{canonical_path(destination.path, config=config)}\n"
        f"{canonical_query(destination.query)}\n"
        f"{canonical_fields(normalized_fields)}\n"
        f"{';'.join(normalized_fields)}\n"
        f"{payload_hash}"
    )


def canonical_path(path: str | None, *, config: SigningConfig) -> str:
    if not path:
        return "/"

    if config.normalize_uri_path:
        path = _remove_dot_segments(path) or "/"

    if config.double_url_encode:
        # The path arrives encoded for transmission, encoding it again turns
        # ``%20`` into ``%2520``.
        return quote(string=path, safe="/")
    # Keep existing escapes and only encode what was left raw.
    return quote(string=path, safe="/%")


def canonical_query(query: str | None) -> str:
    if not query:
        return ""

    query_params = parse_qsl(qs=query, keep_blank_values=True)
    query_parts = (
        (quote(string=key, safe=""), quote(string=value, safe=""))
        for key, value in query_params
    )
    # key-value pairs must be in sorted order for their encoded forms.
    return "&".join(f"{key}={value}" for key, value in sorted(query_parts))


def signing_fields(*, fields: Fields, destination: URI) -> dict[str, str]:
    """Lowercased, sorted mapping of every header included in the signature."""
    normalized_fields = {
        field.name.lower(): ",".join(" ".join(value.split()) for value in field.values)
        for field in fields
        if is_signable_header(field.name)
    }
    if "host" not in normalized_fields:
        normalized_fields["host"] = host_field(destination)

    return dict(sorted(normalized_fields.items()))


def canonical_fields(fields: dict[str, str]) -> str:
    return "".join(f"{key}:{value}\n" for key, value in fields.items())


def is_signable_header(field_name: str) -> bool:
    return field_name.lower() not in HEADERS_EXCLUDED_FROM_SIGNING


def host_field(uri: URI) -> str:
    if uri.port is not None and DEFAULT_PORTS.get(uri.scheme) == uri.port:
        return uri.host
    return uri.netloc


def _remove_dot_segments(path: str) -> str:
    """Removes dot segments from a path per :rfc:`3986#section-5.2.4`.

    Consecutive slashes are collapsed as well.
    :param path: The path to modify.
    :returns: The normalized path.
    """
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    result = "/".join(output)
    while "//" in result:
        result = result.replace("//", "/")
    return result
