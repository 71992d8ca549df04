# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import pytest
from aws_sigv4_signers import URI, Field, Fields, SigningConfig
from aws_sigv4_signers._canonical import (
    canonical_fields,
    canonical_path,
    canonical_query,
    canonical_request,
    host_field,
    signing_fields,
)
from aws_sigv4_signers.config import EMPTY_SHA256_HASH

DEFAULT_CONFIG = SigningConfig()
S3_CONFIG = SigningConfig.s3()


@pytest.mark.parametrize(
    "path,config,expected",
    [
        (None, DEFAULT_CONFIG, "/"),
        ("", DEFAULT_CONFIG, "/"),
        ("/", DEFAULT_CONFIG, "/"),
        ("/test%20path/help", DEFAULT_CONFIG, "/test%2520path/help"),
        ("/test%20path/help", S3_CONFIG, "/test%20path/help"),
        ("/foo/./bar/../baz", DEFAULT_CONFIG, "/foo/baz"),
        ("/foo//bar", DEFAULT_CONFIG, "/foo/bar"),
        ("/foo/", DEFAULT_CONFIG, "/foo/"),
        ("/..", DEFAULT_CONFIG, "/"),
        ("/foo/./bar", S3_CONFIG, "/foo/./bar"),
        ("/foo//bar", S3_CONFIG, "/foo//bar"),
        ("/ünicode", S3_CONFIG, "/%C3%BCnicode"),
    ],
)
def test_canonical_path(path: str | None, config: SigningConfig, expected: str) -> None:
    assert canonical_path(path, config=config) == expected


def test_double_encoding_toggle_only_changes_escapes() -> None:
    single = SigningConfig(double_url_encode=False)
    assert canonical_path("/a%2Fb/c", config=DEFAULT_CONFIG) == "/a%252Fb/c"
    assert canonical_path("/a%2Fb/c", config=single) == "/a%2Fb/c"
    assert canonical_path("/plain/path", config=DEFAULT_CONFIG) == canonical_path(
        "/plain/path", config=single
    )


@pytest.mark.parametrize(
    "query,expected",
    [
        (None, ""),
        ("", ""),
        ("b=2&a=1", "a=1&b=2"),
        ("a=2&a=1", "a=1&a=2"),
        ("a=&b", "a=&b="),
        ("key=a%20b", "key=a%20b"),
        ("Param-3=Value3&Param1=value1", "Param-3=Value3&Param1=value1"),
        ("slash=a/b", "slash=a%2Fb"),
        ("tilde=~x", "tilde=~x"),
    ],
)
def test_canonical_query(query: str | None, expected: str) -> None:
    assert canonical_query(query) == expected


def test_signing_fields_normalization() -> None:
    fields = Fields(
        [
            Field(name="X-Amz-Meta", values=["  a   b  "]),
            Field(name="User-Agent", values=["my-client/1.0"]),
            Field(name="X-Multi", values=["one", "two"]),
            Field(name="Authorization", values=["ignored"]),
        ]
    )
    normalized = signing_fields(
        fields=fields, destination=URI(host="example.amazonaws.com")
    )
    assert normalized == {
        "host": "example.amazonaws.com",
        "x-amz-meta": "a b",
        "x-multi": "one,two",
    }
    assert list(normalized) == sorted(normalized)
    assert canonical_fields(normalized) == (
        "host:example.amazonaws.com\nx-amz-meta:a b\nx-multi:one,two\n"
    )


def test_explicit_host_field_wins() -> None:
    fields = Fields([Field(name="Host", values=["override.example.com"])])
    normalized = signing_fields(fields=fields, destination=URI(host="example.com"))
    assert normalized == {"host": "override.example.com"}


@pytest.mark.parametrize(
    "uri,expected",
    [
        (URI(host="example.com"), "example.com"),
        (URI(host="example.com", port=443), "example.com"),
        (URI(scheme="http", host="example.com", port=80), "example.com"),
        (URI(scheme="http", host="example.com", port=443), "example.com:443"),
        (URI(host="127.0.0.1", port=8000), "127.0.0.1:8000"),
    ],
)
def test_host_field(uri: URI, expected: str) -> None:
    assert host_field(uri) == expected


def test_canonical_request_vanilla() -> None:
    fields = Fields([Field(name="X-Amz-Date", values=["20150830T123600Z"])])
    actual = canonical_request(
        method="get",
        destination=URI(host="example.amazonaws.com", path="/"),
        fields=fields,
        payload_hash=EMPTY_SHA256_HASH,
        config=DEFAULT_CONFIG,
    )
    assert actual == (
        "GET\n"
        "/\n"
        "\n"
        "host:example.amazonaws.com\n"
        "x-amz-date:20150830T123600Z\n"
        "\n"
        "host;x-amz-date\n"
        f"{EMPTY_SHA256_HASH}"
    )


def test_canonical_request_is_idempotent() -> None:
    fields = Fields(
        [
            Field(name="X-Amz-Date", values=["20150830T123600Z"]),
            Field(name="My-Header", values=["  spaced   value "]),
        ]
    )
    destination = URI(host="example.com", path="/a/../b c", query="z=1&y=%20")
    kwargs = dict(
        method="POST",
        destination=destination,
        fields=fields,
        payload_hash=EMPTY_SHA256_HASH,
        config=DEFAULT_CONFIG,
    )
    assert canonical_request(**kwargs) == canonical_request(**kwargs)  # type: ignore
