# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from datetime import UTC, datetime, timedelta, timezone

import pytest
from aws_sigv4_signers import SigningAlgorithm, SigningScope, SigV4SigningProperties
from aws_sigv4_signers.exceptions import (
    InvalidRegionOrServiceError,
    MissingExpectedParameterException,
)
from freezegun import freeze_time

DATE = datetime(2015, 8, 30, 12, 36, 0, tzinfo=UTC)


@pytest.fixture(scope="module")
def scope() -> SigningScope:
    return SigningScope(timestamp=DATE, region="us-east-1", service="iam")


def test_dates(scope: SigningScope) -> None:
    assert scope.amz_date == "20150830T123600Z"
    assert scope.short_date == "20150830"


def test_credential_scope(scope: SigningScope) -> None:
    assert (
        scope.credential_scope(SigningAlgorithm.SIGV4)
        == "20150830/us-east-1/iam/aws4_request"
    )
    assert scope.credential_scope(SigningAlgorithm.SIGV4A) == "20150830/iam/aws4_request"


def test_string_to_sign(scope: SigningScope) -> None:
    canonical_request = (
        "GET\n/\nAction=ListUsers&Version=2010-05-08\n"
        "content-type:application/x-www-form-urlencoded; charset=utf-8\n"
        "host:iam.amazonaws.com\nx-amz-date:20150830T123600Z\n\n"
        "content-type;host;x-amz-date\n"
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
    actual = scope.string_to_sign(
        canonical_request=canonical_request, algorithm=SigningAlgorithm.SIGV4
    )
    lines = actual.split("\n")
    assert lines[:3] == [
        "AWS4-HMAC-SHA256",
        "20150830T123600Z",
        "20150830/us-east-1/iam/aws4_request",
    ]
    assert lines[3] == (
        "f536975d06c0309214f805bb90ccff089219ecd68b2577efef23edd43b7e1a59"
    )


def test_timestamp_is_normalized_to_utc_seconds() -> None:
    offset = timezone(timedelta(hours=-7))
    scope = SigningScope(
        timestamp=datetime(2015, 8, 30, 5, 36, 0, 123456, tzinfo=offset),
        region="us-east-1",
        service="iam",
    )
    assert scope.timestamp == DATE
    naive = SigningScope(
        timestamp=datetime(2015, 8, 30, 12, 36), region="us-east-1", service="iam"
    )
    assert naive.timestamp == DATE


@pytest.mark.parametrize("region,service", [("", "iam"), ("us-east-1", "")])
def test_empty_region_or_service(region: str, service: str) -> None:
    with pytest.raises(InvalidRegionOrServiceError):
        SigningScope(timestamp=DATE, region=region, service=service)


def test_from_properties_prefers_date() -> None:
    scope = SigningScope.from_properties(
        SigV4SigningProperties(region="us-east-1", service="iam", date="20150830T123600Z"),
        clock=lambda: datetime(2000, 1, 1, tzinfo=UTC),
    )
    assert scope.timestamp == DATE


@freeze_time("2015-08-30 12:36:00")
def test_from_properties_uses_system_clock() -> None:
    scope = SigningScope.from_properties(
        SigV4SigningProperties(region="us-east-1", service="iam")
    )
    assert scope.amz_date == "20150830T123600Z"


@pytest.mark.parametrize("date", ["0", "2015-08-30T12:36:00Z", ""])
def test_from_properties_invalid_date(date: str) -> None:
    with pytest.raises(MissingExpectedParameterException):
        SigningScope.from_properties(
            SigV4SigningProperties(region="us-east-1", service="iam", date=date)
        )
