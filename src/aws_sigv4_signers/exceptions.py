# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class AWSSDKWarning(UserWarning): ...


class BaseAWSSDKException(Exception):
    """Top-level exception to capture SDK-related errors."""


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """Some APIs require specific signing properties to be present."""


class InvalidCredentialsError(BaseAWSSDKException, ValueError):
    """The supplied identity can't be used for signing.

    Raised for unexpected identity types, expired identities and empty secrets.
    """


class InvalidKeyError(InvalidCredentialsError):
    """An asymmetric identity holds a key that isn't a usable P-256 key pair."""


class InvalidRegionOrServiceError(BaseAWSSDKException, ValueError):
    """A component of the credential scope is missing or empty."""


class UnsupportedSigningConfigurationError(BaseAWSSDKException, ValueError):
    """The requested combination of signing options can't be honored."""


class SignatureComputationError(BaseAWSSDKException):
    """The underlying hash or ECDSA primitive failed."""
