"""
Typed errors raised by direct metric and inventory queries.
"""

import asyncio
from typing import Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ParamValidationError,
    ReadTimeoutError,
)

from .models.types import ErrorKind, MetricKind


class MonitoringError(Exception):
    """Base class for failures surfaced to callers of direct queries"""

    kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        resource_id: Optional[str] = None,
        metric_kind: Optional[MetricKind] = None,
    ):
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id
        self.metric_kind = metric_kind

    def details(self) -> dict:
        details = {"kind": self.kind.value}
        if self.resource_id:
            details["resource_id"] = self.resource_id
        if self.metric_kind:
            details["metric_kind"] = self.metric_kind.value
        return details


class BackendUnavailableError(MonitoringError):
    kind = ErrorKind.BACKEND_UNAVAILABLE


class ResourceNotFoundError(MonitoringError):
    kind = ErrorKind.NOT_FOUND


class InvalidParameterError(MonitoringError):
    kind = ErrorKind.INVALID_PARAMETER


class UnknownBackendError(MonitoringError):
    kind = ErrorKind.UNKNOWN


_ERROR_CLASSES = {
    ErrorKind.BACKEND_UNAVAILABLE: BackendUnavailableError,
    ErrorKind.NOT_FOUND: ResourceNotFoundError,
    ErrorKind.INVALID_PARAMETER: InvalidParameterError,
    ErrorKind.UNKNOWN: UnknownBackendError,
}


def error_for_kind(kind: ErrorKind, message: str, **context) -> MonitoringError:
    """Instantiate the exception class matching an ErrorKind"""
    return _ERROR_CLASSES[kind](message, **context)


# AWS error codes grouped by how a caller should react to them
_UNAVAILABLE_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "ServiceUnavailable",
    "InternalFailure",
    "InternalServiceError",
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "AuthFailure",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidClientTokenId",
    "UnrecognizedClientException",
}

_NOT_FOUND_CODES = {
    "InvalidInstanceID.NotFound",
    "DBInstanceNotFound",
    "DBInstanceNotFoundFault",
    "ResourceNotFound",
    "ResourceNotFoundException",
}

_INVALID_PARAMETER_CODES = {
    "InvalidParameterValue",
    "InvalidParameterValueException",
    "InvalidParameterCombination",
    "InvalidParameterCombinationException",
    "MissingParameter",
    "MissingRequiredParameterException",
    "InvalidInstanceID.Malformed",
    "ValidationError",
}


def classify_backend_error(error: BaseException) -> ErrorKind:
    """Map a boto3/botocore (or timeout) exception to an ErrorKind"""
    if isinstance(error, MonitoringError):
        return error.kind

    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        if code in _NOT_FOUND_CODES:
            return ErrorKind.NOT_FOUND
        if code in _INVALID_PARAMETER_CODES:
            return ErrorKind.INVALID_PARAMETER
        if code in _UNAVAILABLE_CODES:
            return ErrorKind.BACKEND_UNAVAILABLE
        return ErrorKind.UNKNOWN

    if isinstance(error, ParamValidationError):
        return ErrorKind.INVALID_PARAMETER

    if isinstance(
        error,
        (
            EndpointConnectionError,
            ConnectTimeoutError,
            ReadTimeoutError,
            NoCredentialsError,
            asyncio.TimeoutError,
            TimeoutError,
        ),
    ):
        return ErrorKind.BACKEND_UNAVAILABLE

    if isinstance(error, BotoCoreError):
        return ErrorKind.BACKEND_UNAVAILABLE

    return ErrorKind.UNKNOWN


def wrap_backend_error(error: BaseException, message: str, **context) -> MonitoringError:
    """Wrap a backend exception into the matching MonitoringError"""
    if isinstance(error, MonitoringError):
        return error
    return error_for_kind(
        classify_backend_error(error), f"{message}: {error}", **context
    )
