#!/usr/bin/env python

"""Errors returned by the registry mirror, rendered as distribution API error envelopes."""

import json

from http import HTTPStatus
from typing import Any, Dict


class RegistryError(Exception):
    """
    Error with a distribution API error code and an HTTP status.
    """

    CODE = "INTERNAL_ERROR"
    STATUS = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, code: str = None, status: int = None):
        """
        Args:
            message: Human readable description of the error.
        Keyword Args:
            code: Distribution API error code; defaults to the class code.
            status: HTTP status; defaults to the class status.
        """
        super().__init__(message)
        self.code = code if code else self.CODE
        self.message = message
        self.status = int(status if status else self.STATUS)

    @classmethod
    def wrap(cls, context: str, exception: BaseException) -> "RegistryError":
        """
        Wraps an arbitrary exception, prefixing its text with the context in which it occurred.

        Args:
            context: Description of the failed operation.
            exception: The underlying exception.

        Returns:
            The newly initialized error; chain it with "raise ... from exception".
        """
        return cls(f"{context}: {exception}")

    def get_json(self) -> Dict[str, Any]:
        """
        Retrieves the error envelope.

        Returns:
            {"errors": [{"code": ..., "message": ...}]}
        """
        return {"errors": [{"code": self.code, "message": self.message}]}

    def get_bytes(self) -> bytes:
        """
        Retrieves the serialized error envelope.

        Returns:
            The error envelope, JSON encoded.
        """
        return json.dumps(self.get_json()).encode("utf-8")


class MethodNotAllowedError(RegistryError):
    """A mutating method was attempted against the read-only mirror."""

    CODE = "DENIED"
    STATUS = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, message: str = "read-only", **kwargs):
        super().__init__(message, **kwargs)


class RoutingError(RegistryError):
    """The upstream URL for a request could not be determined."""


class UpstreamTransportError(RegistryError):
    """The upstream registry could not be reached, authenticated against, or answered unsuccessfully."""


class UpstreamProxyError(RegistryError):
    """A client request could not be forwarded to the upstream registry."""
