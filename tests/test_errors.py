#!/usr/bin/env python

"""Registry error tests."""

import json

from http import HTTPStatus

import pytest

from docker_registry_always import (
    MethodNotAllowedError,
    RegistryError,
    RoutingError,
    UpstreamProxyError,
    UpstreamTransportError,
)


def test_method_not_allowed():
    """Test that mutating methods are denied."""
    error = MethodNotAllowedError()
    assert error.status == HTTPStatus.METHOD_NOT_ALLOWED
    assert error.get_json() == {
        "errors": [{"code": "DENIED", "message": "read-only"}]
    }


@pytest.mark.parametrize(
    "error_type", [RoutingError, UpstreamProxyError, UpstreamTransportError]
)
def test_internal_errors(error_type):
    """Test that routing and upstream failures are internal errors."""
    error = error_type("something broke")
    assert isinstance(error, RegistryError)
    assert error.status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert error.code == "INTERNAL_ERROR"
    assert str(error) == "something broke"


def test_wrap():
    """Test that wrapped exceptions carry their context."""
    error = UpstreamTransportError.wrap("fetching manifest", ValueError("boom"))
    assert isinstance(error, UpstreamTransportError)
    assert error.message == "fetching manifest: boom"


def test_get_bytes():
    """Test that the error envelope is serialized."""
    error = RegistryError("nope", code="UNSUPPORTED", status=HTTPStatus.BAD_REQUEST)
    assert error.status == 400
    assert json.loads(error.get_bytes()) == {
        "errors": [{"code": "UNSUPPORTED", "message": "nope"}]
    }
