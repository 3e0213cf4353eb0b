#!/usr/bin/env python

"""Utility functions."""

import os

from typing import Optional, Tuple

from multidict import CIMultiDict, CIMultiDictProxy

CHUNK_SIZE = int(os.environ.get("DRA_CHUNK_SIZE", 2097152))

# https://datatracker.ietf.org/doc/html/rfc2616#section-13.5.1
HOP_BY_HOP_HEADERS = [
    "Connection",
    "Keep-Alive",
    "Proxy-Authenticate",
    "Proxy-Authorization",
    "TE",
    "Trailer",
    "Transfer-Encoding",
    "Upgrade",
]


def filter_headers(headers: CIMultiDictProxy, *, exclude=None) -> CIMultiDict:
    """
    Copies a set of HTTP headers, omitting hop-by-hop headers.

    Args:
        headers: The headers to be copied; repeated headers are preserved.
        exclude: Additional header names to be omitted.

    Returns:
        The copied headers.
    """
    excluded = {header.lower() for header in HOP_BY_HOP_HEADERS}
    if exclude:
        excluded.update(header.lower() for header in exclude)
    result = CIMultiDict()
    for key, value in headers.items():
        if key.lower() not in excluded:
            result.add(key, value)
    return result


def parse_listen_address(address: str) -> Tuple[Optional[str], int]:
    """
    Parses a listen address in form [host]:port.

    Args:
        address: The address to be parsed; an empty host binds all interfaces.

    Returns:
        The host, or None, and the port.
    """
    host, separator, port = address.rpartition(":")
    if not separator or not port.isdigit():
        raise ValueError(f"Invalid listen address: {address}")
    host = host.strip("[]") if host else None
    return host, int(port)


def strip_parameters(content_type: Optional[str]) -> Optional[str]:
    """
    Removes parameters from a Content-Type header value.

    Args:
        content_type: The header value, e.g. "application/json; charset=utf-8".

    Returns:
        The bare media type, or None.
    """
    if not content_type:
        return None
    return content_type.split(";")[0].strip()
