#!/usr/bin/env python

# pylint: disable=missing-class-docstring,too-few-public-methods

"""Typing classes."""

from typing import List, NamedTuple, Optional

from aiohttp import ClientResponse

from .formattedsha256 import FormattedSHA256
from .manifest import Manifest


class ImageNameParseString(NamedTuple):
    digest: Optional[FormattedSHA256]
    endpoint: Optional[str]
    image: str
    tag: Optional[str]


class ManifestMembership(NamedTuple):
    result: bool
    # One of "direct", "child", or None if not a member
    via: Optional[str] = None


class RequestDescriptor(NamedTuple):
    segments: List[str]
    kind: Optional[str]
    identifier: Optional[str]


class UpstreamClientGetManifest(NamedTuple):
    client_response: ClientResponse
    digest: FormattedSHA256
    manifest: Manifest
    media_type: str
