#!/usr/bin/env python

"""A read-only Docker Registry mirror that serves the same image for every tag."""

from .digestresolver import DigestResolver
from .errors import (
    MethodNotAllowedError,
    RegistryError,
    RoutingError,
    UpstreamProxyError,
    UpstreamTransportError,
)
from .formattedsha256 import FormattedSHA256
from .imagename import ImageName
from .manifest import Manifest, ManifestDescriptor
from .registrymirror import create_app, RegistryMirror
from .requestrouter import RequestRouter
from .specs import DockerMediaTypes, Indices, MediaTypes, OCIMediaTypes
from .upstreamclient import UpstreamClient

__version__ = "0.1.0"
