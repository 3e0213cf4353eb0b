#!/usr/bin/env python

"""Maps incoming registry API paths onto the upstream registry."""

import logging

from .digestresolver import DigestResolver
from .errors import RoutingError
from .formattedsha256 import FormattedSHA256
from .imagename import ImageName
from .typing import RequestDescriptor

LOGGER = logging.getLogger(__name__)

KIND_BLOBS = "blobs"
KIND_MANIFESTS = "manifests"


class RequestRouter:
    """
    Rewrites registry API paths into upstream URLs. Every manifest request resolves to the upstream image, unless it
    names a digest that belongs to the upstream image tree.
    """

    def __init__(self, image_name: ImageName, digest_resolver: DigestResolver):
        """
        Args:
            image_name: The upstream image name.
            digest_resolver: Resolver used to check digest membership.
        """
        self.image_name = image_name
        self.digest_resolver = digest_resolver

    @staticmethod
    def describe(path: str) -> RequestDescriptor:
        """
        Extracts the resource kind and identifier from a registry API path.

        Args:
            path: The request path, e.g. /v2/<name>/manifests/<reference>.

        Returns:
            dict:
                segments: The path segments.
                kind: The second to last segment, or None.
                identifier: The last segment, or None.
        """
        segments = path.split("/")
        if len(segments) < 2:
            return RequestDescriptor(segments=segments, kind=None, identifier=None)
        return RequestDescriptor(
            segments=segments, kind=segments[-2], identifier=segments[-1]
        )

    async def route(self, path: str) -> str:
        """
        Determines the upstream URL for a registry API path.

        Args:
            path: The request path, below /v2/.

        Returns:
            The upstream URL.
        """
        descriptor = RequestRouter.describe(path)

        if descriptor.kind == KIND_MANIFESTS:
            # The digest may be the digest of the upstream manifest or, if that is a manifest list, the digest of
            # one of its children.
            if FormattedSHA256.is_digest(descriptor.identifier):
                try:
                    digest = FormattedSHA256.parse(descriptor.identifier)
                except ValueError as exception:
                    raise RoutingError.wrap("parsing digest", exception) from exception
                membership = await self.digest_resolver.is_member(digest)
                if membership.result:
                    LOGGER.debug(
                        "%s is a %s member of %s",
                        digest,
                        membership.via,
                        self.image_name,
                    )
                    return self.image_name.resolve_url(KIND_MANIFESTS, digest)

            # Otherwise, proxy all manifest requests to the upstream reference
            return self.image_name.resolve_url(
                KIND_MANIFESTS, self.image_name.resolve_identifier()
            )

        return self.image_name.resolve_url(*descriptor.segments[-2:])
