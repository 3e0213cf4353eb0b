#!/usr/bin/env python

"""Decides whether a digest addresses the upstream image or one of its children."""

import logging

from aiohttp import ClientError

from .errors import UpstreamTransportError
from .formattedsha256 import FormattedSHA256
from .imagename import ImageName
from .typing import ManifestMembership
from .upstreamclient import UpstreamClient

LOGGER = logging.getLogger(__name__)


class DigestResolver:
    """
    Resolves manifest digest membership against the upstream image tree.
    """

    def __init__(self, image_name: ImageName, upstream_client: UpstreamClient):
        """
        Args:
            image_name: The upstream image name.
            upstream_client: The client used to retrieve the upstream manifest.
        """
        self.image_name = image_name
        self.upstream_client = upstream_client

    async def is_member(self, digest: FormattedSHA256) -> ManifestMembership:
        """
        Checks if a given digest identifies the upstream manifest, or a manifest listed by the upstream manifest list
        or image index. Only the first level of an index is inspected.

        Args:
            digest: The digest to be checked.

        Returns:
            dict:
                result: True if the digest belongs to the upstream image, False otherwise.
                via: "direct" or "child" if the digest belongs to the upstream image, None otherwise.
        """
        if self.image_name.digest and self.image_name.digest == digest:
            return ManifestMembership(result=True, via="direct")

        try:
            response = await self.upstream_client.get_manifest(self.image_name)
        except (ClientError, OSError, ValueError) as exception:
            raise UpstreamTransportError.wrap(
                "fetching manifest", exception
            ) from exception

        if response.digest == digest:
            return ManifestMembership(result=True, via="direct")

        # TODO: Children may be manifest lists as well; walk the tree once the expected behavior is settled.
        try:
            descriptors = response.manifest.get_descriptors()
        except (AttributeError, KeyError, TypeError, ValueError) as exception:
            raise UpstreamTransportError.wrap(
                "parsing index manifest", exception
            ) from exception
        for descriptor in descriptors:
            if descriptor.digest == digest:
                return ManifestMembership(result=True, via="child")

        LOGGER.debug(
            "Digest %s does not belong to %s (%s)",
            digest,
            self.image_name,
            response.media_type,
        )
        return ManifestMembership(result=False)
