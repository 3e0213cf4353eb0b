#!/usr/bin/env python

"""
Abstraction of image manifests and manifest lists, as defined in:

* https://github.com/docker/distribution/tree/master/docs/spec
* https://github.com/opencontainers/image-spec/blob/master/media-types.md
"""

import json

from typing import List, NamedTuple, Optional

from .formattedsha256 import FormattedSHA256
from .specs import DockerMediaTypes, INDEX_MEDIA_TYPES, MediaTypes, OCIMediaTypes


class ManifestDescriptor(NamedTuple):
    # pylint: disable=missing-class-docstring
    digest: FormattedSHA256
    media_type: Optional[str]


class Manifest:
    """
    Read-only view of a raw image manifest.
    """

    def __init__(self, manifest: bytes, *, media_type: str = None):
        """
        Args:
            manifest: The raw image manifest value.
            media_type: The media type of the image manifest.
        """
        self.bytes = manifest
        self.json = None
        self.media_type = media_type
        if not self.media_type:
            self._detect_media_type()

    def _detect_media_type(self):
        """
        Attempts to detect the media type of the image manifest.
        """
        manifest = self.get_json()

        # Is there a declared media type (applies to all of Docker manifest v2.2)?
        if "mediaType" in manifest:
            self.media_type = manifest["mediaType"]

        # Is this an OCI image index?
        elif "manifests" in manifest:
            self.media_type = OCIMediaTypes.IMAGE_INDEX_V1

        # Is this an OCI image manifest?
        elif "layers" in manifest:
            self.media_type = OCIMediaTypes.IMAGE_MANIFEST_V1

        # Is this a Docker manifest v2.1?
        elif "fsLayers" in manifest:
            self.media_type = DockerMediaTypes.DISTRIBUTION_MANIFEST_V1_SIGNED

        # Give up
        else:
            self.media_type = MediaTypes.APPLICATION_JSON

    def get_bytes(self) -> bytes:
        """
        Retrieves the raw manifest bytes.

        Returns:
            The raw manifest bytes.
        """
        return self.bytes

    def get_descriptors(self) -> List[ManifestDescriptor]:
        """
        Retrieves the child manifest descriptors of a manifest list or image index. Nested indices are not expanded.

        Returns:
            The list of child descriptors; empty if this is not a manifest list or image index.
        """
        if not self.is_index():
            return []
        return [
            ManifestDescriptor(
                digest=FormattedSHA256.parse(manifest["digest"]),
                media_type=manifest.get("mediaType"),
            )
            for manifest in self.get_json().get("manifests", [])
        ]

    def get_digest(self) -> FormattedSHA256:
        """
        Calculates the SHA256 digest value of the raw bytes value.

        Returns:
            The SHA256 digest value of the raw manifest bytes.
        """
        return FormattedSHA256.calculate(self.get_bytes())

    def get_json(self):
        """
        Retrieves the parsed manifest. The raw bytes are decoded on first access.

        Returns:
            The parsed manifest.
        """
        if self.json is None:
            self.json = json.loads(self.bytes)
        return self.json

    def get_media_type(self) -> str:
        """
        Retrieves the media type of the image manifest.

        Returns:
            The media type of the image manifest.
        """
        return self.media_type

    def is_index(self) -> bool:
        """Checks if this is a manifest list or image index."""
        return self.media_type in INDEX_MEDIA_TYPES
