#!/usr/bin/env python

"""Class that provides parsing and formatting of docker image names."""

import ipaddress
import os
import re

from typing import Optional

from .formattedsha256 import FormattedSHA256
from .specs import DockerAuthentication, Indices
from .typing import ImageNameParseString

# https://github.com/distribution/reference/blob/main/regexp.go
PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]+)[a-z0-9]+)*"
DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
ENDPOINT_PATTERN = re.compile(
    rf"^(?:{DOMAIN_COMPONENT}(?:\.{DOMAIN_COMPONENT})*|\[[a-fA-F0-9:]+\])(?::[0-9]+)?$"
)
IMAGE_PATTERN = re.compile(rf"^{PATH_COMPONENT}(?:/{PATH_COMPONENT})*$")
IMAGE_MAX_LENGTH = 255
TAG_PATTERN = re.compile(r"^[\w][\w.-]{0,127}$", re.ASCII)

# Endpoints that are reached over plain http
INSECURE_ENDPOINT_PATTERNS = [
    re.compile(r"^localhost:"),
    re.compile(r"\.local(?:host)?(?::\d{1,5})?$"),
    re.compile(re.escape("127.0.0.1")),
    re.compile(re.escape("::1")),
]
INSECURE_NETWORKS = [
    ipaddress.ip_network(network)
    for network in ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]
]


class ImageName:
    """
    Docker image name abstraction. Instances are immutable.
    """

    DEFAULT_ENDPOINT = os.environ.get("DRA_DEFAULT_REGISTRY", Indices.DOCKERHUB)
    DEFAULT_NAMESPACE = os.environ.get("DRA_DEFAULT_NAMESPACE", "library")
    DEFAULT_PROTOCOL = os.environ.get("DRA_DEFAULT_PROTOCOL", None)
    DEFAULT_TAG = os.environ.get("DRA_DEFAULT_TAG", "latest")

    __slots__ = ("_digest", "_endpoint", "_image", "_tag")

    def __init__(
        self,
        image: str,
        *,
        digest: Optional[FormattedSHA256] = None,
        endpoint: Optional[str] = None,
        tag: Optional[str] = None,
    ):
        """
        Args:
            image: Name of the image, optionally including a namespace.
        Keyword Args:
            digest: Optional digest value.
            endpoint: Optional endpoint address for fully qualified image names.
            tag: Optional tag name.
        """
        if endpoint:
            endpoint = endpoint.replace("/", "")
            if endpoint in Indices.DOCKERHUB_ALIASES:
                endpoint = Indices.DOCKERHUB
        if image.startswith("/"):
            image = image[1:]
        if not image:
            raise ValueError("Image name is required")
        object.__setattr__(self, "_digest", digest)
        object.__setattr__(self, "_endpoint", endpoint)
        object.__setattr__(self, "_image", image)
        object.__setattr__(self, "_tag", tag)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other):
        """
        Args:
            other: The instance to which "self" is compared.
        """
        return str(self) == str(other)

    def __hash__(self):
        """Hash according to our string value"""
        return hash(str(self))

    def __repr__(self):
        return f"{type(self).__name__}({str(self)!r})"

    def __str__(self):
        """Does not resolve component parts."""
        result = self._image
        if self._tag:
            result = f"{result}:{self._tag}"
        # Note: A digest does not require a tag, but if a tag exists, the digest must come after it.
        if self._digest:
            result = f"{result}@{self._digest}"
        if self._endpoint:
            result = f"{self._endpoint}/{result}"

        return result

    @property
    def digest(self) -> Optional[FormattedSHA256]:
        # pylint: disable=missing-function-docstring
        return self._digest

    @property
    def endpoint(self) -> Optional[str]:
        # pylint: disable=missing-function-docstring
        return self._endpoint

    @property
    def image(self) -> str:
        # pylint: disable=missing-function-docstring
        return self._image

    @property
    def tag(self) -> Optional[str]:
        # pylint: disable=missing-function-docstring
        return self._tag

    @staticmethod
    def _is_private_address(endpoint: str) -> bool:
        """Checks if a given endpoint is an IPv4 address within a private network."""
        try:
            address = ipaddress.ip_address(endpoint.split(":")[0])
        except ValueError:
            return False
        return any(address in network for network in INSECURE_NETWORKS)

    @staticmethod
    def _parse_string(string: str) -> ImageNameParseString:
        """
        Parses the endpoint, image, and tag from a given string.

        Args:
            string: The string to be parsed.

        Returns:
            dict:
                digest: The digest value.
                endpoint: The registry endpoint; address with optional port.
                image: The name of the image; the image name and optional namespace.
                tag: The tag name.
        """
        digest = None
        endpoint = None
        tag = None

        if "@" in string:
            string, _digest = string.split("@", 1)
            digest = FormattedSHA256.parse(_digest)

        segments = string.split("/")

        parts = segments[-1].split(":")
        image = parts[0]
        if len(parts) == 1:
            # image
            pass
        elif len(parts) == 2:
            # image:tag
            tag = parts[1]
            if not tag:
                raise ValueError(f"Unable to parse string: {string}")
        else:
            raise ValueError(f"Unable to parse string: {string}")

        if len(segments) == 1:
            # image[:tag]
            pass
        else:
            # host[:port]/[ns0..n/]image[:tag] OR ns0/[ns1..n/]image[:tag]

            # Note: https://docs.docker.com/engine/reference/commandline/tag/
            #
            #       An image name is made up of slash-separated name components, optionally prefixed by a registry
            #       hostname. The hostname must comply with standard DNS rules, but may not contain underscores. If a
            #       hostname is present, it may optionally be followed by a port number in the format :8080.

            # Assumption: That endpoint addresses will contain at least one '.' (period) character, or a port, or be
            #             "localhost", and by convention image namespaces will not.
            if len(segments) > 2:
                image = f"{'/'.join(segments[1:-1])}/{image}"

            if any(x in segments[0] for x in [":", "."]) or segments[0] == "localhost":
                endpoint = segments[0]
            elif segments[0]:
                image = f"{segments[0]}/{image}"

        return ImageNameParseString(
            digest=digest, endpoint=endpoint, image=image, tag=tag
        )

    @staticmethod
    def parse(image_name: str) -> "ImageName":
        """
        Initializes an ImageName from a given image name string.

        Args:
            image_name: String containing the image name to be parsed.

        Returns:
            The newly initialized object.

        Raises:
            ValueError: If the endpoint, repository name, or tag is malformed.
        """
        parsed = ImageName._parse_string(image_name)
        if parsed.endpoint and not ENDPOINT_PATTERN.match(parsed.endpoint):
            raise ValueError(f"Invalid endpoint: {parsed.endpoint}")
        if (
            not IMAGE_PATTERN.match(parsed.image)
            or len(parsed.image) > IMAGE_MAX_LENGTH
        ):
            raise ValueError(f"Invalid repository name: {parsed.image}")
        if parsed.tag and not TAG_PATTERN.match(parsed.tag):
            raise ValueError(f"Invalid tag: {parsed.tag}")
        return ImageName(
            digest=parsed.digest,
            endpoint=parsed.endpoint,
            image=parsed.image,
            tag=parsed.tag,
        )

    def resolve_endpoint(self) -> str:
        """
        Resolves the registry endpoint.

        Returns:
            The explicit registry endpoint.
        """
        return self._endpoint if self._endpoint else ImageName.DEFAULT_ENDPOINT

    def resolve_identifier(self) -> str:
        """
        Resolves the manifest identifier; the digest takes precedence over the tag.

        Returns:
            The digest value, or the explicit tag name.
        """
        if self._digest:
            return str(self._digest)
        return self.resolve_tag()

    def resolve_image(self) -> str:
        """
        Resolves the name of the image.

        Returns:
            The explicit name of the image, with namespace.
        """
        if (
            "/" not in self._image
            and self.resolve_endpoint() == Indices.DOCKERHUB
        ):
            return f"{ImageName.DEFAULT_NAMESPACE}/{self._image}"

        return self._image

    def resolve_protocol(self) -> str:
        """
        Resolves the protocol used to connect to the registry endpoint.

        Returns:
            "http" for loopback, local, and private network endpoints, "https" otherwise.
        """
        if ImageName.DEFAULT_PROTOCOL:
            return ImageName.DEFAULT_PROTOCOL

        endpoint = self.resolve_endpoint()
        if ImageName._is_private_address(endpoint) or any(
            pattern.search(endpoint) for pattern in INSECURE_ENDPOINT_PATTERNS
        ):
            return "http"
        return "https"

    def resolve_scope(self) -> str:
        """
        Resolves the authentication scope required to pull from the repository.

        Returns:
            The pull scope.
        """
        return DockerAuthentication.SCOPE_REPOSITORY_PULL_PATTERN.format(
            self.resolve_image()
        )

    def resolve_tag(self) -> str:
        """
        Resolves the tag name.

        Returns:
            The explicit tag name.
        """
        return self._tag if self._tag else ImageName.DEFAULT_TAG

    def resolve_url(self, *segments: str) -> str:
        """
        Builds a URL addressing the repository on the registry endpoint.

        Args:
            segments: Path segments, relative to the repository, e.g. ("manifests", "latest").

        Returns:
            The absolute URL.
        """
        path = "/".join(segments)
        return f"{self.resolve_protocol()}://{self.resolve_endpoint()}/v2/{self.resolve_image()}/{path}"
