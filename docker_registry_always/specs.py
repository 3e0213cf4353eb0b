#!/usr/bin/env python

# pylint: disable=too-few-public-methods

"""Reusable string literals."""

DOCKER_DISTRIBUTION_API_VERSION = "registry/2.0"


class DockerAuthentication:
    """
    https://docs.docker.com/registry/spec/auth/token/
    https://github.com/docker/distribution/blob/master/docs/spec/auth/scope.md
    """

    CLIENT_ID = "docker-registry-always"
    SCOPE_REPOSITORY_PULL_PATTERN = "repository:{0}:pull"


class DockerHeaders:
    """HTTP headers defined by the distribution API."""

    API_VERSION = "Docker-Distribution-API-Version"
    CONTENT_DIGEST = "Docker-Content-Digest"


class DockerMediaTypes:
    """https://github.com/docker/distribution/blob/master/docs/spec/manifest-v2-2.md#manifest-list"""

    DISTRIBUTION_MANIFEST_LIST_V2 = (
        "application/vnd.docker.distribution.manifest.list.v2+json"
    )
    DISTRIBUTION_MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"
    DISTRIBUTION_MANIFEST_V1_SIGNED = (
        "application/vnd.docker.distribution.manifest.v1+prettyjws"
    )
    DISTRIBUTION_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"


class Indices:
    """Common registry indices."""

    DOCKERHUB = "index.docker.io"
    DOCKERHUB_ALIASES = ["docker.io", "registry-1.docker.io"]


class MediaTypes:
    """Generic mime types."""

    APPLICATION_JSON = "application/json"


class OCIMediaTypes:
    """https://github.com/opencontainers/image-spec/blob/master/media-types.md"""

    IMAGE_INDEX_V1 = "application/vnd.oci.image.index.v1+json"
    IMAGE_MANIFEST_V1 = "application/vnd.oci.image.manifest.v1+json"


# Media types whose documents list child manifests
INDEX_MEDIA_TYPES = [
    DockerMediaTypes.DISTRIBUTION_MANIFEST_LIST_V2,
    OCIMediaTypes.IMAGE_INDEX_V1,
]
