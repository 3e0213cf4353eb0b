#!/usr/bin/env python

"""Utility classes for tests."""

import json

from typing import Dict, List, NamedTuple, Optional, Tuple

from aiohttp import web
from aiohttp.test_utils import TestServer as AioHttpTestServer

from docker_registry_always import (
    DockerMediaTypes,
    FormattedSHA256,
    ImageName,
    MediaTypes,
    OCIMediaTypes,
)


class TypingRecordedRequest(NamedTuple):
    # pylint: disable=missing-class-docstring
    headers: Dict[str, str]
    method: str
    path: str


def make_manifest(seed: str) -> bytes:
    """Generates a distinct image manifest for a given seed value."""
    return json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": DockerMediaTypes.DISTRIBUTION_MANIFEST_V2,
            "config": {
                "mediaType": "application/vnd.docker.container.image.v1+json",
                "size": len(seed),
                "digest": FormattedSHA256.calculate(seed.encode("utf-8")),
            },
            "layers": [],
        }
    ).encode("utf-8")


def make_index(
    children: List[FormattedSHA256],
    *,
    child_media_type: str = DockerMediaTypes.DISTRIBUTION_MANIFEST_V2,
    media_type: Optional[str] = OCIMediaTypes.IMAGE_INDEX_V1,
) -> bytes:
    """Generates a manifest list / image index referencing a given list of children."""
    document = {
        "schemaVersion": 2,
        "manifests": [
            {
                "digest": child,
                "mediaType": child_media_type,
                "platform": {"architecture": f"arch{i}", "os": "linux"},
                "size": 0,
            }
            for i, child in enumerate(children)
        ],
    }
    if media_type:
        document["mediaType"] = media_type
    return json.dumps(document).encode("utf-8")


class FakeRegistry:
    # pylint: disable=too-many-instance-attributes
    """
    Minimal, in-process, Docker Registry V2 that records the requests it receives.
    """

    def __init__(self, *, token: str = None):
        """
        Args:
            token: Optional bearer token required to access the registry.
        """
        self.blob_redirects = True
        self.blobs = {}  # type: Dict[str, bytes]
        self.content_digest_header = True
        # identifier -> (data, media_type)
        self.manifests = {}  # type: Dict[str, Tuple[bytes, str]]
        self.requests = []  # type: List[TypingRecordedRequest]
        self.server = None  # type: Optional[AioHttpTestServer]
        self.token = token
        self.token_requests = []  # type: List[Dict[str, str]]
        # Manifest bodies are cut short and the connection is dropped
        self.truncate_manifests = False

    async def start(self):
        """Starts serving on the loopback interface."""
        self.server = AioHttpTestServer(self._get_app(), host="127.0.0.1")
        await self.server.start_server()

    async def close(self):
        """Stops serving."""
        if self.server:
            await self.server.close()
        self.server = None

    @property
    def endpoint(self) -> str:
        """The registry endpoint, <host>:<port>."""
        return f"127.0.0.1:{self.server.port}"

    def image_name(self, reference: str = "base/image:v2") -> ImageName:
        """Returns the image name of a given reference hosted by this registry."""
        return ImageName.parse(f"{self.endpoint}/{reference}")

    def add_blob(self, data: bytes) -> FormattedSHA256:
        """Stores a blob."""
        digest = FormattedSHA256.calculate(data)
        self.blobs[digest] = data
        return digest

    def add_manifest(
        self, data: bytes, *, media_type: str = None, tag: str = None
    ) -> FormattedSHA256:
        """Stores a manifest, by digest and optionally by tag."""
        if not media_type:
            media_type = json.loads(data).get("mediaType", MediaTypes.APPLICATION_JSON)
        digest = FormattedSHA256.calculate(data)
        self.manifests[digest] = (data, media_type)
        if tag:
            self.manifests[tag] = (data, media_type)
        return digest

    def get_manifest_requests(self) -> List[Tuple[str, str]]:
        """Lists the (method, identifier) of all recorded manifest requests."""
        return [
            (request.method, request.path.split("/")[-1])
            for request in self.requests
            if "/manifests/" in request.path
        ]

    def _get_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/v2/", self._handle_version)
        app.router.add_route(
            "*", "/v2/{image:.+}/manifests/{identifier}", self._handle_manifest
        )
        app.router.add_route("*", "/v2/{image:.+}/blobs/{digest}", self._handle_blob)
        app.router.add_get("/storage/{digest}", self._handle_storage)
        app.router.add_get("/token", self._handle_token)
        return app

    def _is_authorized(self, request: web.Request) -> bool:
        if not self.token:
            return True
        return request.headers.get("Authorization") == f"Bearer {self.token}"

    def _record(self, request: web.Request):
        self.requests.append(
            TypingRecordedRequest(
                headers=dict(request.headers), method=request.method, path=request.path
            )
        )

    def _unauthorized(self, request: web.Request) -> web.Response:
        realm = request.url.with_path("/token").with_query(None)
        return web.json_response(
            {"errors": [{"code": "UNAUTHORIZED", "message": "authentication required"}]},
            headers={
                "Www-Authenticate": f'Bearer realm="{realm}",service="fake-registry"'
            },
            status=401,
        )

    async def _handle_version(self, request: web.Request) -> web.Response:
        self._record(request)
        if not self._is_authorized(request):
            return self._unauthorized(request)
        return web.Response(
            headers={"Docker-Distribution-API-Version": "registry/2.0"}
        )

    async def _handle_manifest(self, request: web.Request) -> web.StreamResponse:
        self._record(request)
        if not self._is_authorized(request):
            return self._unauthorized(request)
        identifier = request.match_info["identifier"]
        if identifier not in self.manifests:
            return web.json_response(
                {"errors": [{"code": "MANIFEST_UNKNOWN", "message": "manifest unknown"}]},
                status=404,
            )
        data, media_type = self.manifests[identifier]
        headers = {"Content-Type": media_type}
        if self.content_digest_header:
            headers["Docker-Content-Digest"] = FormattedSHA256.calculate(data)
        if self.truncate_manifests and request.method == "GET":
            response = web.StreamResponse(headers=headers)
            response.content_length = len(data) + 1000
            await response.prepare(request)
            await response.write(data[:10])
            request.transport.close()
            return response
        return web.Response(body=data, headers=headers)

    async def _handle_blob(self, request: web.Request) -> web.Response:
        self._record(request)
        if not self._is_authorized(request):
            return self._unauthorized(request)
        digest = request.match_info["digest"]
        if digest not in self.blobs:
            return web.json_response(
                {"errors": [{"code": "BLOB_UNKNOWN", "message": "blob unknown"}]},
                status=404,
            )
        if not self.blob_redirects:
            return web.Response(body=self.blobs[digest])
        location = request.url.with_path(f"/storage/{digest}").with_query(None)
        return web.Response(headers={"Location": str(location)}, status=307)

    async def _handle_storage(self, request: web.Request) -> web.Response:
        self._record(request)
        return web.Response(body=self.blobs[request.match_info["digest"]])

    async def _handle_token(self, request: web.Request) -> web.Response:
        self.token_requests.append(
            {**dict(request.query), "authorization": request.headers.get("Authorization")}
        )
        return web.json_response({"token": self.token})
