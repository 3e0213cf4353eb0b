#!/usr/bin/env python

"""Read-only registry mirror that serves the same image for every tag."""

import logging

from http import HTTPStatus

from aiohttp import ClientError, hdrs, web

from .digestresolver import DigestResolver
from .errors import MethodNotAllowedError, RegistryError, UpstreamProxyError
from .imagename import ImageName
from .requestrouter import KIND_BLOBS, RequestRouter
from .specs import DOCKER_DISTRIBUTION_API_VERSION, DockerHeaders, MediaTypes
from .upstreamclient import UpstreamClient
from .utils import CHUNK_SIZE, filter_headers

LOGGER = logging.getLogger(__name__)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Renders registry errors as distribution API error envelopes, and anything else as plain text."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except RegistryError as exception:
        LOGGER.error("%s %s: %s", request.method, request.path, exception)
        return web.Response(
            body=exception.get_bytes(),
            content_type=MediaTypes.APPLICATION_JSON,
            status=exception.status,
        )
    except Exception as exception:  # pylint: disable=broad-except
        LOGGER.exception("%s %s: unhandled error", request.method, request.path)
        return web.Response(
            status=HTTPStatus.INTERNAL_SERVER_ERROR, text=str(exception)
        )


class RegistryMirror:
    """
    Serves the Docker Registry V2 read API, proxying every request to the upstream image.
    """

    def __init__(
        self,
        image_name: ImageName,
        *,
        request_router: RequestRouter = None,
        upstream_client: UpstreamClient = None,
    ):
        """
        Args:
            image_name: The upstream image name.
        Keyword Args:
            request_router: Router used to map requests onto the upstream.
            upstream_client: Client used to reach the upstream registry.
        """
        if not upstream_client:
            upstream_client = UpstreamClient()
        if not request_router:
            request_router = RequestRouter(
                image_name, DigestResolver(image_name, upstream_client)
            )

        self.image_name = image_name
        self.request_router = request_router
        self.upstream_client = upstream_client

    async def close(self, _app: web.Application = None):
        """Gracefully closes this instance."""
        await self.upstream_client.close()

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """
        Handles a single registry API request.

        Args:
            request: The client request.

        Returns:
            The response relayed from the upstream registry.
        """
        if request.method not in [hdrs.METH_GET, hdrs.METH_HEAD]:
            raise MethodNotAllowedError()

        path = request.path
        if path in ["/v2/", "/v2"]:
            return web.Response(
                headers={DockerHeaders.API_VERSION: DOCKER_DISTRIBUTION_API_VERSION}
            )

        # Note: Anything else is answered with an empty response.
        if not path.startswith("/v2/"):
            return web.Response()

        url = await self.request_router.route(path)
        LOGGER.info("%s %s -> %s", request.method, path, url)

        try:
            client_response = await self.upstream_client.round_trip(
                request.method, url, self.image_name, headers=request.headers
            )
        except (ClientError, OSError, ValueError) as exception:
            raise UpstreamProxyError.wrap(f"fetching {url!r}", exception) from exception

        try:
            response = web.StreamResponse(
                headers=filter_headers(client_response.headers),
                reason=client_response.reason,
                status=client_response.status,
            )
            # Blob bodies are not relayed; upstream registries typically redirect blob requests to storage.
            copy_body = (
                RequestRouter.describe(path).kind != KIND_BLOBS
                and request.method != hdrs.METH_HEAD
            )
            if not copy_body:
                response.force_close()
            await response.prepare(request)

            if copy_body:
                # Once the headers are written, failures are logged and the connection is dropped.
                try:
                    async for chunk in client_response.content.iter_chunked(
                        CHUNK_SIZE
                    ):
                        await response.write(chunk)
                except (ClientError, OSError) as exception:
                    LOGGER.error("Error copying response body: %s", exception)
                    response.force_close()
        finally:
            client_response.release()

        return response


def create_app(
    image_name: ImageName, *, upstream_client: UpstreamClient = None
) -> web.Application:
    """
    Initializes the mirror web application.

    Args:
        image_name: The upstream image name.
        upstream_client: Optional client used to reach the upstream registry.

    Returns:
        The AIOHTTP web application.
    """
    registry_mirror = RegistryMirror(image_name, upstream_client=upstream_client)
    app = web.Application(middlewares=[error_middleware])
    app.router.add_route("*", "/{path:.*}", registry_mirror.handle)
    app.on_cleanup.append(registry_mirror.close)
    return app
