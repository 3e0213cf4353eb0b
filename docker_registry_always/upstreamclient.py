#!/usr/bin/env python

"""Asynchronous client for the upstream Docker Registry."""

import json
import logging
import os
import re

from pathlib import Path
from re import Pattern
from ssl import create_default_context, SSLContext
from typing import Dict, Optional, Union
from urllib.parse import urlparse

import aiofiles
import www_authenticate

from aiohttp import (
    AsyncResolver,
    ClientResponse,
    ClientSession,
    Fingerprint,
    TCPConnector,
)
from aiohttp.helpers import BasicAuth
from aiohttp.typedefs import LooseHeaders
from multidict import CIMultiDict

from .formattedsha256 import FormattedSHA256
from .imagename import ImageName
from .manifest import Manifest
from .specs import (
    DockerAuthentication,
    DockerHeaders,
    DockerMediaTypes,
    MediaTypes,
    OCIMediaTypes,
)
from .typing import UpstreamClientGetManifest
from .utils import filter_headers, strip_parameters

LOGGER = logging.getLogger(__name__)


class UpstreamClient:
    # pylint: disable=too-many-instance-attributes
    """
    AIOHTTP based client that authenticates against, and forwards requests to, the upstream registry.
    """

    DEBUG = os.environ.get("DRA_DEBUG", "")
    DEFAULT_CREDENTIALS_STORE = Path.home().joinpath(".docker/config.json")
    # Manifest lists and indices are preferred so that their children can be inspected
    DEFAULT_MEDIA_TYPES_MANIFEST = (
        f"{DockerMediaTypes.DISTRIBUTION_MANIFEST_LIST_V2};q=1.0,"
        f"{OCIMediaTypes.IMAGE_INDEX_V1};q=0.9,"
        f"{DockerMediaTypes.DISTRIBUTION_MANIFEST_V2};q=0.8,"
        f"{OCIMediaTypes.IMAGE_MANIFEST_V1};q=0.7,"
        f"{MediaTypes.APPLICATION_JSON};q=0.6,"
        f"{DockerMediaTypes.DISTRIBUTION_MANIFEST_V1};q=0.5"
    )
    # Request headers that are never forwarded from the client
    EXCLUDED_REQUEST_HEADERS = [
        "Accept-Encoding",
        "Authorization",
        "Content-Length",
        "Host",
    ]

    def __init__(
        self,
        *,
        client_session: ClientSession = None,
        client_session_kwargs: Dict = None,
        credentials_store: Path = None,
        fallback_basic_auth: bool = True,
        no_proxy: str = None,
        proxies: Dict[str, str] = None,
        proxy_auth: BasicAuth = None,
        resolver_kwargs: Dict = None,
        ssl: Union[None, bool, Fingerprint, SSLContext] = None,
        tcp_connector_kwargs: Dict = None,
    ):
        """
        Args:
            client_session: The underlying client session to use when making connections.
            client_session_kwargs: Arguments to be passed to the client session.
            credentials_store: Path to the docker registry credentials store.
            fallback_basic_auth: If True, basic credentials are sent when no bearer token can be negotiated.
            no_proxy: A comma separated list of domains to exclude from proxying.
            proxies: Mapping of protocols to proxy urls, optionally including credentials.
            proxy_auth: The credentials to use when proxying.
            resolver_kwargs: Arguments to be passed to the resolver
            ssl: SSL context.
            tcp_connector_kwargs: Arguments to be passed to the TCP connector.
        """
        if not client_session_kwargs:
            client_session_kwargs = {}
        if not credentials_store:
            credentials_store = Path(
                os.environ.get(
                    "DRA_CREDENTIALS_STORE",
                    UpstreamClient.DEFAULT_CREDENTIALS_STORE,
                )
            )
        if not proxies:
            proxies = {}
        http_proxy = os.environ.get("HTTP_PROXY", os.environ.get("http_proxy"))
        if http_proxy and "http" not in proxies:
            proxies["http"] = http_proxy
        https_proxy = os.environ.get("HTTPS_PROXY", os.environ.get("https_proxy"))
        if https_proxy and "https" not in proxies:
            proxies["https"] = https_proxy
        if not no_proxy:
            no_proxy = os.environ.get("NO_PROXY", os.environ.get("no_proxy"))
        no_proxy = no_proxy.split(",") if no_proxy else []
        if not resolver_kwargs:
            resolver_kwargs = {}
        if not ssl:
            cacerts = os.environ.get("DRA_CACERTS", None)
            if cacerts:
                if UpstreamClient.DEBUG:
                    LOGGER.debug("Using cacerts: %s", cacerts)
                ssl = create_default_context(cafile=str(cacerts))
        if ssl is None:
            ssl = True
        if not tcp_connector_kwargs:
            tcp_connector_kwargs = {}

        self.client_session = client_session
        self.client_session_kwargs = client_session_kwargs
        self.credentials_store = credentials_store
        # Endpoint Pattern -> credentials
        self.credentials = None  # type: Optional[Dict[Pattern, str]]
        self.fallback_basic_auth = fallback_basic_auth
        self.proxies = proxies
        self.proxy_auth = proxy_auth
        self.proxy_no = no_proxy
        self.resolver_kwargs = resolver_kwargs
        self.ssl = ssl
        self.tcp_connector_kwargs = tcp_connector_kwargs

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self):
        """Gracefully closes this instance."""
        if self.client_session:
            await self.client_session.close()
        self.client_session = None

    async def _get_auth_token(
        self, *, credentials: str = None, image_name: ImageName
    ) -> Optional[str]:
        """
        Negotiates a registry auth token for pulling from the repository of a given image.

        Args:
            credentials: The credentials to use to retrieve the auth token.
            image_name: The image name from which to derive the endpoint and scope.

        Returns:
            The corresponding auth token, or None.
        """
        # https://github.com/docker/distribution/blob/master/docs/spec/auth/token.md
        # Retrieve the www-authenticate response header from the registry endpoint ...
        client_session = await self._get_client_session()

        endpoint = image_name.resolve_endpoint()
        protocol = image_name.resolve_protocol()
        url = f"{protocol}://{endpoint}/v2/"
        proxy = self._get_proxy(endpoint=endpoint, protocol=protocol)
        async with client_session.get(
            raise_for_status=False,
            proxy=proxy,
            proxy_auth=self.proxy_auth,
            ssl=self.ssl,
            url=url,
        ) as client_response:
            if (
                client_response.status != 401
                or "Www-Authenticate" not in client_response.headers
            ):
                return None
            auth_params = www_authenticate.parse(
                client_response.headers["Www-Authenticate"]
            )
        # Note: Www-Authenticate can also specify "basic".
        if "bearer" not in auth_params:
            return None
        bearer = auth_params["bearer"]

        # Retrieve the bearer token from the authorization endpoint ...
        headers = {}
        if credentials:
            headers["Authorization"] = f"Basic {credentials}"
        params = {
            "client_id": DockerAuthentication.CLIENT_ID,
            "scope": image_name.resolve_scope(),
        }
        if "service" in bearer:
            params["service"] = bearer["service"]
        async with client_session.get(
            headers=headers,
            params=params,
            raise_for_status=True,
            proxy=proxy,
            proxy_auth=self.proxy_auth,
            ssl=self.ssl,
            url=bearer["realm"],
        ) as client_response:
            payload = await client_response.json(content_type=None)
        return payload.get("token", payload.get("access_token", None))

    async def _get_client_session(self) -> ClientSession:
        """
        Initializes and / or retrieves an AIOHTTP client session.

        Returns:
            The AIOHTTP client session.
        """
        if not self.client_session:
            if "resolver" not in self.tcp_connector_kwargs:
                self.tcp_connector_kwargs["resolver"] = AsyncResolver(
                    **self.resolver_kwargs
                )
            if "ssl" not in self.tcp_connector_kwargs:
                self.tcp_connector_kwargs["ssl"] = self.ssl
            if "connector" not in self.client_session_kwargs:
                self.client_session_kwargs["connector"] = TCPConnector(
                    **self.tcp_connector_kwargs
                )
            self.client_session = ClientSession(**self.client_session_kwargs)

        return self.client_session

    async def _get_credentials(self, *, endpoint: str) -> Optional[str]:
        """
        Retrieves the registry credentials for a given endpoint.

        Args:
            endpoint: Registry endpoint for which to retrieve the credentials.

        Returns:
            The corresponding base64 encoded registry credentials, or None.
        """
        result = None

        if self.credentials is None:
            await self._load_credentials()

        for pattern, credentials in self.credentials.items():
            if pattern.fullmatch(endpoint):
                result = credentials
                break

        return result

    @staticmethod
    def _get_endpoint_pattern(*, endpoint: str) -> Pattern:
        """Converts a given endpoint to a regular expression pattern that matches the endpoint."""

        # Legacy endpoint formats included the protocol and path segments; convert them to netloc / address ...
        # Note: urlparse handles many edge-cases, but stores 'netloc' in 'path' if not protocol is specified.
        if "://" not in endpoint:
            endpoint = f"proto://{endpoint}"
        endpoint = urlparse(endpoint).netloc
        return re.compile(f"^{re.escape(endpoint)}$")

    def _get_proxy(self, *, endpoint: str, protocol: str) -> Optional[str]:
        """
        Retrieves the proxy configuration for a given endpoint.

        Args:
            endpoint: The endpoint for which to retrieve the proxy configuration.
            protocol: The protocol used to connect to the endpoint.
        """
        result = None
        if endpoint not in self.proxy_no and protocol in self.proxies:
            result = self.proxies[protocol]
        return result

    async def _get_request_headers(
        self, *, image_name: ImageName, headers: LooseHeaders = None
    ) -> CIMultiDict:
        """
        Generates request headers that contain registry credentials for a given registry endpoint.

        Args:
            image_name: Image name for which to retrieve the request headers.
            headers: Optional supplemental request headers to be returned.

        Returns:
            The generated request headers.
        """
        headers = CIMultiDict(headers) if headers else CIMultiDict()

        if "User-Agent" not in headers:
            # Note: This cannot be imported above, as it causes a circular import!
            from . import __version__  # pylint: disable=import-outside-toplevel

            headers["User-Agent"] = f"docker-registry-always/{__version__}"

        credentials = await self._get_credentials(
            endpoint=image_name.resolve_endpoint()
        )
        token = await self._get_auth_token(
            credentials=credentials, image_name=image_name
        )
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif self.fallback_basic_auth and credentials:
            headers["Authorization"] = f"Basic {credentials}"

        return headers

    async def _load_credentials(self):
        """Retrieves the registry credentials from the docker registry credentials store."""
        if self.credentials is None:
            self.credentials = {}

        if self.credentials_store:
            if UpstreamClient.DEBUG:
                LOGGER.debug(
                    "Loading credentials from store: %s", self.credentials_store
                )

            # TODO: Add support for credential helpers (credsStore / credHelpers):
            #       https://docs.docker.com/engine/reference/commandline/login/#credentials-store
            if self.credentials_store.is_file():
                async with aiofiles.open(self.credentials_store, mode="rb") as file:
                    credentials = json.loads(await file.read()).get("auths", {})
                for endpoint, auth in credentials.items():
                    if "auth" not in auth:
                        continue
                    endpoint = UpstreamClient._get_endpoint_pattern(endpoint=endpoint)
                    self.credentials[endpoint] = auth["auth"]

    async def get_manifest(self, image_name: ImageName) -> UpstreamClientGetManifest:
        """
        Fetch the manifest identified by name and reference where reference can be a tag or digest.

        Args:
            image_name: The image name.

        Returns:
            dict:
                client_response: The underlying client response.
                digest: The manifest digest returned by the server, or calculated from the manifest.
                manifest: The corresponding Manifest.
                media_type: The media type of the manifest, without parameters.
        """
        headers = await self._get_request_headers(
            headers={"Accept": UpstreamClient.DEFAULT_MEDIA_TYPES_MANIFEST},
            image_name=image_name,
        )
        url = image_name.resolve_url("manifests", image_name.resolve_identifier())
        client_session = await self._get_client_session()
        proxy = self._get_proxy(
            endpoint=image_name.resolve_endpoint(),
            protocol=image_name.resolve_protocol(),
        )
        async with client_session.get(
            headers=headers,
            proxy=proxy,
            proxy_auth=self.proxy_auth,
            raise_for_status=True,
            ssl=self.ssl,
            url=url,
        ) as client_response:
            data = await client_response.read()

        media_type = strip_parameters(client_response.headers.get("Content-Type"))
        manifest = Manifest(data, media_type=media_type)
        if DockerHeaders.CONTENT_DIGEST in client_response.headers:
            digest = FormattedSHA256.parse(
                client_response.headers[DockerHeaders.CONTENT_DIGEST]
            )
        else:
            digest = manifest.get_digest()
        return UpstreamClientGetManifest(
            client_response=client_response,
            digest=digest,
            manifest=manifest,
            media_type=manifest.get_media_type(),
        )

    async def round_trip(
        self,
        method: str,
        url: str,
        image_name: ImageName,
        *,
        headers: LooseHeaders = None,
    ) -> ClientResponse:
        """
        Forwards a request to the upstream registry, attaching credentials for the repository of a given image.
        Redirects are not followed. The caller is responsible for releasing the response.

        Args:
            method: The HTTP method.
            url: The upstream URL.
            image_name: The image name from which to derive the endpoint and credentials.
            headers: Client request headers to be forwarded.

        Returns:
            The underlying client response.
        """
        if headers:
            headers = filter_headers(
                headers, exclude=UpstreamClient.EXCLUDED_REQUEST_HEADERS
            )
        headers = await self._get_request_headers(
            headers=headers, image_name=image_name
        )
        # Bodies are relayed verbatim; see RegistryMirror
        headers["Accept-Encoding"] = "identity"

        client_session = await self._get_client_session()
        proxy = self._get_proxy(
            endpoint=image_name.resolve_endpoint(),
            protocol=image_name.resolve_protocol(),
        )
        return await client_session.request(
            method,
            allow_redirects=False,
            headers=headers,
            proxy=proxy,
            proxy_auth=self.proxy_auth,
            ssl=self.ssl,
            url=url,
        )
