#!/usr/bin/env python

"""Command line entry point."""

import logging
import os

import click

from aiohttp import web

from .imagename import ImageName
from .registrymirror import create_app
from .utils import parse_listen_address

LOGGER = logging.getLogger(__name__)


@click.command()
@click.option(
    "--debug", is_flag=True, help="Enable debug logging.", envvar="DRA_DEBUG"
)
@click.option(
    "--listen-address",
    default=":8080",
    envvar="DRA_LISTEN_ADDRESS",
    help="Listen address.",
    show_default=True,
)
@click.argument("reference")
def cli(debug: bool, listen_address: str, reference: str):
    """A registry mirror that serves the same image for every tag.

    REFERENCE is the upstream image, e.g. registry.example.com/base/image:v2.
    """
    log_level = "DEBUG" if debug else os.environ.get("DRA_LOG_LEVEL", "INFO")
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=log_level.upper(),
    )

    try:
        image_name = ImageName.parse(reference)
    except ValueError as exception:
        raise click.BadParameter(
            f"parsing reference: {exception}", param_hint="REFERENCE"
        ) from exception
    try:
        host, port = parse_listen_address(listen_address)
    except ValueError as exception:
        raise click.BadParameter(
            str(exception), param_hint="--listen-address"
        ) from exception

    app = create_app(image_name)
    LOGGER.info("Serving %s", image_name)
    LOGGER.info("Listening on %s", listen_address)
    web.run_app(app, host=host, port=port, print=None)


def main():
    """Runs the command line interface."""
    cli()  # pylint: disable=no-value-for-parameter
