#!/usr/bin/env python

"""Allows execution as "python -m docker_registry_always"."""

from .cli import main

main()
