#!/usr/bin/env python

"""Content digest values."""

import hashlib
import re

HEX_PATTERN = re.compile(r"^[a-f0-9]{64}$")


class FormattedSHA256(str):
    """A algorithm prefixed SHA256 hash value."""

    PREFIX = "sha256:"

    def __new__(cls, sha256: str):
        if sha256:
            sha256 = sha256.replace(FormattedSHA256.PREFIX, "")
        if not sha256 or not HEX_PATTERN.match(sha256):
            raise ValueError(sha256)
        obj = super().__new__(cls, f"{FormattedSHA256.PREFIX}{sha256}")
        obj.sha256 = sha256
        return obj

    @staticmethod
    def is_digest(value: str) -> bool:
        """
        Checks if a given value carries the recognized digest prefix. The value itself is not validated.

        Args:
            value: The value to be checked.

        Returns:
            True if the value looks like a digest, False otherwise.
        """
        return bool(value) and value.startswith(FormattedSHA256.PREFIX)

    @staticmethod
    def parse(digest: str) -> "FormattedSHA256":
        """
        Initializes a FormattedSHA256 from a given SHA256 digest value.

        Args:
            digest: A SHA256 digest value in form sha256:<digest value>.

        Returns:
            The newly initialized object.
        """
        if not FormattedSHA256.is_digest(digest) or len(digest) != 71:
            raise ValueError(digest)
        return FormattedSHA256(digest[7:])

    @staticmethod
    def calculate(data: bytes) -> "FormattedSHA256":
        """
        Calculates the digest value for given data.

        Args:
            data: The data for which to calculate the digest value.

        Returns:
            The FormattedSHA256 containing the corresponding digest value.
        """
        return FormattedSHA256(hashlib.sha256(data).hexdigest())
