"""Coarse content identity keys for scrape results."""

from __future__ import annotations

import base64

DEFAULT_PREFIX_CHARS = 256


def fingerprint(
    status_code: int,
    byte_length: int | None,
    text: str,
    prefix_chars: int = DEFAULT_PREFIX_CHARS,
) -> str:
    """Return ``<status>-<bytes>-<base64 of the first prefix_chars of text>``.

    Two responses with the same status, size and opening text share a
    fingerprint. This is not a cryptographic hash.
    """

    prefix = base64.b64encode(text[:prefix_chars].encode("utf-8")).decode("ascii")
    return f"{status_code}-{byte_length or 0}-{prefix}"


__all__ = ["DEFAULT_PREFIX_CHARS", "fingerprint"]
