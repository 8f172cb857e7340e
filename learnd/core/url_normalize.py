"""Normalize captured URLs into comparison keys for duplicate detection."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from learnd.core.errors import InvalidURLError

# Matched case-insensitively against query keys.
TRACKING_PARAMS: frozenset[str] = frozenset(
    {
        "fbclid",
        "gclid",
        "mc_cid",
        "mc_eid",
        "ref",
        "ref_src",
        "utm_campaign",
        "utm_content",
        "utm_id",
        "utm_medium",
        "utm_source",
        "utm_term",
        "utm_reader",
        "utm_name",
        "utm_referrer",
        "utm_social",
        "utm_social_type",
    }
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(raw: str) -> str:
    """Return the canonical comparison form of ``raw``.

    Lowercases scheme and host, drops default ports, the fragment, a trailing
    slash on non-root paths and known tracking parameters, and re-encodes the
    remaining query sorted by key. Raises :class:`InvalidURLError` when the
    input is empty or lacks a scheme or host.
    """
    trimmed = str(raw or "").strip()
    if not trimmed:
        raise InvalidURLError("empty url")

    try:
        parsed = urlsplit(trimmed)
        port = parsed.port
    except ValueError as exc:
        raise InvalidURLError(f"invalid url: {exc}") from exc

    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    if not scheme or not host:
        raise InvalidURLError("invalid url: missing scheme or host")

    if ":" in host:
        host = f"[{host}]"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"

    netloc = host
    if parsed.username is not None:
        userinfo = parsed.username
        if parsed.password is not None:
            userinfo = f"{userinfo}:{parsed.password}"
        netloc = f"{userinfo}@{host}"

    path = parsed.path
    if path != "/":
        path = path.rstrip("/") or "/"

    pairs = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key.lower() not in TRACKING_PARAMS
    ]
    # sorted() is stable, so repeated keys keep their relative order.
    query = urlencode(sorted(pairs, key=lambda pair: pair[0]))

    return urlunsplit((scheme, netloc, path, query, ""))


def dedup_key(raw: str) -> str:
    """Normalized form of ``raw``, or the trimmed raw URL when it cannot be normalized."""
    try:
        return normalize_url(raw)
    except InvalidURLError:
        return str(raw or "").strip()
