"""Canonical identity for navigable resources.

Single-page applications often route through the fragment
(``https://app/x#/clients``) without a full navigation, and sprinkle volatile
parameters (timestamps, cache busters, tracking ids) into locations. The
functions here reduce a raw location to a stable key so the visited set can
recognise re-arrival at the same logical screen.
"""

import hashlib
import logging
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse

from navcrawl.models import NavigableResource

logger = logging.getLogger(__name__)


# Query parameters that never change which screen is shown
VOLATILE_PARAMS = {
    # Cache busters / timestamps
    "_", "ts", "timestamp", "cb", "cachebuster", "nocache", "rnd",
    # Google / Meta / Microsoft click ids
    "_ga", "_gl", "gclid", "dclid", "gclsrc", "wbraid", "gbraid", "fbclid", "msclkid", "yclid",
    # Mailchimp / HubSpot
    "mc_eid", "mc_cid", "_hsenc", "_hsmi",
}

VOLATILE_PREFIXES = ("utm_", "pk_", "piwik_")

HASH_PREFIX = "raw:"


def is_volatile_param(name: str, extra: Iterable[str] = ()) -> bool:
    """Check whether a query parameter should be excluded from identity."""
    lowered = name.lower()
    if lowered.startswith(VOLATILE_PREFIXES):
        return True
    return lowered in VOLATILE_PARAMS or lowered in {e.lower() for e in extra}


def _stable_query(query: str, extra: Iterable[str] = ()) -> str:
    """Drop volatile parameters and sort the rest."""
    if not query:
        return ""
    params = [
        (k, v) for k, v in parse_qsl(query, keep_blank_values=True)
        if not is_volatile_param(k, extra)
    ]
    return urlencode(sorted(params))


def _hash_key(raw: str) -> str:
    digest = hashlib.sha1(raw.encode("utf-8", errors="replace")).hexdigest()[:16]
    return f"{HASH_PREFIX}{digest}"


def split_route_fragment(fragment: str) -> Optional[str]:
    """Return the route part of a fragment, or None for plain in-page anchors.

    ``#/clients`` and ``#!/clients`` are routes; ``#top`` is an in-page anchor
    and does not identify a separate screen.
    """
    if not fragment:
        return None
    if fragment.startswith("!"):
        fragment = fragment[1:]
    if not fragment.startswith("/"):
        return None
    return fragment


def _normalize_route(route: str, extra: Iterable[str] = ()) -> str:
    path, _, query = route.partition("?")
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    stable = _stable_query(query, extra)
    return f"{path}?{stable}" if stable else path


def resolve_resource(
    raw_location: str,
    prior_anchor: Optional[str] = None,
    extra_volatile: Iterable[str] = (),
) -> NavigableResource:
    """Build a NavigableResource for a location. Never raises.

    Args:
        raw_location: Location as observed (absolute, or relative to prior_anchor)
        prior_anchor: Location used to resolve relative references
        extra_volatile: Additional query parameters to ignore

    Returns:
        NavigableResource whose canonical_id is stable across volatile changes
    """
    raw = raw_location or ""
    try:
        if not raw.strip():
            return NavigableResource(canonical_id=_hash_key(raw), raw_location=raw)

        location = raw.strip()
        if prior_anchor and "://" not in location:
            location = urljoin(prior_anchor, location)

        parsed = urlparse(location)
        if parsed.scheme.lower() not in ("http", "https", "file") or (
            parsed.scheme.lower() != "file" and not parsed.netloc
        ):
            return NavigableResource(canonical_id=_hash_key(raw), raw_location=raw)

        scheme = parsed.scheme.lower()
        netloc = parsed.netloc.lower()
        if (scheme == "http" and netloc.endswith(":80")) or (scheme == "https" and netloc.endswith(":443")):
            netloc = netloc.rsplit(":", 1)[0]

        path = parsed.path or "/"
        if len(path) > 1 and path.endswith("/"):
            path = path[:-1]

        base = f"{scheme}://{netloc}{path}"
        stable = _stable_query(parsed.query, extra_volatile)
        if stable:
            base += f"?{stable}"

        route = split_route_fragment(parsed.fragment)
        if route is None:
            return NavigableResource(canonical_id=base, raw_location=raw)

        route = _normalize_route(route, extra_volatile)
        return NavigableResource(
            canonical_id=f"{base}#{route}",
            raw_location=raw,
            route_fragment=route,
        )
    except Exception as e:
        # urlparse rejects some malformed netlocs (e.g. bad IPv6 brackets)
        logger.debug(f"Falling back to hashed identity for {raw!r}: {e}")
        return NavigableResource(canonical_id=_hash_key(raw), raw_location=raw)


def canonicalize(
    raw_location: str,
    prior_anchor: Optional[str] = None,
    extra_volatile: Iterable[str] = (),
) -> str:
    """Reduce a raw location to its canonical id. Never raises."""
    return resolve_resource(raw_location, prior_anchor, extra_volatile).canonical_id


def identity_keys(canonical_id: str) -> tuple[str, ...]:
    """Keys a visited resource is recorded under: the full form and, for
    fragment routes, the fragment-stripped form."""
    if canonical_id.startswith(HASH_PREFIX) or "#" not in canonical_id:
        return (canonical_id,)
    return (canonical_id, canonical_id.split("#", 1)[0])


def same_origin(a: str, b: str) -> bool:
    """Whether two locations share scheme and host."""
    try:
        pa, pb = urlparse(a), urlparse(b)
    except ValueError:
        return False
    return (pa.scheme.lower(), pa.netloc.lower()) == (pb.scheme.lower(), pb.netloc.lower())
