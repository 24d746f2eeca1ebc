"""Redirect URL normalization for Checkout Sessions.

Listings may carry relative paths or absolute URLs for their success and
cancel pages. Both are resolved against PUBLIC_SITE_URL. The success URL
always carries the lab ID and Stripe's session ID placeholder, which Stripe
substitutes on redirect.
"""

from urllib.parse import parse_qsl, quote, urlsplit

from labpay.config import Settings
from labpay.models.errors import ConfigurationError
from labpay.models.listing import Listing

SESSION_ID_TOKEN = "{CHECKOUT_SESSION_ID}"


def _split_fragment(url: str) -> tuple[str, str]:
    head, sep, fragment = url.partition("#")
    return head, sep + fragment


def _has_query_param(url: str, name: str) -> bool:
    head, _ = _split_fragment(url)
    query = head.partition("?")[2]
    return any(key == name for key, _ in parse_qsl(query, keep_blank_values=True))


def append_query_param(url: str, raw_param: str) -> str:
    """Append an already-encoded key=value pair, keeping any fragment last.

    The pair is added verbatim so placeholders like {CHECKOUT_SESSION_ID}
    stay unencoded.
    """
    head, fragment = _split_fragment(url)
    if "?" not in head:
        separator = "?"
    elif head.endswith(("?", "&")):
        separator = ""
    else:
        separator = "&"
    return f"{head}{separator}{raw_param}{fragment}"


def ensure_session_token(url: str) -> str:
    """Append session_id={CHECKOUT_SESSION_ID} unless the token is present.

    Idempotent: ensure_session_token(ensure_session_token(u)) == ensure_session_token(u).
    """
    if SESSION_ID_TOKEN in url:
        return url
    return append_query_param(url, f"session_id={SESSION_ID_TOKEN}")


def resolve_url(base: str, target: str) -> str:
    """Resolve a path or absolute URL against the public base URL.

    Raises:
        ConfigurationError: If the result is not an absolute http(s) URL.
    """
    target = target.strip()
    try:
        parts = urlsplit(target)
    except ValueError as e:
        raise ConfigurationError(f"Malformed redirect URL {target!r}: {e}") from e

    if parts.scheme or parts.netloc:
        resolved = target
    elif target.startswith("/"):
        resolved = base.rstrip("/") + target
    else:
        resolved = f"{base.rstrip('/')}/{target}"

    try:
        final = urlsplit(resolved)
    except ValueError as e:
        raise ConfigurationError(f"Malformed redirect URL {resolved!r}: {e}") from e
    if final.scheme not in ("http", "https") or not final.netloc:
        raise ConfigurationError(f"Redirect URL must be absolute http(s): {resolved!r}")
    return resolved


def build_redirect_urls(settings: Settings, listing: Listing) -> tuple[str, str]:
    """Build the (success_url, cancel_url) pair for a listing.

    Listing-level paths win over the configured defaults.

    Raises:
        ConfigurationError: Missing or invalid PUBLIC_SITE_URL, or a listing
            URL that cannot be resolved.
    """
    base = settings.public_base_url()

    success_url = resolve_url(base, listing.success_path or settings.checkout_success_path)
    if not _has_query_param(success_url, "lab_id"):
        success_url = append_query_param(success_url, f"lab_id={quote(listing.id, safe='')}")
    success_url = ensure_session_token(success_url)

    cancel_url = resolve_url(base, listing.cancel_path or settings.checkout_cancel_path)
    return success_url, cancel_url
