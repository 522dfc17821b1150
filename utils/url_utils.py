import re
from urllib.parse import urlsplit, parse_qs, unquote

# Facebook's outbound link shim, e.g. https://l.facebook.com/l.php?u=<encoded destination>&h=...
FACEBOOK_REDIRECT_PATTERN = re.compile(r'facebook\.com/l\.php\?', re.IGNORECASE)
SCHEME_PREFIX_PATTERN = re.compile(r'^https?://', re.IGNORECASE)
WWW_PREFIX_PATTERN = re.compile(r'^www\.', re.IGNORECASE)
PERCENT_ESCAPE_PATTERN = re.compile(r'%([0-9A-Fa-f]{2})')

# Wildcard marker appended for SQL LIKE callers.
LIKE_WILDCARD = '%'


def safe_decode_uri(text):
    """
    Percent-decodes a string without ever raising.

    Valid UTF-8 escape sequences are decoded normally. If the escapes do not form
    valid UTF-8 (e.g. a lone '%E9'), every well-formed two-hex-digit escape is
    decoded as a single character and anything malformed ('%', '%zz') is kept
    as literal text.

    Args:
        text (str): The text to decode.

    Returns:
        str: The decoded text.
    """
    if not text or '%' not in text:
        return text
    try:
        return unquote(text, errors='strict')
    except UnicodeDecodeError:
        # Byte-wise fallback: decode what can be decoded, leave the rest alone.
        return PERCENT_ESCAPE_PATTERN.sub(lambda match: chr(int(match.group(1), 16)), text)


def _host_and_path(parts):
    """Returns host + path from a SplitResult, keeping the original letter case of the host."""
    host = parts.netloc.rpartition('@')[2] # Drop any user:password@ prefix.
    if host.startswith('['): # IPv6 literal, e.g. [::1]:8080
        host = host[:host.find(']') + 1] if ']' in host else host
    elif ':' in host:
        host = host.split(':', 1)[0] # Drop the port.
    return host + (parts.path or '/') # An absolute URL always has at least the root path.


def extract_redirect_url(url):
    """
    Unwraps a Facebook redirect link (facebook.com/l.php?u=...) to its real destination.

    If the embedded destination carries its own query string (fbclid, utm_* and so on),
    only scheme + host + path is kept. Anything that is not a redirect link, or that
    cannot be unwrapped, is returned unchanged.

    Args:
        url (str): The URL that may be a Facebook redirect link.

    Returns:
        str: The destination URL, or the input if there is nothing to unwrap.
    """
    if not url or not FACEBOOK_REDIRECT_PATTERN.search(url):
        return url

    query = url.split('?', 1)[1]
    destinations = parse_qs(query).get('u') # parse_qs already percent-decodes the value.
    if not destinations or not destinations[0]:
        return url

    destination = destinations[0]
    if '?' in destination:
        try:
            parts = urlsplit(destination)
        except ValueError:
            return destination
        if parts.scheme and parts.netloc:
            destination = f"{parts.scheme}://{parts.netloc}{parts.path or '/'}"
    return destination


def _normalize_once(text):
    text = extract_redirect_url(text.strip())

    # Absolute URL: keep only host + path.
    try:
        parts = urlsplit(text)
        if parts.scheme in ('http', 'https') and parts.netloc:
            text = _host_and_path(parts)
    except ValueError:
        pass # Not parseable (e.g. malformed IPv6 netloc); treat as opaque text.

    text = text.split('?', 1)[0]
    text = SCHEME_PREFIX_PATTERN.sub('', text)
    text = WWW_PREFIX_PATTERN.sub('', text)
    return safe_decode_uri(text)


def normalize_url(url, as_prefix_pattern=False):
    """
    Canonicalizes a URL into the key used to match ads against it.

    The key is host + path: redirect links are unwrapped, the scheme, a leading
    'www.' and the query string are removed and percent-escapes are decoded.
    Letter case is left as-is. The steps are repeated until the text stops
    changing so that normalize_url(normalize_url(x)) == normalize_url(x) even
    when an escape decodes into '?', 'www.' or a scheme. Each pass that changes
    the text makes it shorter, so the loop always ends. Surrounding whitespace
    is trimmed on every pass.

    Args:
        url (str): Any URL-like string (full URL, bare domain + path or redirect link).
        as_prefix_pattern (bool, optional): Append a '%' wildcard for use in a SQL LIKE
                                            pattern. Defaults to False.

    Returns:
        str: The normalized key. Empty or None input is returned unchanged.
    """
    if not url:
        return url

    normalized = url
    while True:
        candidate = _normalize_once(normalized)
        if candidate == normalized:
            break
        normalized = candidate

    if as_prefix_pattern:
        normalized = f"{normalized}{LIKE_WILDCARD}"
    return normalized


def is_valid_http_url(url):
    """True if `url` is an absolute http(s) URL with a host."""
    if not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme in ('http', 'https') and bool(parts.netloc)
