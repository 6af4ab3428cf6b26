import hashlib
from urllib.parse import urlparse


def is_valid_url(url: str) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def hostname_for(url: str) -> str:
    try:
        hostname = urlparse(url.strip()).hostname or ""
    except ValueError:
        return ""
    hostname = hostname.lower()
    return hostname.removeprefix("www.")


def origin_for(url: str) -> str:
    parsed = urlparse(url.strip())
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def icon_filename(url: str) -> str:
    hostname = hostname_for(url)
    if not hostname:
        return ""
    return f"{hostname}.ico"


def site_id_for(url: str) -> str:
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
    return f"site-{digest[:12]}"
