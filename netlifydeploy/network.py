"""Resolve the Netlify API base URL and classify transport failures."""

import logging
import os

import httpx

log = logging.getLogger(__name__)

# Override with NETLIFY_API_URL to point at a staging or stub API
DEFAULT_API_URL = "https://api.netlify.com/api/v1"

# The value itself starts with "User-Agent:"
USER_AGENT = "User-Agent: netlifyGolangDeploy/0.0.0"

GOAWAY_MARKER = "GOAWAY"
# h2 reports a received GOAWAY frame as a ConnectionTerminated event
_H2_GOAWAY_EVENT = "ConnectionTerminated"


def get_base_url() -> str:
    """
    Return API base URL without trailing slash. Prefer env NETLIFY_API_URL if set,
    else the public Netlify API.
    """
    override = os.environ.get("NETLIFY_API_URL", "").strip()
    if override:
        log.info("Using API base URL from NETLIFY_API_URL: %s", override.rstrip("/"))
        return override.rstrip("/")
    return DEFAULT_API_URL


def is_goaway(exc: BaseException) -> bool:
    """
    True if exc is an HTTP/2 GOAWAY teardown (the only upload failure worth retrying).
    Follows __cause__ so wrapped transport errors are classified too.
    """
    seen = set()
    current = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current)
        if GOAWAY_MARKER in text:
            return True
        if isinstance(current, httpx.RemoteProtocolError) and _H2_GOAWAY_EVENT in text:
            return True
        current = current.__cause__
    return False


def upload_timeout(size: int) -> float:
    """Generous timeout for large files: 10 min base + 60 sec per MB, cap 30 min extra."""
    return 600.0 + min(1200.0, size / (1024 * 1024) * 60)
