"""
Latest module version lookup through the Go module proxy protocol.

Only used in update mode: GET <proxy>/<escaped module path>/@latest
returns {"Version": "...", "Time": "..."}.
"""

from __future__ import annotations

import json
import logging
import os
import time
import urllib.error
import urllib.request

from .cancellation import CancellationToken
from .common import vlog
from .errors import InvalidModuleReference, LookupFailure
from .modules import escape_path

logger = logging.getLogger(__name__)

DEFAULT_PROXY = "https://proxy.golang.org"
USER_AGENT = "goreinstall/1.0"


def resolve_proxy_url(module_path: str, proxy_url: str | None = None) -> str:
    """Pick the proxy to query.

    Uses proxy_url if given, otherwise the first HTTP(S) entry of $GOPROXY
    (entries are separated by "," or "|"), otherwise proxy.golang.org.

    Raises:
        LookupFailure: If GOPROXY disables every proxy ("off", "direct")
    """
    if proxy_url:
        return proxy_url.rstrip("/")

    goproxy = os.environ.get("GOPROXY", "").strip()
    if not goproxy:
        return DEFAULT_PROXY

    for entry in goproxy.replace("|", ",").split(","):
        entry = entry.strip()
        if entry.startswith(("https://", "http://")):
            return entry.rstrip("/")
    raise LookupFailure(module_path, f"no usable proxy in GOPROXY={goproxy!r}")


def get_latest_version(
    module_path: str,
    proxy_url: str | None = None,
    timeout: float = 10,
    token: CancellationToken | None = None,
    verbose: bool = False,
) -> str:
    """
    Query the module proxy for the latest version of a module.

    Args:
        module_path: Module path (e.g. "golang.org/x/tools")
        proxy_url: Proxy base URL (defaults to $GOPROXY or proxy.golang.org)
        timeout: Request timeout in seconds
        token: Cancellation token checked before the request
        verbose: Enable verbose logging

    Returns:
        Latest version string (e.g. "v0.15.0")

    Raises:
        LookupFailure: If the proxy cannot be reached or answers unexpectedly
        Cancelled: If the token is cancelled before the request
    """
    if token is not None:
        token.check()
        deadline = token.deadline
        if deadline is not None:
            timeout = max(0.1, min(timeout, deadline - time.monotonic()))

    try:
        escaped = escape_path(module_path)
    except InvalidModuleReference as e:
        raise LookupFailure(module_path, str(e)) from e

    url = f"{resolve_proxy_url(module_path, proxy_url)}/{escaped}/@latest"
    vlog(f"checking ({module_path}) for updates", verbose)
    logger.debug(f"GET {url}")

    try:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            data = json.loads(response.read())
    except urllib.error.HTTPError as e:
        raise LookupFailure(module_path, f"proxy returned HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        raise LookupFailure(module_path, f"failed to fetch {url}: {e}") from e
    except json.JSONDecodeError as e:
        raise LookupFailure(module_path, f"invalid JSON from {url}: {e}") from e

    latest = data.get("Version") if isinstance(data, dict) else None
    if not latest or not isinstance(latest, str):
        raise LookupFailure(module_path, f"no version in response from {url}")

    if token is not None:
        token.check()
    return latest
