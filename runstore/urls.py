from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

DIGITS = re.compile(r"\d+")

# Query parameters used to switch the profiler on, never part of the endpoint
IGNORED_PARAMS = {"_profile"}


def canonicalize_url(url: str) -> str:
    """Collapse the variable parts of a request URL into a grouping key.

    Digit runs in the path and purely numeric query values become ``N``,
    profiler switches are dropped and the remaining query parameters are
    sorted, so ``/user/42/edit?b=2&a=x`` and ``/user/7/edit?a=x&b=9`` share
    the key ``/user/N/edit?a=x&b=N``.

    CLI invocations (``script.py --flag 3``) go through the same rules.
    """
    if not url:
        return url

    parts = urlsplit(url)
    path = DIGITS.sub("N", parts.path)

    params = [
        (key, "N" if value.isdigit() else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in IGNORED_PARAMS
    ]
    query = urlencode(sorted(params), safe="/")

    return urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))
