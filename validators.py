import re
from typing import Any

# Dot-free run of labels: starts and ends alphanumeric, hyphens only inside
_RUN = r"[a-z\d]+(?:-+[a-z\d]+)*"
# One label glued directly onto the top-level domain, e.g. "localhost"
_LABEL_TLD = r"[a-z\d](?:[a-z\d-]*[a-z\d])?[a-z]{2,}"

URL_PATTERN = re.compile(
    r"(https?://)?"  # protocol
    rf"((?:{_RUN}\.)+[a-z]{{2,}}|(?:{_RUN}\.)*{_LABEL_TLD}|"  # domain name
    r"(\d{1,3}\.){3}\d{1,3})"  # OR ipv4 address
    r"(:\d+)?(/[-a-z\d%_.~+]*)*"  # port and path
    r"(\?[;&a-z\d%_.~+=-]*)?"  # query string
    r"(#[-a-z\d_]*)?",  # fragment
    re.IGNORECASE,
)


def is_url(value: Any) -> bool:
    """Permissive syntactic check for absolute or scheme-less URLs.

    Accepts hosts without a scheme, so it is a sanity check on feed
    configuration and not a parser. Dot-separated labels are matched one
    way only, so rejecting a long bad host stays fast.
    """
    if not isinstance(value, str):
        return False
    return URL_PATTERN.fullmatch(value) is not None
