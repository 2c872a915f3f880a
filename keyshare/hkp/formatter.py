"""
PKS-compatible HTML formatting for HKP responses.

The HKP wire format is whatever the old PKS keyserver printed: loosely
structured HTML with a ``<pre>`` block of fixed-width lines. Clients
scrape it, so the templates here must match PKS byte for byte.
"""

import time
from typing import Iterable, List, Optional

from ..keys.models import KeyRecord, UserId

ERROR_RESPONSE = (
    "<title>Public Key Server -- Error</title><p>\r\n"
    "<h1>Public Key Server -- Error</h1><p>\r\n"
    "{message}"
)

VINDEX_PREFIX = (
    "<title>Public Key Server -- Verbose Index ``{search}''</title><p>"
    "<h1>Public Key Server -- Verbose Index ``{search}''</h1><p>"
    "<pre>"
)

INDEX_PREFIX = (
    "<title>Public Key Server -- Verbose Index ``{search}''</title><p>"
    "<h1>Public Key Server -- Verbose Index ``{search}''</h1><p>"
    "<pre>Type bits /keyID    Date       User ID\r\n"
)

INDEX_SUFFIX = "</pre>"

INDEX_REVOKED = "*** KEY REVOKED ***"
INDEX_UIDNAME = "{name} "
INDEX_UIDEMAIL = '{name} &lt;<a href="/pks/lookup?op=get&search=0x{keyid}">{email}</a>&gt;'
INDEX_KEY_LINE = 'pub {bits:4d}{algo}/<a href="/pks/lookup?op=get&search=0x{keyid}">{keyid}</a> {date} {uid}\r\n'
INDEX_FPR_LINE = "     Key fingerprint = {fingerprint}\r\n"
INDEX_UID_LINE = "                               {uid}\r\n"
INDEX_SIG_LINE = 'sig        <a href="/pks/lookup?op=get&search=0x{keyid}">{keyid}</a>             {uid}\r\n'

GET_PREFIX = (
    "<title>Public Key Server -- Get ``{search}''</title><p>\r\n"
    "<h1>Public Key Server -- Get ``{search}''</h1><p>\r\n"
    "<pre>\r\n"
)

GET_SUFFIX = "\r\n</pre>"

ADD_RESPONSE = ERROR_RESPONSE.format(message="Adding of keys not allowed")

NOTFOUND_RESPONSE = (
    "<HEAD><TITLE>404 Not Found</TITLE></HEAD>"
    "<BODY>unknown uri in pks request</BODY>\r\n"
)

_HTML_SPECIAL = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    '"': "&quot;",
}


def last_x(value: str, count: int) -> str:
    """Return the last ``count`` characters of ``value``."""
    if len(value) > count:
        return value[len(value) - count:]
    return value


def escape_html(value: str) -> str:
    """Escape ``<>&"`` in a single left-to-right pass."""
    parts: List[str] = []
    start = 0
    for index, char in enumerate(value):
        replacement = _HTML_SPECIAL.get(char)
        if replacement is None:
            continue
        parts.append(value[start:index])
        parts.append(replacement)
        start = index + 1
    parts.append(value[start:])
    return "".join(parts)


def format_fingerprint(fingerprint: str) -> str:
    """Group a hex fingerprint in blocks of four separated by spaces."""
    out = []
    for index, char in enumerate(fingerprint):
        if index > 0 and index % 4 == 0:
            out.append(" ")
        out.append(char)
    return "".join(out)


def format_uid(name: Optional[str], keyid: str, email: Optional[str]) -> str:
    """Render a user id (or signer) for an index line."""
    name = name or None
    email = email or None
    if name and email:
        return INDEX_UIDEMAIL.format(name=name, keyid=last_x(keyid, 8), email=email)
    if name:
        return INDEX_UIDNAME.format(name=name)
    return ""


def format_date(timestamp: int) -> str:
    """Creation date in PKS form, always UTC."""
    return time.strftime("%Y/%m/%d", time.gmtime(timestamp))


def error_page(message: str) -> str:
    return ERROR_RESPONSE.format(message=message)


def _signature_lines(uid: UserId) -> str:
    lines = []
    for sig in uid.signatures:
        lines.append(INDEX_SIG_LINE.format(
            keyid=last_x(sig.keyid, 8),
            uid=format_uid(sig.name, sig.keyid, sig.email),
        ))
    return "".join(lines)


def format_key(key: KeyRecord, verbose: bool = False, fingerprints: bool = False) -> str:
    """
    Render the index lines for one key.

    The first user id shares the ``pub`` line with the key details. A
    revoked key shows the revocation marker there instead and lists
    nothing else apart from the fingerprint.
    """
    primary = key.primary
    first = key.uids[0]

    if key.revoked:
        uidpart = INDEX_REVOKED
    else:
        uidpart = format_uid(first.name, key.fingerprint, first.email)

    lines = [INDEX_KEY_LINE.format(
        bits=primary.length,
        algo=primary.algorithm.letter,
        keyid=key.keyid,
        date=format_date(primary.created),
        uid=uidpart,
    )]

    if fingerprints:
        lines.append(INDEX_FPR_LINE.format(fingerprint=format_fingerprint(key.fingerprint)))

    # Revoked keys get the primary line only, not a revoked marker per uid
    if key.revoked:
        return "".join(lines)

    if verbose:
        lines.append(_signature_lines(first))

    for uid in key.uids[1:]:
        lines.append(INDEX_UID_LINE.format(
            uid=format_uid(uid.name, key.fingerprint, uid.email)
        ))
        if verbose:
            lines.append(_signature_lines(uid))

    return "".join(lines)


def index_page(
    search: str,
    keys: Iterable[KeyRecord],
    verbose: bool = False,
    fingerprints: bool = False,
) -> Optional[str]:
    """
    Render an index/vindex listing.

    Returns None when ``keys`` yields nothing. Errors raised while
    iterating ``keys`` propagate and nothing is returned.
    """
    parts: List[str] = []
    for key in keys:
        if not parts:
            escaped = escape_html(search)
            prefix = VINDEX_PREFIX if verbose else INDEX_PREFIX
            parts.append(prefix.format(search=escaped))
        parts.append(format_key(key, verbose=verbose, fingerprints=fingerprints))

    if not parts:
        return None

    parts.append(INDEX_SUFFIX)
    return "".join(parts)


def get_page(search: str, armored: bytes) -> bytes:
    """Wrap exported key material. The key text is not escaped."""
    escaped = escape_html(search)
    return (
        GET_PREFIX.format(search=escaped).encode("utf-8")
        + armored
        + GET_SUFFIX.encode("utf-8")
    )
