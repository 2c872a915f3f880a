"""
HKP request dispatch.

Maps (method, path, query) to a complete response. The transport layer
only copies the result onto the wire.

Note that HKP reports lookup failures with HTTP 200 and an error page.
Only requests that are malformed at the HTTP level get another status.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping

from ..errors import KeyStoreError
from ..keys.store import KeyStore
from . import formatter

logger = logging.getLogger(__name__)

LOOKUP_PATH = "/pks/lookup"
ADD_PATH = "/pks/add"

CONTENT_TYPE = "text/html"

# Error messages as PKS phrases them
MSG_NO_QUERY = "pks request had no query string"
MSG_NO_OP = "pks request did not include an <b>op</b> property"
MSG_BAD_OP = "pks request had an invalid <b>op</b> property"
MSG_NO_SEARCH = "pks request did not include a <b>search</b> property"
MSG_BACKEND = "Error retrieving key(s)"
MSG_NO_KEYS = "No matching keys in database"
MSG_NO_KEY = "No matching key in database"


def _default_headers() -> Dict[str, str]:
    return {"Content-Type": CONTENT_TYPE, "Connection": "close"}


@dataclass
class HKPResponse:
    """A finished HKP response."""
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=_default_headers)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @classmethod
    def html(cls, status: int, body: str) -> "HKPResponse":
        return cls(status=status, body=body.encode("utf-8"))


class HKPDispatcher:
    """
    Routes HKP requests to index, vindex and get handlers.

    Usage:
        dispatcher = HKPDispatcher(GnuPGKeyStore())
        response = dispatcher.handle("GET", "/pks/lookup", {"op": "index", "search": "alice"})
    """

    def __init__(self, keystore: KeyStore):
        self.keystore = keystore

    def handle(self, method: str, path: str, query: Mapping[str, str]) -> HKPResponse:
        """Handle one request and return its response."""
        if path == LOOKUP_PATH:
            return self._lookup(method, query)
        if path == ADD_PATH:
            return HKPResponse.html(405, formatter.ADD_RESPONSE)
        return HKPResponse.html(404, formatter.NOTFOUND_RESPONSE)

    def _error(self, message: str) -> HKPResponse:
        # Yes, HKP returns 200 for errors
        return HKPResponse.html(200, formatter.error_page(message))

    def _lookup(self, method: str, query: Mapping[str, str]) -> HKPResponse:
        if method.upper() != "GET":
            return HKPResponse(status=405)

        if not query:
            return HKPResponse.html(405, formatter.error_page(MSG_NO_QUERY))

        op = (query.get("op") or "").lower()
        if not op:
            return self._error(MSG_NO_OP)
        if op == "index":
            return self._index(query, verbose=False)
        if op == "vindex":
            return self._index(query, verbose=True)
        if op == "get":
            return self._get(query)
        return self._error(MSG_BAD_OP)

    def _index(self, query: Mapping[str, str], verbose: bool) -> HKPResponse:
        search = query.get("search")
        if not search:
            return self._error(MSG_NO_SEARCH)

        fingerprints = (query.get("fingerprint") or "").lower() == "on"

        try:
            keys = self.keystore.query(search, include_signatures=verbose)
            page = formatter.index_page(search, keys, verbose=verbose, fingerprints=fingerprints)
        except KeyStoreError as e:
            logger.warning(f"HKP server key listing failed: {e}")
            return self._error(MSG_BACKEND)

        if page is None:
            return self._error(MSG_NO_KEYS)

        logger.debug(f"Served {'vindex' if verbose else 'index'} for {search!r}")
        return HKPResponse.html(200, page)

    def _get(self, query: Mapping[str, str]) -> HKPResponse:
        search = query.get("search")
        if not search:
            return self._error(MSG_NO_SEARCH)

        try:
            armored = self.keystore.export_armored(search)
        except KeyStoreError as e:
            logger.warning(f"HKP server key export failed: {e}")
            return self._error(MSG_BACKEND)

        if not armored:
            return self._error(MSG_NO_KEY)

        logger.debug(f"Served get for {search!r}")
        return HKPResponse(status=200, body=formatter.get_page(search, armored))
