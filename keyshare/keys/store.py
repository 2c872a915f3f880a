"""
Key backends.

The HKP server only needs two things from a keyring: a listing of keys
matching a search pattern, and an ASCII-armored export. GnuPGKeyStore
gets both from the ``gpg`` binary using its machine-readable colon
listing format.
"""

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional, Tuple

from ..errors import KeyStoreError
from .models import KeyAlgorithm, KeyRecord, Signature, Subkey, UserId

logger = logging.getLogger(__name__)

_HEX_ESCAPE = re.compile(rb"\\x([0-9a-fA-F]{2})")
_UID_PATTERN = re.compile(
    r"^(?P<name>[^(<]*?)\s*(?:\((?P<comment>[^)]*)\))?\s*(?:<(?P<email>[^>]*)>)?\s*$"
)


class KeyStore(ABC):
    """Read-only access to the public keys being shared."""

    @abstractmethod
    def query(self, pattern: str, include_signatures: bool = False) -> Iterable[KeyRecord]:
        """
        List keys matching ``pattern``.

        May be lazy; errors can surface while iterating. Raises
        KeyStoreError when the backend fails.
        """

    @abstractmethod
    def export_armored(self, pattern: str) -> bytes:
        """Export matching keys as armored text, or b"" if none match."""


def unescape_colon_field(raw: bytes) -> str:
    """Decode a colon-listing field, undoing gpg's ``\\xHH`` escapes."""
    unescaped = _HEX_ESCAPE.sub(lambda m: bytes([int(m.group(1), 16)]), raw)
    return unescaped.decode("utf-8", errors="replace")


def split_user_id(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Split ``Name (comment) <email>`` into name and email."""
    match = _UID_PATTERN.match(text)
    if not match:
        return (text or None), None
    name = match.group("name").strip() or None
    email = (match.group("email") or "").strip() or None
    return name, email


def _int_field(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_colon_listing(lines: Iterable[bytes]) -> Iterator[KeyRecord]:
    """
    Build KeyRecords from ``gpg --with-colons --fixed-list-mode`` output.

    Only the fields PKS listings need are read: validity, length,
    algorithm, key id and creation time of keys; fingerprint of the
    primary key; user ids and the signatures following them.
    """
    record: Optional[KeyRecord] = None
    uid: Optional[UserId] = None
    want_fpr = False

    for line in lines:
        fields = line.rstrip(b"\r\n").split(b":")
        kind = fields[0]
        # Pad so short records can be indexed up to the user id column
        fields += [b""] * (12 - len(fields))
        text = [f.decode("ascii", errors="replace") for f in fields[:9]]

        if kind == b"pub":
            if record is not None and record.uids:
                yield record
            record = KeyRecord(
                fingerprint="",
                subkeys=[Subkey(
                    keyid=text[4],
                    algorithm=KeyAlgorithm.from_openpgp(_int_field(text[3])),
                    length=_int_field(text[2]),
                    created=_int_field(text[5]),
                )],
                revoked=(text[1] == "r"),
            )
            uid = None
            want_fpr = True

        elif record is None:
            continue

        elif kind == b"fpr" and want_fpr:
            record.fingerprint = fields[9].decode("ascii", errors="replace")
            want_fpr = False

        elif kind == b"uid":
            name, email = split_user_id(unescape_colon_field(fields[9]))
            uid = UserId(name=name, email=email)
            record.uids.append(uid)

        elif kind == b"sig" and uid is not None:
            name, email = split_user_id(unescape_colon_field(fields[9]))
            uid.signatures.append(Signature(keyid=text[4], name=name, email=email))

        elif kind == b"sub":
            record.subkeys.append(Subkey(
                keyid=text[4],
                algorithm=KeyAlgorithm.from_openpgp(_int_field(text[3])),
                length=_int_field(text[2]),
                created=_int_field(text[5]),
            ))
            # Signatures after a subkey are bindings, not certifications
            uid = None
            want_fpr = False

    if record is not None and record.uids:
        yield record


class GnuPGKeyStore(KeyStore):
    """
    KeyStore backed by the local GnuPG public keyring.

    Usage:
        store = GnuPGKeyStore()
        for key in store.query("alice"):
            print(key.keyid)
    """

    def __init__(self, gpg_binary: str = "gpg", homedir: Optional[str] = None):
        self.gpg_binary = gpg_binary
        self.homedir = homedir

    def _command(self, *args: str) -> List[str]:
        command = [self.gpg_binary, "--batch", "--no-tty"]
        if self.homedir:
            command += ["--homedir", self.homedir]
        command += list(args)
        return command

    def _run(self, command: List[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Running {' '.join(command)}")
        try:
            return subprocess.run(command, capture_output=True, check=False)
        except OSError as e:
            raise KeyStoreError(f"couldn't run {self.gpg_binary}: {e}") from e

    def query(self, pattern: str, include_signatures: bool = False) -> Iterator[KeyRecord]:
        listing = "--list-sigs" if include_signatures else "--list-keys"
        args = ["--with-colons", "--fixed-list-mode", "--with-fingerprint", listing]
        if pattern:
            args += ["--", pattern]
        proc = self._run(self._command(*args))

        # gpg exits non-zero when nothing matches; only fail if it also
        # produced no listing at all and said something other than that
        if proc.returncode != 0 and not proc.stdout:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            if stderr and "No public key" not in stderr and "not found" not in stderr:
                raise KeyStoreError(stderr)
            return

        yield from parse_colon_listing(proc.stdout.splitlines())

    def export_armored(self, pattern: str) -> bytes:
        proc = self._run(self._command("--armor", "--export", "--", pattern))
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise KeyStoreError(stderr or f"{self.gpg_binary} exited with {proc.returncode}")
        return proc.stdout
