"""
Tests for the GnuPG key backend.

gpg itself is never run; subprocess.run is replaced with canned output.
"""

import subprocess

import pytest

from keyshare.errors import KeyStoreError
from keyshare.keys.models import KeyAlgorithm
from keyshare.keys.store import (
    GnuPGKeyStore,
    parse_colon_listing,
    split_user_id,
    unescape_colon_field,
)

LISTING = b"""\
tru::1:1600000000:0:3:1:5
pub:u:2048:1:89ABCDEF01234567:1577923200:::u:::scESC::::::23::0:
fpr:::::::::0123456789ABCDEF0123456789ABCDEF01234567:
uid:u::::1577923200::AAAA::Alice A (home) <alice@example.com>::::::::::0:
sig:::1:89ABCDEF01234567:1577923200::::Alice A (home) <alice@example.com>:13x::0123456789ABCDEF0123456789ABCDEF01234567:::8:
sig:::17:1111111122222222:1577923300::::Bob\\x3a the builder <bob@example.com>:10x:::::2:
uid:u::::1577923200::BBBB::Alice Work::::::::::0:
sub:u:2048:16:FEDCBA9876543210:1577923200::::::e::::::23:
fpr:::::::::FFFFFFFFFFFFFFFFFFFFFFFFFEDCBA9876543210:
sig:::1:89ABCDEF01234567:1577923200::::Alice A (home) <alice@example.com>:18x:::::8:
pub:r:1024:17:0000000011111111:1000000000:::-:::sc::::::23::0:
fpr:::::::::AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA11111111:
uid:r::::1000000000::CCCC::<old@example.com>::::::::::0:
"""


class TestParsing:
    """Tests for colon listing parsing."""

    def test_unescape(self):
        assert unescape_colon_field(b"Bob\\x3a the builder") == "Bob: the builder"
        assert unescape_colon_field("Jürgen".encode("utf-8")) == "Jürgen"

    @pytest.mark.parametrize("text,name,email", [
        ("Alice A <alice@example.com>", "Alice A", "alice@example.com"),
        ("Alice A (home) <alice@example.com>", "Alice A", "alice@example.com"),
        ("Alice Work", "Alice Work", None),
        ("<old@example.com>", None, "old@example.com"),
        ("", None, None),
    ])
    def test_split_user_id(self, text, name, email):
        assert split_user_id(text) == (name, email)

    def test_keys(self):
        keys = list(parse_colon_listing(LISTING.splitlines()))
        assert len(keys) == 2

        alice, old = keys
        assert alice.fingerprint == "0123456789ABCDEF0123456789ABCDEF01234567"
        assert alice.keyid == "01234567"
        assert alice.revoked is False
        assert alice.primary.algorithm is KeyAlgorithm.RSA
        assert alice.primary.length == 2048
        assert alice.primary.created == 1577923200
        assert len(alice.subkeys) == 2
        assert alice.subkeys[1].algorithm is KeyAlgorithm.ELGAMAL

        assert old.revoked is True
        assert old.primary.algorithm is KeyAlgorithm.DSA
        assert old.fingerprint.endswith("11111111")

    def test_uids_and_signatures(self):
        alice = next(parse_colon_listing(LISTING.splitlines()))
        assert [(u.name, u.email) for u in alice.uids] == [
            ("Alice A", "alice@example.com"),
            ("Alice Work", None),
        ]

        sigs = alice.uids[0].signatures
        assert [s.keyid for s in sigs] == ["89ABCDEF01234567", "1111111122222222"]
        assert sigs[1].name == "Bob: the builder"
        assert sigs[1].email == "bob@example.com"

        # The subkey binding signature belongs to no uid
        assert alice.uids[1].signatures == []

    def test_key_without_uid_skipped(self):
        lines = [
            b"pub:u:2048:1:89ABCDEF01234567:1577923200:::u:::scESC:",
            b"fpr:::::::::0123456789ABCDEF0123456789ABCDEF01234567:",
        ]
        assert list(parse_colon_listing(lines)) == []


def completed(returncode=0, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestGnuPGKeyStore:
    """Tests for GnuPGKeyStore command handling."""

    def test_query_command(self, monkeypatch):
        calls = []

        def fake_run(command, **kwargs):
            calls.append(command)
            return completed(stdout=LISTING)

        monkeypatch.setattr(subprocess, "run", fake_run)
        store = GnuPGKeyStore(gpg_binary="gpg2", homedir="/tmp/ring")

        keys = list(store.query("alice", include_signatures=True))

        assert len(keys) == 2
        command = calls[0]
        assert command[0] == "gpg2"
        assert "--batch" in command
        assert command[command.index("--homedir") + 1] == "/tmp/ring"
        assert "--with-colons" in command
        assert "--list-sigs" in command
        assert command[-2:] == ["--", "alice"]

    def test_query_without_signatures(self, monkeypatch):
        calls = []
        monkeypatch.setattr(subprocess, "run", lambda command, **kw: calls.append(command) or completed())
        list(GnuPGKeyStore().query("alice"))
        assert "--list-keys" in calls[0]
        assert "--list-sigs" not in calls[0]

    def test_no_match(self, monkeypatch):
        """gpg's 'No public key' exit is an empty result, not an error."""
        monkeypatch.setattr(subprocess, "run", lambda command, **kw: completed(
            returncode=2, stderr=b"gpg: error reading key: No public key\n"))
        assert list(GnuPGKeyStore().query("nobody")) == []

    def test_query_failure(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda command, **kw: completed(
            returncode=2, stderr=b"gpg: keydb_search failed: Permission denied\n"))
        with pytest.raises(KeyStoreError):
            list(GnuPGKeyStore().query("alice"))

    def test_missing_binary(self, monkeypatch):
        def fake_run(command, **kwargs):
            raise FileNotFoundError(2, "No such file or directory")

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(KeyStoreError):
            list(GnuPGKeyStore(gpg_binary="nonexistent-gpg").query("alice"))
        with pytest.raises(KeyStoreError):
            GnuPGKeyStore(gpg_binary="nonexistent-gpg").export_armored("alice")

    def test_export(self, monkeypatch):
        calls = []
        armored = b"-----BEGIN PGP PUBLIC KEY BLOCK-----\n"

        def fake_run(command, **kwargs):
            calls.append(command)
            return completed(stdout=armored)

        monkeypatch.setattr(subprocess, "run", fake_run)
        assert GnuPGKeyStore().export_armored("0x01234567") == armored
        assert "--armor" in calls[0]
        assert "--export" in calls[0]
        assert calls[0][-1] == "0x01234567"

    def test_export_nothing(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda command, **kw: completed(
            stderr=b"gpg: WARNING: nothing exported\n"))
        assert GnuPGKeyStore().export_armored("nobody") == b""

    def test_export_failure(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda command, **kw: completed(returncode=2))
        with pytest.raises(KeyStoreError):
            GnuPGKeyStore().export_armored("alice")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
