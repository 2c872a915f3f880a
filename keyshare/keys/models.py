"""
OpenPGP key records as served over HKP.

Records are built fresh for every query and dropped once the response
has been written.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class KeyAlgorithm(Enum):
    """Public key algorithm class of a (sub)key."""
    RSA = "rsa"
    ELGAMAL = "elgamal"
    DSA = "dsa"
    UNKNOWN = "unknown"

    @property
    def letter(self) -> str:
        """Single-letter code used in PKS index listings."""
        return _ALGO_LETTERS[self]

    @classmethod
    def from_openpgp(cls, number: int) -> "KeyAlgorithm":
        """Map an RFC 4880 algorithm number to its class."""
        if number in (1, 2, 3):
            return cls.RSA
        if number in (16, 20):
            return cls.ELGAMAL
        if number == 17:
            return cls.DSA
        return cls.UNKNOWN


_ALGO_LETTERS = {
    KeyAlgorithm.RSA: "R",
    KeyAlgorithm.ELGAMAL: "E",
    KeyAlgorithm.DSA: "D",
    KeyAlgorithm.UNKNOWN: "?",
}


@dataclass
class Subkey:
    """A primary key or subkey."""
    keyid: str
    algorithm: KeyAlgorithm = KeyAlgorithm.UNKNOWN
    length: int = 0
    created: int = 0  # unix timestamp


@dataclass
class Signature:
    """A certification on a user id."""
    keyid: str
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass
class UserId:
    """A user id and the signatures made over it."""
    name: Optional[str] = None
    email: Optional[str] = None
    signatures: List[Signature] = field(default_factory=list)


@dataclass
class KeyRecord:
    """
    A public key as returned by a KeyStore.

    ``subkeys[0]`` is the primary key. A record always carries at least
    one subkey and one user id.
    """
    fingerprint: str
    subkeys: List[Subkey] = field(default_factory=list)
    uids: List[UserId] = field(default_factory=list)
    revoked: bool = False

    @property
    def primary(self) -> Subkey:
        return self.subkeys[0]

    @property
    def keyid(self) -> str:
        """Short key id: the last 8 hex digits of the fingerprint."""
        return self.fingerprint[-8:]
