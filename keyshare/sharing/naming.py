"""
Service name shown to peers browsing for shared keys.
"""

import getpass
import logging
from typing import Optional

try:
    import pwd
except ImportError:  # not on Windows
    pwd = None

logger = logging.getLogger(__name__)

SHARE_NAME_FORMAT = "{user}'s encryption keys"


def up_first(value: str) -> str:
    """Upper-case the first character."""
    if not value:
        return value
    return value[0].upper() + value[1:]


def get_real_name() -> Optional[str]:
    """The operator's full name from the password database, if set."""
    if pwd is None:
        return None
    try:
        gecos = pwd.getpwnam(getpass.getuser()).pw_gecos
    except (KeyError, OSError):
        return None
    name = gecos.split(",", 1)[0].strip()
    return name or None


def compute_share_name(override: Optional[str] = None, real_name: Optional[str] = None,
                       user_name: Optional[str] = None) -> str:
    """
    Base name for the DNS-SD advertisement.

    Uses ``override`` verbatim when given. Otherwise "<Name>'s encryption
    keys", where Name is the real name or, when that is unknown, the
    login name with its first letter capitalized.
    """
    if override:
        return override

    if real_name is None:
        real_name = get_real_name()
    if not real_name or real_name == "Unknown":
        real_name = up_first(user_name if user_name is not None else getpass.getuser())

    return SHARE_NAME_FORMAT.format(user=real_name)


def alternate_name(base: str, alternate: int) -> str:
    """Disambiguated name after ``alternate`` collisions."""
    if alternate:
        return f"{base} #{alternate}"
    return base
