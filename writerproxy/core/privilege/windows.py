# writerproxy/core/privilege/windows.py
import logging

from ..errors import PrivilegeQueryError

logger = logging.getLogger(__name__)


def is_elevated() -> bool:
    """True when the process token belongs to an elevated administrator."""
    try:
        from ctypes import windll

        return windll.shell32.IsUserAnAdmin() != 0
    except (ImportError, AttributeError, OSError) as e:
        raise PrivilegeQueryError(f"Could not query the process token: {e}") from e
