# writerproxy/core/privilege/posix.py
import logging

import psutil

from ..errors import PrivilegeQueryError

logger = logging.getLogger(__name__)


def is_elevated() -> bool:
    """
    True when the current process runs with an effective UID of 0.

    Reads the credentials the kernel reports for this process rather than
    environment hints like SUDO_UID, which can be stale or spoofed.
    """
    try:
        uids = psutil.Process().uids()
    except (psutil.Error, OSError) as e:
        raise PrivilegeQueryError(f"Could not query process credentials: {e}") from e
    logger.debug(f"Process uids: real={uids.real} effective={uids.effective}")
    return uids.effective == 0
