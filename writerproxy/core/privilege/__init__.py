# writerproxy/core/privilege/__init__.py
import platform

from ..errors import HostEnvironmentError

system = platform.system().lower()

if system == "windows":
    from .windows import is_elevated
elif system in ("linux", "darwin", "freebsd"):
    from .posix import is_elevated
else:
    def is_elevated() -> bool:
        raise HostEnvironmentError(f"Privilege detection not supported on platform: {system}")
