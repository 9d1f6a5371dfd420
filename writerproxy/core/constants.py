# writerproxy/core/constants.py

# Carries the temporary log path across the elevation boundary.
TEMPORARY_LOG_FILE_ENVIRONMENT_VARIABLE = "WRITERPROXY_LOG_FILE"

# Tells a (frozen) application binary to run the proxy directly instead of
# starting the relay service.
RUN_AS_WORKER_ENVIRONMENT_VARIABLE = "WRITERPROXY_RUN_AS_WORKER"

CONFIG_ENVIRONMENT_VARIABLE = "WRITERPROXY_CONFIG"

APPIMAGE_ENVIRONMENT_VARIABLE = "APPIMAGE"
APPDIR_ENVIRONMENT_VARIABLE = "APPDIR"

LOG_FILE_PREFIX = "writerproxy-"
LOG_FILE_SUFFIX = ".log"

EXIT_CODES = {
    "SUCCESS": 0,
    "GENERAL_ERROR": 1,
    "VALIDATION_ERROR": 2,
    "CANCELLED": 3,
}

# pkexec: 126 = authorization dismissed, 127 = not authorized
PKEXEC_DENIED_CODES = {126, 127}
