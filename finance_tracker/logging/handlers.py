"""File handler used for the optional anonymised and raw access logs."""

from __future__ import annotations

import os
from contextlib import suppress
from logging.handlers import WatchedFileHandler

LOG_FILE_MODE = 0o600


class SecureWatchedFileHandler(WatchedFileHandler):
    """Reopen rotated log files and keep them readable by the owner only."""

    def _open(self):
        stream = super()._open()
        with suppress(OSError):
            os.chmod(self.baseFilename, LOG_FILE_MODE)
        return stream
