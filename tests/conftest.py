from __future__ import annotations

import os

# Settings are read at import time; keep test runs from writing log files.
os.environ.setdefault("LOG_DIR", "")
