# flow.py
#
# Correlates the logo upload, metadata upload and token creation calls of
# one launch through a session id. Nothing is stored; every step is a log line.

import json
import logging
import re
import uuid
from typing import Optional

logger = logging.getLogger("metadata_flow")

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{8,64}$")

SUCCESS = "success"
WARNING = "warning"
ERROR = "error"


class FlowTracker:
    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def start(self) -> str:
        session_id = uuid.uuid4().hex
        self.log.info(f"[{session_id}] metadata flow started")
        return session_id

    def resume(self, session_id: Optional[str]) -> str:
        """Keep a caller supplied id when it looks like one of ours, else start over."""
        if isinstance(session_id, str) and _SESSION_ID.match(session_id):
            return session_id
        return self.start()

    def step(self, session_id: str, step: str, status: str = SUCCESS, **details) -> None:
        level = {SUCCESS: logging.INFO, WARNING: logging.WARNING}.get(status, logging.ERROR)
        suffix = f" {json.dumps(details, default=str, sort_keys=True)}" if details else ""
        self.log.log(level, f"[{session_id}] {step} ({status}){suffix}")
