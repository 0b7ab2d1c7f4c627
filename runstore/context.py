from __future__ import annotations

import socket
import sys
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class RequestContext:
    """What was being served when a run was captured"""

    url: str
    get: dict[str, Any] = field(default_factory=dict)
    cookie: dict[str, Any] = field(default_factory=dict)
    post: dict[str, Any] = field(default_factory=dict)
    server_name: str | None = None
    # Seconds since the epoch
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def from_process(cls, argv: list[str] | None = None) -> RequestContext:
        """Context for a command line invocation of the current process"""
        if argv is None:
            argv = sys.argv
        return cls(url=" ".join(argv), server_name=socket.gethostname())
