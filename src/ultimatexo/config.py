"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    # Events queued for a connection that stopped reading before it is dropped
    mailbox_size: int = 256

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``ULTIMATEXO_*`` variables.

        ``PORT`` is honoured as a fallback for hosts that inject it.
        """

        env = os.environ if environ is None else environ
        host = env.get("ULTIMATEXO_HOST", cls.host)
        port = int(env.get("ULTIMATEXO_PORT") or env.get("PORT") or cls.port)
        log_level = env.get("ULTIMATEXO_LOG_LEVEL", cls.log_level).lower()
        mailbox_size = int(env.get("ULTIMATEXO_MAILBOX_SIZE") or cls.mailbox_size)
        return cls(
            host=host, port=port, log_level=log_level, mailbox_size=mailbox_size
        )
