from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class Config:
    backend_url: str
    backend_token: str = ""
    github_token: str = ""
    github_username: str = ""
    http_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        load_dotenv()

        return cls(
            backend_url=os.environ["BACKEND_URL"],
            backend_token=os.environ.get("BACKEND_TOKEN", ""),
            github_token=os.environ.get("GITHUB_TOKEN", ""),
            github_username=os.environ.get("GITHUB_USERNAME", ""),
            http_timeout=float(os.environ.get("HTTP_TIMEOUT", "30")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
