from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

REQUIRED_ENV = ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD")


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    dbname: str
    user: str
    password: str
    pool_max: int = 4

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> "DbConfig":
        """
        Read the database settings once at startup.

        A `.env` file (current directory or dotenv_path) is loaded into the
        process environment first; real environment variables win.
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        missing = [name for name in REQUIRED_ENV if not environ.get(name)]
        if missing:
            raise ConfigError(f"missing database settings: {', '.join(missing)} (set them in .env or the environment)")

        try:
            port = int(environ["DB_PORT"])
            pool_max = int(environ.get("DB_POOL_MAX", "4"))
        except ValueError as exc:
            raise ConfigError(f"DB_PORT and DB_POOL_MAX must be integers: {exc}") from exc
        if pool_max < 1:
            raise ConfigError("DB_POOL_MAX must be at least 1")

        return cls(
            host=environ["DB_HOST"],
            port=port,
            dbname=environ["DB_NAME"],
            user=environ["DB_USER"],
            password=environ["DB_PASSWORD"],
            pool_max=pool_max,
        )

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.dbname}"
