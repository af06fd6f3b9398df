from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from geocell_analyst.config import DbConfig

logger = logging.getLogger(__name__)

POSTGIS_SQL = "CREATE EXTENSION IF NOT EXISTS postgis;"


class Database:
    """
    Long-lived handle on a psycopg2 connection pool.

    Repositories borrow one connection per operation through connection();
    the block commits on success and rolls back on any exception.
    """

    def __init__(self, conn_pool: pool.AbstractConnectionPool):
        self._pool = conn_pool

    @classmethod
    def connect(cls, config: DbConfig) -> "Database":
        conn_pool = pool.ThreadedConnectionPool(
            minconn=1,
            maxconn=config.pool_max,
            host=config.host,
            port=config.port,
            dbname=config.dbname,
            user=config.user,
            password=config.password,
        )
        return cls(conn_pool)

    @classmethod
    def from_dsn(cls, dsn: str, maxconn: int = 2, **kwargs) -> "Database":
        return cls(pool.ThreadedConnectionPool(minconn=1, maxconn=maxconn, dsn=dsn, **kwargs))

    @contextmanager
    def connection(self) -> Iterator[Any]:
        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def cursor(self) -> Iterator[Any]:
        with self.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur

    def ensure_postgis(self) -> None:
        with self.cursor() as cur:
            exec_sql(cur, POSTGIS_SQL)

    def close(self) -> None:
        self._pool.closeall()
        logger.info("Postgres connection pool closed")


def exec_sql(cur, sql: str, params=None) -> None:
    cur.execute(sql, params or ())


def fetch_all(cur, sql: str, params=None) -> List[Dict[str, Any]]:
    cur.execute(sql, params or ())
    return list(cur.fetchall())
