from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from ess_sync.services.sync_errors import DestinationStoreError, RecordWriteError
from ess_sync.services.upsert_mapper import (
    DESTINATION_SCHEMA,
    DESTINATION_TABLE,
    NATURAL_KEY,
    MappedRow,
    build_upsert_statement,
)

# Connectivity problems abort the run; anything else is scoped to one row.
_SYSTEMIC_PG_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


class EssWriter:
    """Writes into the run-wide destination transaction."""

    def __init__(self, conn: psycopg.Connection, logger: logging.Logger) -> None:
        self._conn = conn
        self._logger = logger

    def upsert_destination_row(self, row: MappedRow) -> None:
        stmt = build_upsert_statement(row.mapping)
        try:
            # Savepoint: a rejected row must not abort the outer transaction
            with self._conn.transaction():
                self._conn.execute(stmt, row.params())
        except _SYSTEMIC_PG_ERRORS as exc:
            raise DestinationStoreError(f"Lost connection to ESS database: {exc}") from exc
        except psycopg.Error as exc:
            raise RecordWriteError(
                str(exc).strip() or type(exc).__name__,
                row.erp_code,
                detail={"pgError": type(exc).__name__, "sqlstate": exc.sqlstate},
            ) from exc


class EssStore:
    def __init__(self, conninfo: str, logger: logging.Logger | None = None) -> None:
        self._conninfo = conninfo
        self._logger = logger or logging.getLogger(__name__)

    def _connect(self) -> psycopg.Connection:
        try:
            return psycopg.connect(self._conninfo, connect_timeout=10)
        except psycopg.Error as exc:
            raise DestinationStoreError(f"Unable to connect to ESS database: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[EssWriter]:
        """Hold one transaction open for the whole block.

        Commits when the block exits normally, rolls back everything when it
        raises.
        """
        conn = self._connect()
        try:
            with conn.transaction():
                yield EssWriter(conn, self._logger)
        except psycopg.Error as exc:
            raise DestinationStoreError(f"ESS transaction failed: {exc}") from exc
        finally:
            conn.close()

    def export_rows(self) -> Iterator[dict[str, Any]]:
        conn = self._connect()
        try:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    sql.SQL("SELECT * FROM {}.{} ORDER BY {}").format(
                        sql.Identifier(DESTINATION_SCHEMA),
                        sql.Identifier(DESTINATION_TABLE),
                        sql.Identifier(NATURAL_KEY),
                    )
                )
                yield from cur
        except psycopg.Error as exc:
            raise DestinationStoreError(f"Unable to read ESS employees: {exc}") from exc
        finally:
            conn.close()
