"""
Read-only access to the EDM (source) PostgreSQL database.

Extraction is expressed as an ``ExtractionPredicate``; the predicate is turned
into SQL with ``psycopg.sql`` so that column names are always quoted
identifiers and filter values are always bound parameters.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Union

import psycopg
from psycopg import sql
from psycopg.rows import class_row

from ess_sync.models.run_config import CustomFilter, RunConfiguration
from ess_sync.models.source_records import (
    EMPLOYEE_COLUMNS,
    EMPLOYMENT_COLUMNS,
    SourceEmployeeRecord,
    SourceEmploymentRecord,
)
from ess_sync.services.sync_errors import SourceStoreError

SOURCE_SCHEMA = "public"

SourceRecord = Union[SourceEmployeeRecord, SourceEmploymentRecord]


class EntityKind(str, Enum):
    EMPLOYEE = "employee"
    EMPLOYMENT = "employment"


@dataclass(frozen=True)
class ExtractionPredicate:
    entity: EntityKind
    exclude_deleted: bool = True
    filters: tuple[CustomFilter, ...] = ()


def build_predicate(entity: EntityKind, config: RunConfiguration) -> ExtractionPredicate:
    columns = EMPLOYEE_COLUMNS if entity is EntityKind.EMPLOYEE else EMPLOYMENT_COLUMNS
    return ExtractionPredicate(
        entity=entity,
        exclude_deleted=config.exclude_deleted,
        filters=tuple(config.filters_for(columns)),
    )


# -------------------------
# SQL composition
# -------------------------

_ENTITY_SQL = {
    # entity: (table, alias, record class, columns)
    EntityKind.EMPLOYEE: ("employee", "e", SourceEmployeeRecord, EMPLOYEE_COLUMNS),
    EntityKind.EMPLOYMENT: ("employee_employment", "emp", SourceEmploymentRecord, EMPLOYMENT_COLUMNS),
}


def _filter_clause(alias: str, f: CustomFilter) -> tuple[sql.Composable, list[Any]]:
    column = sql.Identifier(alias, f.column)
    if f.operator == "in":
        return sql.SQL("{} = ANY(%s)").format(column), [list(f.value)]
    if f.value is None:
        op = "IS NULL" if f.operator == "eq" else "IS NOT NULL"
        return sql.SQL("{} " + op).format(column), []
    op = "=" if f.operator == "eq" else "<>"
    return sql.SQL("{} " + op + " %s").format(column), [f.value]


def build_where(predicate: ExtractionPredicate) -> tuple[list[sql.Composable], list[Any]]:
    """Return the WHERE clauses and their bound parameters for a predicate."""
    _, alias, _, _ = _ENTITY_SQL[predicate.entity]
    clauses: list[sql.Composable] = []
    params: list[Any] = []

    if predicate.exclude_deleted:
        clauses.append(sql.SQL("{} IS NULL").format(sql.Identifier(alias, "deleted_at")))
        if predicate.entity is EntityKind.EMPLOYMENT:
            clauses.append(sql.SQL("{} IS NULL").format(sql.Identifier("e", "deleted_at")))

    for f in predicate.filters:
        clause, values = _filter_clause(alias, f)
        clauses.append(clause)
        params.extend(values)

    return clauses, params


def _from_clause(entity: EntityKind) -> sql.Composable:
    table, alias, _, _ = _ENTITY_SQL[entity]
    source = sql.SQL("{}.{} AS {}").format(
        sql.Identifier(SOURCE_SCHEMA), sql.Identifier(table), sql.Identifier(alias)
    )
    if entity is EntityKind.EMPLOYMENT:
        source = source + sql.SQL(" LEFT JOIN {}.{} AS {} ON {} = {}").format(
            sql.Identifier(SOURCE_SCHEMA),
            sql.Identifier("employee"),
            sql.Identifier("e"),
            sql.Identifier("e", "id"),
            sql.Identifier(alias, "employee_id"),
        )
    return source


def _where_sql(clauses: list[sql.Composable]) -> sql.Composable:
    if not clauses:
        return sql.SQL("")
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses)


# -------------------------
# Store
# -------------------------

class EdmSession:
    """One open connection to the source database."""

    def __init__(self, conn: psycopg.Connection, logger: logging.Logger) -> None:
        self._conn = conn
        self._logger = logger

    def count_matching(self, predicate: ExtractionPredicate) -> int:
        clauses, params = build_where(predicate)
        stmt = sql.SQL("SELECT count(*) FROM {}{}").format(
            _from_clause(predicate.entity),
            _where_sql(clauses),
        )
        try:
            with self._conn.cursor() as cur:
                cur.execute(stmt, params)
                row = cur.fetchone()
        except psycopg.Error as exc:
            raise SourceStoreError(f"Unable to count {predicate.entity.value} records: {exc}") from exc
        return int(row[0]) if row else 0

    def fetch_page(self, predicate: ExtractionPredicate, offset: int, limit: int) -> list[SourceRecord]:
        _, alias, record_cls, columns = _ENTITY_SQL[predicate.entity]
        clauses, params = build_where(predicate)
        stmt = sql.SQL("SELECT {} FROM {}{} ORDER BY {} LIMIT %s OFFSET %s").format(
            sql.SQL(", ").join(sql.Identifier(alias, c) for c in columns),
            _from_clause(predicate.entity),
            _where_sql(clauses),
            sql.Identifier(alias, "id"),
        )
        try:
            with self._conn.cursor(row_factory=class_row(record_cls)) as cur:
                cur.execute(stmt, [*params, limit, offset])
                return cur.fetchall()
        except psycopg.Error as exc:
            raise SourceStoreError(
                f"Unable to fetch {predicate.entity.value} records at offset {offset}: {exc}"
            ) from exc


class EdmStore:
    def __init__(self, conninfo: str, logger: logging.Logger | None = None) -> None:
        self._conninfo = conninfo
        self._logger = logger or logging.getLogger(__name__)

    @contextmanager
    def session(self) -> Iterator[EdmSession]:
        try:
            conn = psycopg.connect(self._conninfo, autocommit=True, connect_timeout=10)
        except psycopg.Error as exc:
            raise SourceStoreError(f"Unable to connect to EDM database: {exc}") from exc
        try:
            yield EdmSession(conn, self._logger)
        finally:
            conn.close()
