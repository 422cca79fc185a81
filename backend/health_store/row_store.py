from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any, Protocol

from .database import TABLE_SPECS, SQLiteHealthDB, TableSpec
from .errors import PersistenceError, RecordNotFound
from .time_utils import to_iso, utc_now


class RowStore(Protocol):
    def select(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]: ...

    def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any]: ...

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...

    def upsert(
        self,
        table: str,
        record: dict[str, Any],
        conflict_key: str,
        *,
        ignore_duplicates: bool = False,
    ) -> dict[str, Any]: ...

    def update(self, table: str, fields: dict[str, Any], filters: dict[str, Any]) -> list[dict[str, Any]]: ...


def _json_dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


class SQLiteRowStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def _spec(self, table: str) -> TableSpec:
        spec = TABLE_SPECS.get(table)
        if spec is None:
            raise PersistenceError(f"Unknown table: {table}", code="unknown_table")
        return spec

    @staticmethod
    def _check_columns(spec: TableSpec, names: list[str]) -> None:
        unknown = sorted(set(names) - set(spec.columns))
        if unknown:
            raise PersistenceError(
                f"Unknown columns for {spec.name}: {', '.join(unknown)}",
                code="unknown_column",
            )

    @staticmethod
    def _encode(spec: TableSpec, record: dict[str, Any]) -> dict[str, Any]:
        encoded: dict[str, Any] = {}
        for key, value in record.items():
            if key in spec.json_columns and value is not None:
                encoded[key] = _json_dumps(value)
            else:
                encoded[key] = value
        return encoded

    @staticmethod
    def _decode(spec: TableSpec, row: sqlite3.Row) -> dict[str, Any]:
        decoded = dict(row)
        for key in spec.json_columns:
            raw = decoded.get(key)
            if isinstance(raw, str):
                try:
                    decoded[key] = json.loads(raw)
                except json.JSONDecodeError:
                    decoded[key] = [raw]
        return decoded

    def _where(self, spec: TableSpec, filters: dict[str, Any]) -> tuple[str, list[Any]]:
        if not filters:
            return "", []
        self._check_columns(spec, list(filters))
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in filters.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)
        return " WHERE " + " AND ".join(clauses), params

    def _prepare_new_row(self, spec: TableSpec, record: dict[str, Any]) -> dict[str, Any]:
        now = to_iso(utc_now())
        row = dict(record)
        if spec.generated_id and not row.get("id"):
            row["id"] = uuid.uuid4().hex
        row.setdefault("created_at", now)
        if spec.tracks_updates:
            row["updated_at"] = now
        self._check_columns(spec, list(row))
        return row

    def _run(self, sql: str, params: list[Any]) -> list[sqlite3.Row]:
        try:
            with self._db.connection() as conn:
                return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.IntegrityError as exc:
            raise PersistenceError(str(exc), code="constraint_violation") from exc
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc), code="sqlite_error") from exc

    def select(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        spec = self._spec(table)
        where, params = self._where(spec, filters)
        rows = self._run(f"SELECT * FROM {spec.name}{where} ORDER BY rowid", params)
        return [self._decode(spec, row) for row in rows]

    def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any]:
        rows = self.select(table, filters)
        if not rows:
            raise RecordNotFound(f"No {table} row matches {sorted(filters)}.")
        if len(rows) > 1:
            raise PersistenceError(f"Multiple {table} rows match {sorted(filters)}.", code="multiple_rows")
        return rows[0]

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        spec = self._spec(table)
        row = self._encode(spec, self._prepare_new_row(spec, record))
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        rows = self._run(
            f"INSERT INTO {spec.name} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
            [row[column] for column in columns],
        )
        return self._decode(spec, rows[0])

    def upsert(
        self,
        table: str,
        record: dict[str, Any],
        conflict_key: str,
        *,
        ignore_duplicates: bool = False,
    ) -> dict[str, Any]:
        spec = self._spec(table)
        self._check_columns(spec, [conflict_key])
        if record.get(conflict_key) is None:
            raise PersistenceError(f"Upsert into {table} requires {conflict_key}.", code="missing_conflict_key")

        row = self._encode(spec, self._prepare_new_row(spec, record))
        columns = list(row)
        # Only the supplied columns change on conflict; everything else keeps its stored value.
        update_columns = [
            column for column in record if column not in {conflict_key, "id", "created_at", "updated_at"}
        ]
        if spec.tracks_updates:
            update_columns.append("updated_at")
        if update_columns and not ignore_duplicates:
            assignments = ", ".join(f"{column} = excluded.{column}" for column in update_columns)
            conflict_clause = f"ON CONFLICT({conflict_key}) DO UPDATE SET {assignments}"
        else:
            conflict_clause = f"ON CONFLICT({conflict_key}) DO NOTHING"
        placeholders = ", ".join("?" for _ in columns)
        rows = self._run(
            f"""
            INSERT INTO {spec.name} ({', '.join(columns)})
            VALUES ({placeholders})
            {conflict_clause}
            RETURNING *
            """,
            [row[column] for column in columns],
        )
        if rows:
            return self._decode(spec, rows[0])
        return self.select_one(table, {conflict_key: record[conflict_key]})

    def update(self, table: str, fields: dict[str, Any], filters: dict[str, Any]) -> list[dict[str, Any]]:
        spec = self._spec(table)
        if not filters:
            raise PersistenceError(f"Refusing unfiltered update of {table}.", code="missing_filter")
        values = dict(fields)
        if spec.tracks_updates:
            values["updated_at"] = to_iso(utc_now())
        if not values:
            return self.select(table, filters)
        self._check_columns(spec, list(values))
        encoded = self._encode(spec, values)
        assignments = ", ".join(f"{column} = ?" for column in encoded)
        where, params = self._where(spec, filters)
        rows = self._run(
            f"UPDATE {spec.name} SET {assignments}{where} RETURNING *",
            [*encoded.values(), *params],
        )
        return [self._decode(spec, row) for row in rows]
