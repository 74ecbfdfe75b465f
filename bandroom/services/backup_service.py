"""
Full backup to, and restore from, an .xlsx workbook with one sheet per table.

Backup reads every table concurrently. Restore walks the tables in foreign-key
dependency order and isolates failures per table: a bad sheet is reported and
rolled back without stopping the sheets after it.
"""

import asyncio
import io
import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from zipfile import BadZipFile

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import Boolean, DateTime, Integer, String, Text, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bandroom.database.models import (
    Capability,
    Session,
    SessionCommitment,
    SessionSong,
    Song,
    SongCapability,
    User,
    UserCapability,
)
from bandroom.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

BACKUP_TABLES = {
    "users": User,
    "songs": Song,
    "sessions": Session,
    "capabilities": Capability,
    "session_commitments": SessionCommitment,
    "user_capabilities": UserCapability,
    "session_songs": SessionSong,
    "song_capabilities": SongCapability,
}

# Parents before children
RESTORE_ORDER = [
    "users",
    "songs",
    "capabilities",
    "sessions",
    "user_capabilities",
    "session_commitments",
    "session_songs",
    "song_capabilities",
]


def backup_filename(today: Optional[date] = None) -> str:
    today = today or utcnow().date()
    return f"bandroom-backup-{today.isoformat()}.xlsx"


def _row_to_record(model, obj) -> Dict:
    record = {}
    for column in model.__table__.columns:
        value = getattr(obj, column.key)
        if isinstance(value, datetime):
            # Excel can't hold timezone-aware datetimes
            value = ensure_utc(value).isoformat()
        record[column.name] = value
    return record


async def _fetch_table(session_factory: async_sessionmaker, model) -> List[Dict]:
    async with session_factory() as session:
        result = await session.execute(select(model))
        return [_row_to_record(model, obj) for obj in result.scalars().all()]


async def export_workbook(session_factory: async_sessionmaker) -> bytes:
    """
    Dump every backed-up table into an .xlsx workbook.

    Each table is read on its own session, concurrently; any failed read fails
    the whole export.

    Returns:
        Workbook bytes
    """
    names = list(BACKUP_TABLES)
    tables = await asyncio.gather(
        *[_fetch_table(session_factory, BACKUP_TABLES[name]) for name in names]
    )

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, records in zip(names, tables):
            columns = [c.name for c in BACKUP_TABLES[name].__table__.columns]
            pd.DataFrame(records, columns=columns).to_excel(writer, sheet_name=name, index=False)

    logger.info(
        "Exported backup: %s",
        ", ".join(f"{name}={len(records)}" for name, records in zip(names, tables)),
    )
    return buffer.getvalue()


def read_workbook(data: bytes) -> Dict[str, pd.DataFrame]:
    """
    Parse workbook bytes into a sheet-name → DataFrame mapping.

    Raises:
        ValueError: If the bytes aren't a readable .xlsx workbook
    """
    if not data:
        raise ValueError("Uploaded file is empty")
    try:
        return pd.read_excel(io.BytesIO(data), sheet_name=None, engine="openpyxl", dtype=object)
    except (BadZipFile, InvalidFileException, KeyError, ValueError) as e:
        raise ValueError(f"Invalid workbook file: {e}") from e


def _coerce_value(column, value):
    """Convert a spreadsheet cell to the column's Python type."""
    if value is None:
        return None
    if isinstance(column.type, DateTime):
        if isinstance(value, pd.Timestamp):
            value = value.to_pydatetime()
        if not isinstance(value, datetime):
            value = datetime.fromisoformat(str(value).strip())
        return ensure_utc(value)
    if isinstance(column.type, Boolean):
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)
    if isinstance(column.type, Integer):
        return int(value)
    if isinstance(column.type, (String, Text)):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)
    return value


def _sheet_records(model, df: pd.DataFrame) -> List[Dict]:
    """
    Turn a sheet into insertable records, keeping only the table's columns.

    Raises:
        ValueError: If the sheet has no id column, a row has no id, or a cell can't be converted
    """
    if "id" not in df.columns:
        raise ValueError("Sheet is missing the id column")

    columns = {c.name: c for c in model.__table__.columns}
    df = df.astype(object).where(pd.notna(df), None)

    records = []
    for row in df.to_dict(orient="records"):
        record = {
            key: _coerce_value(columns[key], value)
            for key, value in row.items()
            if key in columns
        }
        if not record.get("id"):
            raise ValueError("Row is missing an id")
        records.append(record)
    return records


async def _validate_references(session: AsyncSession, model, records: List[Dict]):
    """
    Check that every foreign key in the records points at an existing row.

    Raises:
        ValueError: Naming the first missing references
    """
    for column in model.__table__.columns:
        for fk in column.foreign_keys:
            ids = {r[column.name] for r in records if r.get(column.name) is not None}
            if not ids:
                continue
            target = fk.column
            result = await session.execute(select(target).where(target.in_(ids)))
            missing = ids - set(result.scalars().all())
            if missing:
                sample = ", ".join(sorted(missing)[:5])
                raise ValueError(
                    f"{column.name} references {len(missing)} missing {target.table.name} row(s): {sample}"
                )


def _upsert_statement(dialect_name: str, table, column_names: List[str]):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"Restore is not supported on {dialect_name}")

    stmt = insert(table)
    update_columns = {name: stmt.excluded[name] for name in column_names if name != "id"}
    if not update_columns:
        return stmt.on_conflict_do_nothing(index_elements=[table.c.id])
    return stmt.on_conflict_do_update(index_elements=[table.c.id], set_=update_columns)


async def restore_workbook(session: AsyncSession, data: bytes) -> Dict[str, Dict]:
    """
    Upsert every sheet of a backup workbook by primary id.

    Tables are processed in RESTORE_ORDER. Each table commits or rolls back on
    its own, and gets one result entry:
      {"status": "success", "count": n}
      {"status": "error", "error": "..."}
      {"status": "skipped", "reason": "sheet not found" | "empty sheet"}

    Raises:
        ValueError: If the file isn't a readable workbook
    """
    sheets = read_workbook(data)
    dialect_name = session.bind.dialect.name
    results: Dict[str, Dict] = {}

    for name in RESTORE_ORDER:
        model = BACKUP_TABLES[name]
        df = sheets.get(name)
        if df is None:
            results[name] = {"status": "skipped", "reason": "sheet not found"}
            continue
        if df.empty:
            results[name] = {"status": "skipped", "reason": "empty sheet"}
            continue

        try:
            records = _sheet_records(model, df)
            await _validate_references(session, model, records)
            stmt = _upsert_statement(dialect_name, model.__table__, list(records[0].keys()))
            await session.execute(stmt, records)
            await session.commit()
            results[name] = {"status": "success", "count": len(records)}
            logger.info(f"Restored {len(records)} row(s) into {name}")
        except (SQLAlchemyError, ValueError, TypeError) as e:
            await session.rollback()
            message = str(getattr(e, "orig", None) or e)
            logger.error(f"Restore of {name} failed: {message}")
            results[name] = {"status": "error", "error": message}

    return results
