"""
Loaders for warehouse extracts feeding the Curva S engine.

JSON extracts: the API payload saved to disk, either a bare list of rows or
the {"success": ..., "count": ..., "data": [...]} envelope.

Excel extracts: one sheet of raw rows, header somewhere in the first rows,
dates left as native cells or text exactly as the BI tool exported them.

Loaders do not normalise values; the transforms do.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import openpyxl

from ..config import NO_CARGO_LABEL
from .utils import find_header_row, to_snake_case

logger = logging.getLogger(__name__)

# Columns that identify the header row of a Curva S extract
_CURVA_S_SIGNATURE = {
    "project_code",
    "mes",
    "month",
    "custo_total_mes",
    "receita_mes",
    "horas_mes",
}


def load_rows_json(path: str | Path) -> list[dict]:
    """Load raw rows from a JSON extract.

    Returns
    -------
    List of row dicts, values untouched.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
    except Exception:
        logger.exception("Failed to read JSON extract: %s", path)
        raise

    if isinstance(payload, Mapping):
        payload = payload.get("data", [])

    if not isinstance(payload, list):
        raise ValueError(f"Unexpected JSON payload in {path}: {type(payload).__name__}")

    rows = [row for row in payload if isinstance(row, Mapping)]
    skipped = len(payload) - len(rows)
    if skipped:
        logger.warning("Skipped %d non-object entries in %s", skipped, path)

    logger.info("Loaded %d rows from %s", len(rows), path)
    return rows


def load_rows_excel(
    path: str | Path,
    sheet_name: str | None = None,
    signature: set[str] | None = None,
) -> list[dict]:
    """Load raw rows from an Excel extract.

    Assumptions
    -----------
    - The header row is within the first 20 rows and carries at least two
      known column names (compared in snake_case).
    - Every row below the header is a data row; fully empty rows are skipped.
    - Cell values are kept as openpyxl returns them (datetime, str, number).

    Returns
    -------
    List of row dicts keyed by the snake_case header.
    """
    try:
        wb = openpyxl.load_workbook(path, data_only=True)
    except Exception:
        logger.exception("Failed to open Excel extract: %s", path)
        raise

    try:
        if sheet_name is None or sheet_name not in wb.sheetnames:
            if sheet_name is not None:
                logger.warning("Sheet '%s' not found, using '%s'", sheet_name, wb.sheetnames[0])
            sheet_name = wb.sheetnames[0]
        ws = wb[sheet_name]

        header_row = find_header_row(ws, signature or _CURVA_S_SIGNATURE)
        if header_row is None:
            logger.warning("No header row found in %s [%s]", path, sheet_name)
            return []

        headers = [
            to_snake_case(cell.value) if cell.value is not None else None
            for cell in ws[header_row]
        ]

        rows = []
        for values in ws.iter_rows(min_row=header_row + 1, values_only=True):
            if all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            rows.append({
                header: value
                for header, value in zip(headers, values)
                if header
            })
    finally:
        wb.close()

    logger.info("Loaded %d rows from %s [%s]", len(rows), path, sheet_name)
    return rows


def _normalise_name(name: Any) -> str:
    return str(name or "").strip().lower()


def attach_cargo(
    cost_rows: Iterable[Mapping],
    users: Iterable[Mapping],
) -> list[dict]:
    """Enrich per-user cost rows with the user's cargo (job role).

    Parameters
    ----------
    cost_rows : Rows with at least a 'usuario' field.
    users : User directory entries with 'name' and either a 'cargo' string or
            a nested {'cargo': {'name': ...}} position.

    Returns
    -------
    New row dicts with a 'cargo' field; unknown users get NO_CARGO_LABEL.
    """
    cargo_by_name: dict[str, str] = {}
    for user in users:
        key = _normalise_name(user.get("name"))
        if not key:
            continue
        cargo = user.get("cargo")
        if isinstance(cargo, Mapping):
            cargo = cargo.get("name")
        cargo_by_name[key] = cargo or NO_CARGO_LABEL

    enriched = []
    unmatched = set()
    for row in cost_rows:
        key = _normalise_name(row.get("usuario"))
        cargo = cargo_by_name.get(key)
        if cargo is None:
            unmatched.add(key)
            cargo = NO_CARGO_LABEL
        enriched.append({**row, "cargo": cargo})

    if unmatched:
        logger.info("%d users without a cargo in the directory", len(unmatched))
    return enriched
