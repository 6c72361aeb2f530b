"""
Cost reconciliation audit: ledger-of-record totals vs. costs distributed to
projects, month by month and person by person.

Read-only. A divergence is the expected output of the audit, surfaced for
human follow-up; nothing here corrects the underlying data.
"""

import logging
from collections.abc import Mapping
from typing import Any

import pandas as pd

from .config import (
    RECONCILIATION_TOLERANCE,
    USER_STATUS_NO_SOURCE,
    USER_STATUS_OK,
    USER_STATUS_UNALLOCATED,
)
from .loaders.utils import as_records, get_row_month, normalise_amount, normalise_month

logger = logging.getLogger(__name__)

_SOURCE_FIELDS = ("total_fonte", "total")
_DISTRIBUTED_FIELDS = ("total_dist", "total")

# Optional direct/indirect split carried next to the totals
_SOURCE_SPLIT = ("total_direto_fonte", "total_indireto_fonte")
_DISTRIBUTED_SPLIT = ("total_direto_dist", "total_indireto_dist")

# Per-user distributed rows: cost columns of the cost-by-project view
_USER_DIRECT_FIELDS = ("direto_dist", "custo_direto")
_USER_INDIRECT_FIELDS = ("indireto_dist", "custo_indireto")


def _first_present(row: Mapping, fields: tuple[str, ...]) -> Any:
    for field in fields:
        if field in row:
            return row[field]
    return None


def _pairs(totals, name: str, value_fields: tuple[str, ...], key_getter) -> list[tuple[Any, Any]]:
    """(raw key, raw amount) pairs from a mapping or a sequence of records."""
    if isinstance(totals, Mapping):
        return list(totals.items())
    return [
        (key_getter(row), _first_present(row, value_fields))
        for row in as_records(totals, name)
    ]


def monthly_totals(totals, name: str = "totals", value_fields: tuple[str, ...] = ("total",)) -> dict[str, float]:
    """Sum raw totals per canonical month.

    `totals` is either a mapping of raw month -> raw amount, or a sequence of
    records carrying a month field and one of `value_fields`. Entries whose
    month cannot be parsed are skipped.
    """
    result: dict[str, float] = {}
    dropped = 0
    for raw_month, raw_amount in _pairs(totals, name, value_fields, get_row_month):
        month = normalise_month(raw_month)
        if month is None:
            dropped += 1
            continue
        result[month] = result.get(month, 0.0) + normalise_amount(raw_amount)

    if dropped:
        logger.warning("Skipped %d %s entries with an unparseable month", dropped, name)
    return result


def _split_totals(totals, name: str, fields: tuple[str, ...]) -> dict[str, dict[str, float]] | None:
    """Per-field monthly totals for a split present in record inputs, else None."""
    if isinstance(totals, Mapping):
        return None
    records = as_records(totals, name)
    if not any(field in row for row in records for field in fields):
        return None
    return {field: monthly_totals(records, name, (field,)) for field in fields}


def rows_for_month(rows, month, name: str = "rows"):
    """Keep the rows of one month.

    Mappings pass through unchanged (already scoped by the caller), as do
    records without a month column. Returns rows unchanged when month is None.
    """
    if month is None or isinstance(rows, Mapping):
        return rows
    target = normalise_month(month)
    kept = []
    for row in as_records(rows, name):
        raw = get_row_month(row)
        if raw is None or normalise_month(raw) == target:
            kept.append(row)
    return kept


def reconcile_monthly(
    source_totals,
    distributed_totals,
    tolerance: float = RECONCILIATION_TOLERANCE,
    only_divergent: bool = True,
) -> list[dict]:
    """Compare ledger totals with distributed totals per month.

    Parameters
    ----------
    source_totals : Ledger-of-record total cost per month.
    distributed_totals : Sum of costs distributed to projects per month.
    tolerance : A month diverges when abs(diferenca) > tolerance (strict).
    only_divergent : Return only divergent months (the public report).

    Returns
    -------
    List of dicts ordered by month:
        mes, total_fonte, total_dist, diferenca, divergente
    plus total_direto_fonte / total_indireto_fonte and total_direto_dist /
    total_indireto_dist when the record inputs carry that split. A month
    present on one side only counts as 0 on the other.
    """
    fonte = monthly_totals(source_totals, "source_totals", _SOURCE_FIELDS)
    dist = monthly_totals(distributed_totals, "distributed_totals", _DISTRIBUTED_FIELDS)

    splits = {}
    for totals, name, fields in (
        (source_totals, "source_totals", _SOURCE_SPLIT),
        (distributed_totals, "distributed_totals", _DISTRIBUTED_SPLIT),
    ):
        split = _split_totals(totals, name, fields)
        if split is not None:
            splits.update(split)

    records = []
    for month in sorted(fonte.keys() | dist.keys()):
        total_fonte = fonte.get(month, 0.0)
        total_dist = dist.get(month, 0.0)
        diferenca = total_fonte - total_dist
        divergente = abs(diferenca) > tolerance
        if only_divergent and not divergente:
            continue
        record = {
            "mes": month,
            "total_fonte": total_fonte,
            "total_dist": total_dist,
            "diferenca": diferenca,
            "divergente": divergente,
        }
        for field, by_month in splits.items():
            record[field] = by_month.get(month, 0.0)
        records.append(record)

    logger.info(
        "Reconciled %d months, %d returned",
        len(fonte.keys() | dist.keys()), len(records),
    )
    return records


def summarise_reconciliation(
    records: list[dict],
    tolerance: float = RECONCILIATION_TOLERANCE,
) -> dict:
    """Summary cards for a monthly reconciliation.

    Returns
    -------
    {
        "totalMonths": ...,
        "totalDivergentMonths": ...,
        "sumAbsoluteDifference": ...,   # over divergent months
        "maxAbsoluteDifference": ...,   # 0.0 when none diverge
    }
    """
    divergent = [abs(r["diferenca"]) for r in records if abs(r["diferenca"]) > tolerance]
    return {
        "totalMonths": len(records),
        "totalDivergentMonths": len(divergent),
        "sumAbsoluteDifference": float(sum(divergent)),
        "maxAbsoluteDifference": float(max(divergent)) if divergent else 0.0,
    }


def _user_key(name: Any, aliases: dict[str, str]) -> str:
    key = str(name or "").strip().lower()
    return aliases.get(key, key)


def reconcile_users(
    source_by_user,
    distributed_by_user,
    aliases: Mapping[str, str] | None = None,
) -> list[dict]:
    """Compare, for one month, each person's ledger cost with what was distributed.

    Parameters
    ----------
    source_by_user : Mapping usuario -> amount, or records with 'usuario' and
                     'total_fonte_usuario' / 'total_fonte' / 'total'.
    distributed_by_user : Mapping usuario -> amount, or per-project records
                          with 'usuario', 'total_dist' / 'total' (or
                          'custo_direto' + 'custo_indireto') and optionally
                          'project_code'.
    aliases : Spreadsheet name -> canonical name, matched case-insensitively.

    Returns
    -------
    List of dicts sorted by descending abs(diferenca):
        usuario, total_fonte, direto_dist, indireto_dist, total_dist,
        diferenca, qtd_projetos, status
    status is 'nao_alocado' (no distributed cost), 'sem_fonte' (no ledger
    entry) or 'ok'.
    """
    canonical = {
        str(k).strip().lower(): str(v).strip()
        for k, v in (aliases or {}).items()
    }
    alias_keys = {k: v.lower() for k, v in canonical.items()}
    display: dict[str, str] = {}

    def key_of(name: Any) -> str:
        raw = str(name).strip() if name is not None else ""
        key = _user_key(raw, alias_keys)
        display.setdefault(key, canonical.get(raw.lower(), raw))
        return key

    fonte: dict[str, float] = {}
    source_fields = ("total_fonte_usuario", "total_fonte", "total")
    for name, amount in _pairs(source_by_user, "source_by_user", source_fields, lambda r: r.get("usuario")):
        key = key_of(name)
        if key:
            fonte[key] = fonte.get(key, 0.0) + abs(normalise_amount(amount))

    dist: dict[str, float] = {}
    direto: dict[str, float] = {}
    indireto: dict[str, float] = {}
    projects: dict[str, set] = {}
    if isinstance(distributed_by_user, Mapping):
        dist_rows = [{"usuario": k, "total": v} for k, v in distributed_by_user.items()]
    else:
        dist_rows = as_records(distributed_by_user, "distributed_by_user")
    for row in dist_rows:
        key = key_of(row.get("usuario"))
        if not key:
            continue
        row_direto = abs(normalise_amount(_first_present(row, _USER_DIRECT_FIELDS)))
        row_indireto = abs(normalise_amount(_first_present(row, _USER_INDIRECT_FIELDS)))
        if any(field in row for field in _DISTRIBUTED_FIELDS):
            amount = normalise_amount(_first_present(row, _DISTRIBUTED_FIELDS))
        else:
            amount = row_direto + row_indireto
        dist[key] = dist.get(key, 0.0) + amount
        direto[key] = direto.get(key, 0.0) + row_direto
        indireto[key] = indireto.get(key, 0.0) + row_indireto
        if row.get("project_code") is not None:
            projects.setdefault(key, set()).add(row["project_code"])

    records = []
    for key in fonte.keys() | dist.keys():
        if key not in dist:
            status = USER_STATUS_UNALLOCATED
        elif key not in fonte:
            status = USER_STATUS_NO_SOURCE
        else:
            status = USER_STATUS_OK
        total_fonte = fonte.get(key)
        total_dist = dist.get(key)
        records.append({
            "usuario": display.get(key, key),
            "total_fonte": total_fonte,
            "direto_dist": direto.get(key),
            "indireto_dist": indireto.get(key),
            "total_dist": total_dist,
            "diferenca": (total_fonte or 0.0) - (total_dist or 0.0),
            "qtd_projetos": len(projects.get(key, ())),
            "status": status,
        })

    records.sort(key=lambda r: (-abs(r["diferenca"]), r["usuario"]))
    logger.info("Reconciled %d users", len(records))
    return records


def summarise_user_reconciliation(
    records: list[dict],
    tolerance: float = RECONCILIATION_TOLERANCE,
) -> dict:
    """Summary cards for a per-user reconciliation."""
    unallocated = [r for r in records if r["status"] == USER_STATUS_UNALLOCATED]
    return {
        "totalUsuarios": len(records),
        "naoAlocados": len(unallocated),
        "custoNaoAlocado": float(sum(abs(r["diferenca"]) for r in unallocated)),
        "divergentes": sum(1 for r in records if abs(r["diferenca"]) > tolerance),
    }


def build_user_project_breakdown(
    distributed_rows,
    usuario: str,
    aliases: Mapping[str, str] | None = None,
) -> list[dict]:
    """How one person's distributed cost splits over projects.

    Parameters
    ----------
    distributed_rows : Per (usuario, project_code) rows of one month with
                       horas, horas_totais_mes, custo_direto, custo_indireto.
    usuario : Person to drill into; spreadsheet aliases resolve to it.
    aliases : Spreadsheet name -> canonical name, matched case-insensitively.

    Returns
    -------
    List of dicts sorted by descending custoTotal:
        project_code, projeto, horas, horasTotais, peso, custoDireto,
        custoIndireto, custoTotal
    peso is horas / horasTotais, None when the month total is unknown.
    """
    alias_keys = {
        str(k).strip().lower(): str(v).strip().lower()
        for k, v in (aliases or {}).items()
    }
    target = _user_key(usuario, alias_keys)

    by_project: dict[Any, dict] = {}
    for row in as_records(distributed_rows, "distributed_rows"):
        if not target or _user_key(row.get("usuario"), alias_keys) != target:
            continue
        code = row.get("project_code")
        entry = by_project.setdefault(code, {
            "project_code": code,
            "projeto": row.get("project_name") or row.get("projeto"),
            "horas": 0.0,
            "horasTotais": 0.0,
            "custoDireto": 0.0,
            "custoIndireto": 0.0,
        })
        entry["horas"] += abs(normalise_amount(row.get("horas")))
        # repeated on every row of the month
        entry["horasTotais"] = max(entry["horasTotais"], abs(normalise_amount(row.get("horas_totais_mes"))))
        entry["custoDireto"] += abs(normalise_amount(row.get("custo_direto")))
        entry["custoIndireto"] += abs(normalise_amount(row.get("custo_indireto")))

    projects = []
    for entry in by_project.values():
        entry["peso"] = entry["horas"] / entry["horasTotais"] if entry["horasTotais"] > 0 else None
        entry["custoTotal"] = entry["custoDireto"] + entry["custoIndireto"]
        projects.append(entry)

    projects.sort(key=lambda p: -p["custoTotal"])
    logger.info("Built project breakdown for %s with %d projects", usuario, len(projects))
    return projects


def reconciliation_frame(records: list[dict]) -> pd.DataFrame:
    """Records as a DataFrame for tabular display and export."""
    if not records:
        return pd.DataFrame(columns=["mes", "total_fonte", "total_dist", "diferenca", "divergente"])
    return pd.DataFrame(records)
