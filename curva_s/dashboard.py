"""
Dashboard-ready output functions.

These are the primary entry points for a Streamlit front end or a thin HTTP
endpoint. Each function returns plain dicts and lists with 'YYYY-MM' month
keys, ready to serialise.
"""

import logging
from collections.abc import Mapping
from datetime import date

import pandas as pd

from .breakdown import build_role_breakdown, list_breakdown_months
from .filters import filter_rows, project_status_label
from .kpis import compute_kpis
from .loaders.utils import normalise_month
from .reconciliation import (
    build_user_project_breakdown,
    reconcile_monthly,
    reconcile_users,
    rows_for_month,
    summarise_reconciliation,
    summarise_user_reconciliation,
)
from .transforms import build_cumulative_curves, build_monthly_series

logger = logging.getLogger(__name__)


def _records(df: pd.DataFrame) -> list[dict]:
    if df.empty:
        return []
    return df.to_dict("records")


def get_curva_s_overview(
    rows,
    lider: str | None = None,
    nome_time: str | None = None,
    project_code: str | None = None,
    show_finalized: bool = False,
    show_paused: bool = True,
    today: date | None = None,
) -> dict:
    """Single entry point for the Curva S view.

    Returns
    -------
    {
        "monthly": [...],   # MonthlyAggregate records
        "curves": [...],    # CumulativePoint records
        "kpis": {...},
        "status": "...",    # status of the selected project, "Sem Status" otherwise
    }
    """
    filtered = filter_rows(
        rows,
        lider=lider,
        nome_time=nome_time,
        project_code=project_code,
        show_finalized=show_finalized,
        show_paused=show_paused,
    )
    monthly = build_monthly_series(filtered, today=today)
    curves = build_cumulative_curves(monthly)
    kpis = compute_kpis(curves, filtered)

    return {
        "monthly": _records(monthly),
        "curves": _records(curves),
        "kpis": kpis,
        "status": project_status_label(rows, project_code),
    }


def get_role_breakdown(cargo_rows, filter_month=None) -> dict:
    """Cargo -> person breakdown plus the months available for drill-down."""
    return {
        "months": list_breakdown_months(cargo_rows),
        "selectedMonth": normalise_month(filter_month),
        "cargos": build_role_breakdown(cargo_rows, filter_month=filter_month),
    }


def get_reconciliation_report(
    source_totals,
    distributed_totals,
    privileged: bool,
    only_divergent: bool = True,
) -> dict:
    """Monthly reconciliation report for privileged callers.

    Raises
    ------
    PermissionError if the caller is not privileged.
    """
    if not privileged:
        logger.warning("Reconciliation report requested by a non-privileged caller")
        raise PermissionError("Reconciliation report is restricted to privileged users")

    all_months = reconcile_monthly(source_totals, distributed_totals, only_divergent=False)
    records = [r for r in all_months if r["divergente"]] if only_divergent else all_months

    return {
        "records": records,
        "summary": summarise_reconciliation(all_months),
    }


def get_user_reconciliation_report(
    source_by_user,
    distributed_rows,
    month,
    privileged: bool,
    usuario: str | None = None,
    aliases=None,
) -> dict:
    """Per-person drill-down of one month of the reconciliation audit.

    Returns
    -------
    {
        "month": "YYYY-MM",
        "records": [...],    # reconcile_users() output
        "summary": {...},
        "usuario": ... | None,
        "projects": [...],   # project split of `usuario`, [] when none selected
    }

    Raises
    ------
    PermissionError if the caller is not privileged.
    """
    if not privileged:
        logger.warning("User reconciliation requested by a non-privileged caller")
        raise PermissionError("Reconciliation report is restricted to privileged users")

    source = rows_for_month(source_by_user, month, "source_by_user")
    distributed = rows_for_month(distributed_rows, month, "distributed_rows")
    records = reconcile_users(source, distributed, aliases=aliases)

    projects = []
    if usuario is not None and not isinstance(distributed, Mapping):
        projects = build_user_project_breakdown(distributed, usuario, aliases=aliases)

    return {
        "month": normalise_month(month),
        "records": records,
        "summary": summarise_user_reconciliation(records),
        "usuario": usuario,
        "projects": projects,
    }
