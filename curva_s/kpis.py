"""
KPI computation functions — pure functions with no side effects.

Headline Curva S metrics are read from the last cumulative point, which is
the position "as of today" (the last closed month).
"""

import logging

import pandas as pd

from .config import CONTRACT_VALUE_FIELD, MIN_ACTIVE_MONTH_COST, PROJECT_FIELD
from .loaders.utils import as_records, normalise_amount

logger = logging.getLogger(__name__)


def calc_margin_pct(margem55: float, custo: float) -> float:
    """Return (margem55 - custo) / margem55 as a percentage.

    0.0 when margem55 is not positive, so no NaN or infinity reaches a card.
    """
    if margem55 <= 0:
        return 0.0
    return (margem55 - custo) / margem55 * 100


def average_active_month_cost(
    monthly: pd.DataFrame,
    threshold: float = MIN_ACTIVE_MONTH_COST,
) -> tuple[float, int]:
    """Return (mean monthly cost, months counted).

    Months whose custoTotal is below `threshold` are idle/administrative and
    excluded from the mean. (0.0, 0) when no month qualifies.
    """
    if monthly.empty or "custoTotal" not in monthly.columns:
        return 0.0, 0

    costs = pd.to_numeric(monthly["custoTotal"], errors="coerce").fillna(0.0)
    active = costs[costs >= threshold]
    if active.empty:
        return 0.0, 0
    return float(active.mean()), int(len(active))


def calc_contract_value(raw_rows) -> float:
    """Sum of contract values with each project counted once.

    receita_bruta_total repeats on every monthly row of a project. The
    largest absolute value seen for a project is taken, so a single
    unparseable cell does not zero out the project.
    """
    by_project: dict = {}
    for row in as_records(raw_rows, "raw_rows"):
        code = row.get(PROJECT_FIELD)
        if code is None or code == "":
            continue
        value = abs(normalise_amount(row.get(CONTRACT_VALUE_FIELD)))
        by_project[code] = max(by_project.get(code, 0.0), value)
    return float(sum(by_project.values()))


def _empty_kpis() -> dict:
    return {
        "receitaBruta": 0.0,
        "margem55": 0.0,
        "custoTotal": 0.0,
        "margemOperacional": 0.0,
        "margemPercentual": 0.0,
        "horasTotal": 0.0,
        "custoMedio": 0.0,
        "mesesAtivos": 0,
        "valorContrato": 0.0,
        "faltaReceber": 0.0,
    }


def compute_kpis(curves, raw_rows) -> dict:
    """Return the KPI card values for the current filter selection.

    Parameters
    ----------
    curves : Output of build_cumulative_curves().
    raw_rows : The filtered raw rows the curves were built from (for the
               contract value, which is not a monthly field).

    Returns
    -------
    Dict with structure:
    {
        "receitaBruta": ..., "margem55": ..., "custoTotal": ...,
        "margemOperacional": ..., "margemPercentual": ...,
        "horasTotal": ..., "custoMedio": ..., "mesesAtivos": ...,
        "valorContrato": ..., "faltaReceber": ...,
    }
    """
    if not isinstance(curves, pd.DataFrame):
        curves = pd.DataFrame(as_records(curves, "curves"))

    kpis = _empty_kpis()
    kpis["valorContrato"] = calc_contract_value(raw_rows)

    if curves.empty:
        kpis["faltaReceber"] = kpis["valorContrato"]
        return kpis

    last = curves.iloc[-1]
    receita_bruta = float(last.get("receitaBrutaAcumulado", 0.0) or 0.0)
    margem55 = float(last.get("margem55Acumulado", 0.0) or 0.0)
    custo_total = float(last.get("custoTotalAcumulado", 0.0) or 0.0)

    custo_medio, meses_ativos = average_active_month_cost(curves)

    kpis.update({
        "receitaBruta": receita_bruta,
        "margem55": margem55,
        "custoTotal": custo_total,
        "margemOperacional": float(last.get("margemOperacionalAcumulado", 0.0) or 0.0),
        "margemPercentual": calc_margin_pct(margem55, custo_total),
        "horasTotal": float(curves["horas"].sum()) if "horas" in curves.columns else 0.0,
        "custoMedio": custo_medio,
        "mesesAtivos": meses_ativos,
        # Negative when realised revenue exceeds the nominal contract
        "faltaReceber": kpis["valorContrato"] - receita_bruta,
    })

    logger.info(
        "Computed KPIs: margem %.2f%%, custo medio %.2f over %d months",
        kpis["margemPercentual"], custo_medio, meses_ativos,
    )
    return kpis
