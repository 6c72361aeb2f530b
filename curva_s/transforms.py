"""
Data transforms: normalise raw per-project monthly rows into the gap-free
monthly series and the cumulative S-curves.
"""

import logging
import math
from collections.abc import Mapping
from datetime import date
from itertools import accumulate

import pandas as pd

from .config import CUMULATIVE_COLUMNS, MONTHLY_COLUMNS, MONTHLY_FIELDS
from .loaders.utils import as_records, get_row_month, normalise_amount, normalise_month

logger = logging.getLogger(__name__)


def month_key(day: date) -> str:
    """Canonical 'YYYY-MM' key of a calendar date."""
    return f"{day.year:04d}-{day.month:02d}"


def previous_month_key(day: date) -> str:
    """Key of the calendar month before the one containing `day`."""
    if day.month == 1:
        return f"{day.year - 1:04d}-12"
    return f"{day.year:04d}-{day.month - 1:02d}"


def month_range(first: str, last: str) -> list[str]:
    """Every month key from first to last inclusive; empty if last < first."""
    if last < first:
        return []
    return pd.period_range(first, last, freq="M").strftime("%Y-%m").tolist()


def normalise_monthly_row(row: Mapping) -> dict | None:
    """Normalise one RawMonthlyRow into aggregate fields.

    Returns None when the month cannot be parsed. Every field is taken as an
    absolute value except those registered with keep_sign.
    """
    month = normalise_month(get_row_month(row))
    if month is None:
        return None

    entry: dict = {"mes": month}
    for column, (field, keep_sign) in MONTHLY_FIELDS.items():
        value = normalise_amount(row.get(column))
        entry[field] = value if keep_sign else abs(value)
    return entry


def _empty_monthly() -> pd.DataFrame:
    return pd.DataFrame(columns=MONTHLY_COLUMNS)


def build_monthly_series(rows, today: date | None = None) -> pd.DataFrame:
    """Aggregate filtered raw rows into one record per calendar month.

    Parameters
    ----------
    rows : Sequence of RawMonthlyRow mappings (or a DataFrame of them),
           already filtered to the current selection.
    today : Reference date; its month and everything after it is left out
            because the month's amortization is not closed. Defaults to
            date.today().

    Returns
    -------
    DataFrame with columns:
        mes, custoTotal, custoDireto, custoIndireto, horas, receitaMes,
        receitaLiquidaMes, margem55Mes, margemOperacionalMes
    one row per month from the first month present to the last, months
    without rows filled with zeros.
    """
    records = as_records(rows)
    if today is None:
        today = date.today()

    normalised = []
    for row in records:
        entry = normalise_monthly_row(row)
        if entry is not None:
            normalised.append(entry)

    dropped = len(records) - len(normalised)
    if dropped:
        logger.warning("Dropped %d rows with an unparseable month", dropped)

    if not normalised:
        logger.info("No rows to aggregate — returning empty monthly series")
        return _empty_monthly()

    df = pd.DataFrame(normalised, columns=MONTHLY_COLUMNS)
    # fsum keeps the totals independent of row order
    grouped = df.groupby("mes").agg({field: math.fsum for field in MONTHLY_COLUMNS[1:]})

    first = grouped.index.min()
    last = min(grouped.index.max(), previous_month_key(today))
    months = month_range(first, last)
    if not months:
        logger.info("All rows fall in or after %s — returning empty monthly series", month_key(today))
        return _empty_monthly()

    result = (
        grouped.reindex(months, fill_value=0.0)
        .astype(float)
        .rename_axis("mes")
        .reset_index()
    )
    result = result[MONTHLY_COLUMNS]

    logger.info("Built monthly series with %d months (%s to %s)", len(result), months[0], months[-1])
    return result


_ORIGIN = {column: 0.0 for column in CUMULATIVE_COLUMNS}


def _accumulate_month(previous: Mapping, month: Mapping) -> dict:
    """One fold step: add a month to the running totals.

    Cost, revenue and margin totals are floored at zero; the operational
    margin is derived from the floored totals and may go negative.
    """
    custo = max(0.0, previous["custoTotalAcumulado"] + month.get("custoTotal", 0.0))
    receita = max(0.0, previous["receitaBrutaAcumulado"] + month.get("receitaMes", 0.0))
    receita_liquida = max(
        0.0, previous["receitaLiquidaAcumulado"] + month.get("receitaLiquidaMes", 0.0)
    )
    margem55 = max(0.0, previous["margem55Acumulado"] + month.get("margem55Mes", 0.0))

    return {
        **month,
        "custoTotalAcumulado": custo,
        "receitaBrutaAcumulado": receita,
        "receitaLiquidaAcumulado": receita_liquida,
        "margem55Acumulado": margem55,
        "margemOperacionalAcumulado": margem55 - custo,
    }


def build_cumulative_curves(monthly) -> pd.DataFrame:
    """Build the S-curves from a monthly series.

    Parameters
    ----------
    monthly : Output of build_monthly_series() (or the same records as a list).

    Returns
    -------
    DataFrame with the monthly columns plus:
        custoTotalAcumulado, receitaBrutaAcumulado, receitaLiquidaAcumulado,
        margem55Acumulado, margemOperacionalAcumulado
    same length and order as the input.
    """
    records = as_records(monthly, "monthly")
    columns = MONTHLY_COLUMNS + CUMULATIVE_COLUMNS
    if not records:
        return pd.DataFrame(columns=columns)

    points = list(accumulate(records, _accumulate_month, initial=_ORIGIN))[1:]
    result = pd.DataFrame(points)
    result = result[[c for c in columns if c in result.columns]]

    logger.info("Built cumulative curves with %d points", len(result))
    return result
