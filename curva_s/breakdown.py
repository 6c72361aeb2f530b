"""
Cost-by-role breakdown: cargo -> person hierarchy of cost and hours.

Input rows are per (usuario, project_code, month), so a person working on
three projects in a month appears three times, each row repeating that
person's total hours for the month. Total hours are therefore taken once per
distinct month, never once per row.
"""

import logging
from collections.abc import Mapping

import pandas as pd

from .config import NO_CARGO_LABEL
from .loaders.utils import as_records, get_row_month, normalise_amount, normalise_month

logger = logging.getLogger(__name__)

_PERSON_KEYS = ["cargo", "usuario"]


def _pct(part: float, whole: float) -> float | None:
    # None, not 0: the denominator is unknown, not the work
    if whole <= 0:
        return None
    return part / whole * 100


def normalise_cargo_row(row: Mapping) -> dict | None:
    """Normalise one cargo-level cost row; None if it has no user or month."""
    usuario = row.get("usuario")
    if usuario is None or str(usuario).strip() == "":
        return None
    month = normalise_month(get_row_month(row))
    if month is None:
        return None

    return {
        "cargo": str(row.get("cargo") or NO_CARGO_LABEL),
        "usuario": str(usuario),
        "mes": month,
        "horas": abs(normalise_amount(row.get("horas"))),
        "horasTotaisMes": abs(normalise_amount(row.get("horas_totais_mes"))),
        # Direct and indirect can carry independent signs in the source
        "custoDireto": abs(normalise_amount(row.get("custo_direto"))),
        "custoIndireto": abs(normalise_amount(row.get("custo_indireto"))),
    }


def _normalised_frame(cargo_rows, filter_month=None) -> pd.DataFrame:
    records = as_records(cargo_rows, "cargo_rows")

    target = None
    if filter_month is not None:
        target = normalise_month(filter_month)
        if target is None:
            logger.warning("Ignoring drill-down: unparseable month %r", filter_month)
            return pd.DataFrame()

    normalised = []
    for row in records:
        entry = normalise_cargo_row(row)
        if entry is None:
            continue
        if target is not None and entry["mes"] != target:
            continue
        normalised.append(entry)

    dropped = len(records) - len(normalised)
    if dropped and target is None:
        logger.warning("Dropped %d cargo rows without user or month", dropped)

    return pd.DataFrame(normalised)


def _person_record(person: Mapping) -> dict:
    horas = float(person["horas"])
    horas_totais = float(person["horasTotaisMes"])
    custo_direto = float(person["custoDireto"])
    custo_indireto = float(person["custoIndireto"])
    return {
        "usuario": person["usuario"],
        "horas": horas,
        "horasTotaisMes": horas_totais,
        "pctHoras": _pct(horas, horas_totais),
        "custoDireto": custo_direto,
        "custoIndireto": custo_indireto,
        "custoTotal": custo_direto + custo_indireto,
    }


def build_role_breakdown(cargo_rows, filter_month=None) -> list[dict]:
    """Group cost rows by cargo, then by person.

    Parameters
    ----------
    cargo_rows : Sequence of cargo-level rows with usuario, cargo, mes,
                 horas, horas_totais_mes, custo_direto, custo_indireto.
    filter_month : Optional month (any shape normalise_month accepts) to
                   drill down to before grouping.

    Returns
    -------
    List of cargo groups sorted by descending total cost:
    [
        {
            "cargo": "Engenheiro",
            "totalCusto": ..., "totalCustoDireto": ..., "totalCustoIndireto": ...,
            "totalHoras": ..., "totalHorasTotaisMes": ..., "pctHoras": ... | None,
            "pessoas": [
                {"usuario": ..., "horas": ..., "horasTotaisMes": ...,
                 "pctHoras": ... | None, "custoDireto": ..., "custoIndireto": ...,
                 "custoTotal": ...},
                ...
            ],
        },
        ...
    ]
    """
    df = _normalised_frame(cargo_rows, filter_month)
    if df.empty:
        return []

    people = df.groupby(_PERSON_KEYS, sort=False).agg(
        horas=("horas", "sum"),
        custoDireto=("custoDireto", "sum"),
        custoIndireto=("custoIndireto", "sum"),
    )
    # One recorded total per person-month, summed over distinct months
    horas_totais = (
        df.groupby(_PERSON_KEYS + ["mes"], sort=False)["horasTotaisMes"].max()
        .groupby(level=_PERSON_KEYS).sum()
        .rename("horasTotaisMes")
    )
    people = people.join(horas_totais).reset_index()

    groups = []
    for cargo, members in people.groupby("cargo", sort=False):
        pessoas = sorted(
            (_person_record(p) for p in members.to_dict("records")),
            key=lambda p: (-p["custoTotal"], p["usuario"]),
        )
        total_horas = sum(p["horas"] for p in pessoas)
        total_horas_totais = sum(p["horasTotaisMes"] for p in pessoas)
        total_direto = sum(p["custoDireto"] for p in pessoas)
        total_indireto = sum(p["custoIndireto"] for p in pessoas)
        groups.append({
            "cargo": cargo,
            "totalCusto": total_direto + total_indireto,
            "totalCustoDireto": total_direto,
            "totalCustoIndireto": total_indireto,
            "totalHoras": total_horas,
            "totalHorasTotaisMes": total_horas_totais,
            "pctHoras": _pct(total_horas, total_horas_totais),
            "pessoas": pessoas,
        })

    groups.sort(key=lambda g: (-g["totalCusto"], g["cargo"]))
    logger.info("Built role breakdown with %d cargos, %d people", len(groups), len(people))
    return groups


def build_cargo_monthly_costs(cargo_rows) -> pd.DataFrame:
    """Total cost per month and cargo, for stacked monthly bars.

    Returns
    -------
    DataFrame with a 'mes' column and one column per cargo (highest total
    cost first), months ascending, missing combinations as 0.0.
    """
    df = _normalised_frame(cargo_rows)
    if df.empty:
        return pd.DataFrame(columns=["mes"])

    df["custoTotal"] = df["custoDireto"] + df["custoIndireto"]
    pivot = df.pivot_table(
        index="mes",
        columns="cargo",
        values="custoTotal",
        aggfunc="sum",
        fill_value=0.0,
    ).sort_index()

    order = pivot.sum().sort_values(ascending=False).index.tolist()
    result = pivot[order].reset_index()
    result.columns.name = None

    logger.info("Built cargo monthly costs with %d months x %d cargos", len(result), len(order))
    return result


def list_breakdown_months(cargo_rows) -> list[str]:
    """Distinct months available for the drill-down picker, ascending."""
    df = _normalised_frame(cargo_rows)
    if df.empty:
        return []
    return sorted(df["mes"].unique().tolist())
