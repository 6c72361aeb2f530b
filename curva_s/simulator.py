"""
Simulated warehouse extracts for the Curva S engine.

Generates per-project monthly rows and per-user cost rows in every physical
representation the warehouse is known to emit (plain numbers, pt-BR
strings, boxed {"value": ...} scalars, native datetimes). All values are
synthetic.
"""

from datetime import datetime

import numpy as np
import pandas as pd

from .loaders.utils import get_row_month, normalise_amount, normalise_month

# ---------------------------------------------------------------------------
# Portfolio parameters
# ---------------------------------------------------------------------------
# code, name, lider, time, status, contract value, monthly cost, margin rate
_PROJECTS = [
    ("OB-101", "Edifício Aurora", "Ana Souza", "Time Estrutura", "Em andamento", 480_000, 21_000, 1.10),
    ("OB-102", "Hospital Vale Verde", "Ana Souza", "Time Estrutura", "Em andamento", 1_250_000, 48_000, 0.95),
    ("OB-205", "Galpão Logístico Norte", "Bruno Lima", "Time Industrial", "Pausado", 310_000, 15_500, 1.05),
    ("OB-208", "Escola Municipal Sul", "Bruno Lima", "Time Industrial", "Finalizado", 220_000, 12_000, 1.20),
    ("OB-310", "Residencial Jardins", "Carla Dias", "Time Residencial", "Em andamento", 650_000, 26_000, 0.85),
]

_USERS = [
    ("João Pereira", "Engenheiro Sênior", 176),
    ("Marina Alves", "Engenheiro Pleno", 168),
    ("Rafael Costa", "Engenheiro Pleno", 168),
    ("Beatriz Rocha", "Projetista", 160),
    ("Lucas Martins", "Projetista", 160),
    ("Fernanda Gomes", "Coordenador", 150),
]

# On the payroll ledger but never allocated to a project
_CONTRACTOR = "Paulo Nunes"

# Share of the margin that becomes 55%-margin (net revenue x 0.55)
_TAX_RATE = 0.1125
_MARGIN_RATE = 0.55


def format_brl(value: float) -> str:
    """Format a number the way the BI export does: 'R$ 1.234,56'."""
    text = f"{abs(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"-R$ {text}" if value < 0 else f"R$ {text}"


def _amount_shape(value: float, i: int):
    """Cycle an amount through the warehouse's physical representations."""
    shape = i % 4
    if shape == 0:
        return round(value, 2)
    if shape == 1:
        return format_brl(value)
    if shape == 2:
        return {"value": f"{value:.2f}"}
    return f"{value:.2f}"


def _month_shape(month: pd.Timestamp, i: int):
    """Cycle a month through the warehouse's physical representations."""
    shape = i % 4
    if shape == 0:
        return month.strftime("%Y-%m")
    if shape == 1:
        return month.strftime("%Y-%m-%d")
    if shape == 2:
        return {"value": month.strftime("%Y-%m-%dT00:00:00")}
    return datetime(month.year, month.month, 1)


def generate_curva_s_rows(
    start_month: str = "2024-01-01",
    n_months: int = 18,
    seed: int = 42,
) -> list[dict]:
    """Generate raw Curva S rows, one per project and month.

    Each project starts at a random offset, skips the occasional month, and
    sometimes carries a negative cost adjustment row.
    """
    rng = np.random.default_rng(seed)
    months = pd.date_range(start_month, periods=n_months, freq="MS")
    rows = []
    i = 0

    for code, name, lider, time, status, contract, cost, margin_rate in _PROJECTS:
        start = int(rng.integers(0, 4))
        for month in months[start:]:
            if rng.random() < 0.08:
                continue  # sparse month

            custo = max(cost + rng.normal(0, cost * 0.15), 0.0)
            direto = custo * rng.uniform(0.6, 0.75)
            indireto = custo - direto
            receita = custo * margin_rate * rng.uniform(1.4, 1.9)
            receita_liquida = receita * (1 - _TAX_RATE)
            margem55 = receita_liquida * _MARGIN_RATE

            rows.append({
                "project_code": code,
                "project_name": name,
                "mes": _month_shape(month, i),
                "lider": lider,
                "nome_time": time,
                "status": status,
                "custo_direto_mes": _amount_shape(direto, i),
                "custo_indireto_mes": _amount_shape(indireto, i + 1),
                "custo_total_mes": _amount_shape(custo, i + 2),
                "horas_mes": _amount_shape(custo / 95.0, i + 3),
                "receita_mes": _amount_shape(receita, i),
                "receita_liquida_mes": _amount_shape(receita_liquida, i + 1),
                "margem_55_mes": _amount_shape(margem55, i + 2),
                "margem_operacional_mes": _amount_shape(margem55 - custo, i + 3),
                "receita_bruta_total": _amount_shape(contract, i),
            })
            i += 1

            if rng.random() < 0.05:
                adjustment = -cost * rng.uniform(0.05, 0.2)
                rows.append({
                    "project_code": code,
                    "project_name": name,
                    "mes": month.strftime("%Y-%m-%d"),
                    "lider": lider,
                    "nome_time": time,
                    "status": status,
                    "custo_total_mes": format_brl(adjustment),
                    "receita_bruta_total": contract,
                })

    return rows


def generate_users() -> list[dict]:
    """User directory entries with a nested cargo, as the people service returns."""
    return [
        {"name": name, "cargo": {"name": cargo}}
        for name, cargo, _ in _USERS
    ]


def generate_cargo_rows(
    start_month: str = "2024-01-01",
    n_months: int = 18,
    seed: int = 7,
) -> list[dict]:
    """Generate per (usuario, project, month) cost rows without cargo.

    Each user splits a month across one to three projects; every row of that
    month repeats the user's total hours, as the warehouse view does.
    """
    rng = np.random.default_rng(seed)
    months = pd.date_range(start_month, periods=n_months, freq="MS")
    codes = [p[0] for p in _PROJECTS]
    names = {p[0]: p[1] for p in _PROJECTS}
    rows = []

    for name, _, monthly_hours in _USERS:
        hourly_cost = rng.uniform(70, 160)
        for month in months:
            n_projects = int(rng.integers(1, 4))
            chosen = rng.choice(codes, size=n_projects, replace=False)
            weights = rng.dirichlet(np.ones(n_projects))
            total_hours = monthly_hours + float(rng.normal(0, 6))
            for code, weight in zip(chosen, weights):
                hours = total_hours * float(weight)
                direto = hours * hourly_cost
                indireto = direto * 0.35
                rows.append({
                    "usuario": name,
                    "project_code": str(code),
                    "project_name": names[str(code)],
                    "mes": month.strftime("%Y-%m-%d"),
                    "horas": round(hours, 2),
                    "horas_totais_mes": round(total_hours, 2),
                    "custo_direto": round(direto, 2),
                    # Indirect cost is booked as a negative allocation
                    "custo_indireto": round(-indireto, 2),
                    "custo_total": round(direto - indireto, 2),
                })

    return rows


def _distributed_by_month(cargo_rows: list[dict]) -> dict[str, tuple[float, float]]:
    """(direct, indirect) absolute cost per month of the cargo rows."""
    totals: dict[str, tuple[float, float]] = {}
    for row in cargo_rows:
        month = normalise_month(get_row_month(row))
        if month is None:
            continue
        direto, indireto = totals.get(month, (0.0, 0.0))
        totals[month] = (
            direto + abs(normalise_amount(row.get("custo_direto"))),
            indireto + abs(normalise_amount(row.get("custo_indireto"))),
        )
    return totals


def generate_reconciliation_totals(
    cargo_rows: list[dict],
    seed: int = 11,
) -> tuple[list[dict], list[dict]]:
    """Derive (source, distributed) monthly total records from cargo rows.

    The distributed side sums the rows; the source side equals it except for
    a few months with unallocated direct cost or rounding noise. Both sides
    carry the direct/indirect split.
    """
    rng = np.random.default_rng(seed)
    source, distributed = [], []
    for month, (direto, indireto) in sorted(_distributed_by_month(cargo_rows).items()):
        distributed.append({
            "mes": month,
            "total_direto_dist": direto,
            "total_indireto_dist": indireto,
            "total_dist": direto + indireto,
        })

        draw = rng.random()
        if draw < 0.2:
            direto_fonte = direto + rng.uniform(800, 6000)
        elif draw < 0.4:
            direto_fonte = direto + rng.uniform(-0.9, 0.9)
        else:
            direto_fonte = direto
        direto_fonte, indireto_fonte = round(direto_fonte, 2), round(indireto, 2)
        source.append({
            "mes": month,
            "total_direto_fonte": direto_fonte,
            "total_indireto_fonte": indireto_fonte,
            "total_fonte": round(direto_fonte + indireto_fonte, 2),
        })
    return source, distributed


def generate_user_ledger(cargo_rows: list[dict], seed: int = 13) -> list[dict]:
    """Per (usuario, month) ledger totals matching the cargo rows.

    A few entries carry extra unallocated cost, and one contractor appears in
    the ledger every month without any distributed cost.
    """
    rng = np.random.default_rng(seed)
    totals: dict[tuple[str, str], float] = {}
    for row in cargo_rows:
        month = normalise_month(get_row_month(row))
        if month is None:
            continue
        key = (str(row.get("usuario")), month)
        totals[key] = (
            totals.get(key, 0.0)
            + abs(normalise_amount(row.get("custo_direto")))
            + abs(normalise_amount(row.get("custo_indireto")))
        )

    ledger = []
    for (usuario, month), total in sorted(totals.items()):
        if rng.random() < 0.1:
            total += rng.uniform(500, 3000)
        ledger.append({"usuario": usuario, "mes": month, "total_fonte_usuario": round(total, 2)})

    for month in sorted({month for _, month in totals}):
        ledger.append({"usuario": _CONTRACTOR, "mes": month, "total_fonte_usuario": 9_500.0})
    return ledger
