from __future__ import annotations

from datetime import date, datetime

import pandas as pd

from curva_s.breakdown import build_role_breakdown
from curva_s.dashboard import get_curva_s_overview
from curva_s.loaders import attach_cargo
from curva_s.reconciliation import reconcile_monthly
from curva_s.simulator import (
    format_brl,
    generate_cargo_rows,
    generate_curva_s_rows,
    generate_reconciliation_totals,
    generate_user_ledger,
    generate_users,
)

# Past the last simulated month, so every month is closed
LATER = date(2030, 1, 1)


def test_format_brl() -> None:
    assert format_brl(1234.56) == "R$ 1.234,56"
    assert format_brl(-10.5) == "-R$ 10,50"


def test_generation_is_deterministic() -> None:
    assert generate_curva_s_rows(seed=1) == generate_curva_s_rows(seed=1)
    assert generate_cargo_rows(seed=1) == generate_cargo_rows(seed=1)


def test_simulated_portfolio_gives_gap_free_monotone_curves() -> None:
    overview = get_curva_s_overview(generate_curva_s_rows(), show_finalized=True, today=LATER)
    curves = pd.DataFrame(overview["curves"])

    months = curves["mes"].tolist()
    assert months == pd.period_range(months[0], months[-1], freq="M").strftime("%Y-%m").tolist()
    assert curves["custoTotalAcumulado"].is_monotonic_increasing
    assert (curves["custoTotalAcumulado"] >= 0).all()
    assert overview["kpis"]["valorContrato"] > 0


def test_simulated_cargo_rows_attach_and_break_down() -> None:
    cargo_rows = attach_cargo(generate_cargo_rows(), generate_users())
    groups = build_role_breakdown(cargo_rows)

    assert {g["cargo"] for g in groups} == {"Engenheiro Sênior", "Engenheiro Pleno", "Projetista", "Coordenador"}
    for group in groups:
        for person in group["pessoas"]:
            assert person["pctHoras"] is not None
            assert 0 < person["pctHoras"] <= 100.5


def test_simulated_reconciliation_only_flags_real_gaps() -> None:
    source, distributed = generate_reconciliation_totals(generate_cargo_rows())
    records = reconcile_monthly(source, distributed)

    for record in records:
        assert record["diferenca"] > 1.0


def test_reconciliation_totals_accept_any_month_shape() -> None:
    cargo_rows = [
        {"usuario": "A", "mes": {"value": "2024-03-01"}, "custo_direto": 1000, "custo_indireto": -350},
        {"usuario": "B", "mes": datetime(2024, 3, 15), "custo_direto": "R$ 500,00", "custo_indireto": 0},
        {"usuario": "C", "mes": "2024-04", "custo_direto": 200, "custo_indireto": 70},
        {"usuario": "D", "mes": None, "custo_direto": 999, "custo_indireto": 0},
    ]
    source, distributed = generate_reconciliation_totals(cargo_rows)

    assert [r["mes"] for r in distributed] == ["2024-03", "2024-04"]
    assert distributed[0]["total_direto_dist"] == 1500.0
    assert distributed[0]["total_indireto_dist"] == 350.0
    assert distributed[0]["total_dist"] == 1850.0
    assert [r["mes"] for r in source] == ["2024-03", "2024-04"]
    for record in source:
        assert record["total_fonte"] == round(record["total_direto_fonte"] + record["total_indireto_fonte"], 2)


def test_user_ledger_covers_every_user_month() -> None:
    cargo_rows = generate_cargo_rows(n_months=3)
    ledger = generate_user_ledger(cargo_rows)

    users = {row["usuario"] for row in cargo_rows}
    assert {(r["usuario"], r["mes"]) for r in ledger} >= {(u, m) for u in users for m in ["2024-01", "2024-02", "2024-03"]}
    assert sum(1 for r in ledger if r["usuario"] == "Paulo Nunes") == 3
