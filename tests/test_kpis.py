from __future__ import annotations

import pandas as pd
import pytest

from curva_s.kpis import (
    average_active_month_cost,
    calc_contract_value,
    calc_margin_pct,
    compute_kpis,
)
from curva_s.transforms import build_cumulative_curves, build_monthly_series

from conftest import TODAY, make_row


def _kpis(rows) -> dict:
    curves = build_cumulative_curves(build_monthly_series(rows, today=TODAY))
    return compute_kpis(curves, rows)


def test_portfolio_kpis(portfolio_rows) -> None:
    kpis = _kpis(portfolio_rows)

    assert kpis["receitaBruta"] == pytest.approx(4500.0)
    assert kpis["margem55"] == pytest.approx(2000.0)
    assert kpis["custoTotal"] == pytest.approx(3300.0)
    assert kpis["margemOperacional"] == pytest.approx(-1300.0)
    assert kpis["margemPercentual"] == pytest.approx(-65.0)
    assert kpis["horasTotal"] == pytest.approx(30.0)
    assert kpis["custoMedio"] == pytest.approx(1100.0)
    assert kpis["mesesAtivos"] == 3
    assert kpis["valorContrato"] == pytest.approx(750_000.0)
    assert kpis["faltaReceber"] == pytest.approx(745_500.0)


def test_margin_pct_is_zero_without_margin() -> None:
    assert calc_margin_pct(0.0, 5000.0) == 0.0
    assert calc_margin_pct(-10.0, 5000.0) == 0.0
    assert calc_margin_pct(1000.0, 400.0) == pytest.approx(60.0)


def test_margin_pct_card_has_no_nan_when_margin_is_zero() -> None:
    kpis = _kpis([make_row("P1", "2024-03", custo_total_mes=5000)])
    assert kpis["margemPercentual"] == 0.0


def test_average_cost_ignores_months_below_threshold() -> None:
    monthly = pd.DataFrame({"custoTotal": [1000.0, 200.0, 0.0, 300.0, 3000.0]})
    mean, count = average_active_month_cost(monthly)
    assert count == 3
    assert mean == pytest.approx((1000.0 + 300.0 + 3000.0) / 3)


def test_average_cost_threshold_is_configurable() -> None:
    monthly = pd.DataFrame({"custoTotal": [1000.0, 200.0]})
    assert average_active_month_cost(monthly, threshold=100.0) == (600.0, 2)
    assert average_active_month_cost(monthly, threshold=5000.0) == (0.0, 0)


def test_contract_value_counts_each_project_once() -> None:
    rows = [make_row("P1", f"2024-0{m}", receita_bruta_total=500_000) for m in range(1, 7)]
    assert calc_contract_value(rows) == 500_000.0

    rows.append(make_row("P2", "2024-01", receita_bruta_total="R$ 250.000,00"))
    rows.append(make_row("P2", "2024-02", receita_bruta_total="n/d"))
    assert calc_contract_value(rows) == 750_000.0


def test_contract_value_reads_ptbr_thousands_without_cents() -> None:
    rows = [make_row("P1", "2024-03", receita_bruta_total="R$ 500.000")]
    assert calc_contract_value(rows) == 500_000.0


def test_contract_value_skips_rows_without_project() -> None:
    rows = [make_row(None, "2024-01", receita_bruta_total=100), make_row("", "2024-01", receita_bruta_total=100)]
    assert calc_contract_value(rows) == 0.0


def test_remaining_revenue_goes_negative_when_revenue_exceeds_contract() -> None:
    rows = [make_row("P1", "2024-03", receita_mes=1200, receita_bruta_total=1000)]
    kpis = _kpis(rows)
    assert kpis["faltaReceber"] == pytest.approx(-200.0)


def test_empty_selection_gives_zero_kpis() -> None:
    kpis = _kpis([])
    assert kpis["receitaBruta"] == 0.0
    assert kpis["margemPercentual"] == 0.0
    assert kpis["custoMedio"] == 0.0
    assert kpis["mesesAtivos"] == 0
    assert kpis["faltaReceber"] == 0.0


def test_contract_value_reported_even_before_first_closed_month() -> None:
    rows = [make_row("P1", "2025-01", receita_bruta_total=90_000)]
    kpis = _kpis(rows)
    assert kpis["custoTotal"] == 0.0
    assert kpis["valorContrato"] == 90_000.0
    assert kpis["faltaReceber"] == 90_000.0


def test_kpis_accept_curve_records() -> None:
    curves = build_cumulative_curves(build_monthly_series([make_row("P1", "2024-03", custo_total_mes=400)], today=TODAY))
    kpis = compute_kpis(curves.to_dict("records"), [])
    assert kpis["custoTotal"] == 400.0
    assert kpis["mesesAtivos"] == 1
