from __future__ import annotations

import pytest

from curva_s.config import CUMULATIVE_COLUMNS, MONTHLY_COLUMNS
from curva_s.transforms import build_cumulative_curves, build_monthly_series

from conftest import TODAY


def _month(mes: str, **values: float) -> dict:
    record = {column: 0.0 for column in MONTHLY_COLUMNS}
    record["mes"] = mes
    record.update(values)
    return record


def test_curves_keep_length_and_order(portfolio_rows) -> None:
    monthly = build_monthly_series(portfolio_rows, today=TODAY)
    curves = build_cumulative_curves(monthly)

    assert len(curves) == len(monthly)
    assert curves["mes"].tolist() == monthly["mes"].tolist()
    assert list(curves.columns) == MONTHLY_COLUMNS + CUMULATIVE_COLUMNS


def test_running_totals_are_prefix_sums(portfolio_rows) -> None:
    curves = build_cumulative_curves(build_monthly_series(portfolio_rows, today=TODAY))

    assert curves["custoTotalAcumulado"].tolist() == pytest.approx([1000.0, 2500.0, 3300.0])
    assert curves["receitaBrutaAcumulado"].tolist() == pytest.approx([2000.0, 4500.0, 4500.0])
    assert curves["margem55Acumulado"].tolist() == pytest.approx([900.0, 2000.0, 2000.0])
    assert curves["margemOperacionalAcumulado"].tolist() == pytest.approx([-100.0, -500.0, -1300.0])


def test_running_totals_never_decrease_or_go_negative(portfolio_rows) -> None:
    curves = build_cumulative_curves(build_monthly_series(portfolio_rows, today=TODAY))
    for column in ["custoTotalAcumulado", "receitaBrutaAcumulado", "receitaLiquidaAcumulado", "margem55Acumulado"]:
        assert curves[column].is_monotonic_increasing
        assert (curves[column] >= 0).all()


def test_negative_month_is_floored_at_each_step() -> None:
    monthly = [
        _month("2024-01", custoTotal=-100.0, margem55Mes=-40.0),
        _month("2024-02", custoTotal=50.0, margem55Mes=30.0),
    ]
    curves = build_cumulative_curves(monthly)

    assert curves["custoTotalAcumulado"].tolist() == [0.0, 50.0]
    assert curves["margem55Acumulado"].tolist() == [0.0, 30.0]
    assert curves["margemOperacionalAcumulado"].tolist() == [0.0, -20.0]


def test_operational_margin_may_go_negative() -> None:
    curves = build_cumulative_curves([_month("2024-01", custoTotal=1000.0, margem55Mes=400.0)])
    assert curves.loc[0, "margemOperacionalAcumulado"] == -600.0


def test_monthly_values_pass_through() -> None:
    monthly = [_month("2024-01", custoTotal=10.0, horas=3.0), _month("2024-02", custoTotal=5.0, horas=2.0)]
    curves = build_cumulative_curves(monthly)
    assert curves["custoTotal"].tolist() == [10.0, 5.0]
    assert curves["horas"].tolist() == [3.0, 2.0]


def test_empty_monthly_gives_empty_curves() -> None:
    curves = build_cumulative_curves(build_monthly_series([], today=TODAY))
    assert curves.empty
    assert list(curves.columns) == MONTHLY_COLUMNS + CUMULATIVE_COLUMNS


def test_non_sequence_input_raises_type_error() -> None:
    with pytest.raises(TypeError):
        build_cumulative_curves("2024-01")
