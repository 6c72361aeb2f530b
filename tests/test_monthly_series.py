from __future__ import annotations

import random
from datetime import date

import pandas as pd
import pytest

from curva_s.config import MONTHLY_COLUMNS, MONTHLY_FIELDS
from curva_s.transforms import build_monthly_series, month_key, month_range, previous_month_key

from conftest import TODAY, make_row


def test_rows_in_different_shapes_sum_into_one_month() -> None:
    rows = [
        make_row("P1", "2024-03", custo_total_mes="R$ 1.234,56"),
        make_row("P1", "2024-03", custo_total_mes=200),
    ]
    monthly = build_monthly_series(rows, today=TODAY)

    assert monthly["mes"].tolist() == ["2024-03"]
    assert monthly.loc[0, "custoTotal"] == pytest.approx(1434.56)


def test_month_without_rows_is_filled_with_zeros() -> None:
    rows = [
        make_row("P1", "2024-01", custo_total_mes=100, receita_mes=50),
        make_row("P1", "2024-03", custo_total_mes=200),
        make_row("P2", "2024-04", custo_total_mes=300),
    ]
    monthly = build_monthly_series(rows, today=TODAY)

    assert monthly["mes"].tolist() == ["2024-01", "2024-02", "2024-03", "2024-04"]
    february = monthly.iloc[1]
    for column in MONTHLY_COLUMNS[1:]:
        assert february[column] == 0.0


def test_series_spans_year_boundary() -> None:
    rows = [make_row("P1", "2023-11", custo_total_mes=1), make_row("P1", "2024-02", custo_total_mes=1)]
    monthly = build_monthly_series(rows, today=TODAY)
    assert monthly["mes"].tolist() == ["2023-11", "2023-12", "2024-01", "2024-02"]


def test_current_and_future_months_are_left_out() -> None:
    rows = [
        make_row("P1", "2024-11", custo_total_mes=100),
        make_row("P1", "2025-01-10", custo_total_mes=999),
        make_row("P1", "2025-03", custo_total_mes=999),
    ]
    monthly = build_monthly_series(rows, today=TODAY)

    # Dec 2024 is filled as a gap up to the last closed month
    assert monthly["mes"].tolist() == ["2024-11", "2024-12"]
    assert monthly["custoTotal"].sum() == pytest.approx(100)


def test_only_open_month_rows_give_empty_series() -> None:
    monthly = build_monthly_series([make_row("P1", "2025-01", custo_total_mes=10)], today=TODAY)
    assert monthly.empty
    assert list(monthly.columns) == MONTHLY_COLUMNS


def test_empty_input_gives_empty_series_with_columns() -> None:
    monthly = build_monthly_series([], today=TODAY)
    assert monthly.empty
    assert list(monthly.columns) == MONTHLY_COLUMNS


def test_row_with_unparseable_month_is_dropped() -> None:
    rows = [
        make_row("P1", "2024-03", custo_total_mes=100),
        make_row("P1", "garbage", custo_total_mes=5000),
        make_row("P1", None, custo_total_mes=5000),
    ]
    monthly = build_monthly_series(rows, today=TODAY)
    assert monthly["mes"].tolist() == ["2024-03"]
    assert monthly.loc[0, "custoTotal"] == pytest.approx(100)


def test_unparseable_amount_counts_as_zero_but_row_still_contributes() -> None:
    rows = [make_row("P1", "2024-03", custo_total_mes="n/d", horas_mes="12,5")]
    monthly = build_monthly_series(rows, today=TODAY)
    assert monthly.loc[0, "custoTotal"] == 0.0
    assert monthly.loc[0, "horas"] == pytest.approx(12.5)


def test_costs_are_absolute_but_operational_margin_keeps_its_sign() -> None:
    rows = [make_row("P1", "2024-03", custo_total_mes=-500, custo_indireto_mes="-R$ 50,00",
                     margem_operacional_mes=-300)]
    monthly = build_monthly_series(rows, today=TODAY)

    assert monthly.loc[0, "custoTotal"] == 500.0
    assert monthly.loc[0, "custoIndireto"] == 50.0
    assert monthly.loc[0, "margemOperacionalMes"] == -300.0


def test_month_column_alias_is_accepted() -> None:
    row = make_row("P1", custo_total_mes=10)
    del row["mes"]
    row["month"] = "2024-05-01"
    monthly = build_monthly_series([row], today=TODAY)
    assert monthly["mes"].tolist() == ["2024-05"]


def test_dataframe_input_matches_list_input() -> None:
    rows = [make_row("P1", "2024-03", custo_total_mes=10), make_row("P2", "2024-04", custo_total_mes=20)]
    pd.testing.assert_frame_equal(
        build_monthly_series(pd.DataFrame(rows), today=TODAY),
        build_monthly_series(rows, today=TODAY),
    )


def test_row_order_does_not_change_the_series(portfolio_rows) -> None:
    rows = portfolio_rows + [
        make_row("P3", "2024-10", custo_total_mes=0.1, receita_mes=0.2),
        make_row("P3", "2024-10", custo_total_mes=0.7, receita_mes=1e9),
        make_row("P3", "2024-11", custo_total_mes="R$ 0,30", receita_mes=-1e9),
    ]
    expected = build_monthly_series(rows, today=TODAY)

    shuffled = list(rows)
    random.Random(3).shuffle(shuffled)
    pd.testing.assert_frame_equal(build_monthly_series(shuffled, today=TODAY), expected)
    pd.testing.assert_frame_equal(build_monthly_series(rows[::-1], today=TODAY), expected)


def test_aggregating_an_aggregate_is_stable(portfolio_rows) -> None:
    monthly = build_monthly_series(portfolio_rows, today=TODAY)

    reserialised = []
    for record in monthly.to_dict("records"):
        row = {"mes": record["mes"]}
        for column, (field, _) in MONTHLY_FIELDS.items():
            row[column] = record[field]
        reserialised.append(row)

    pd.testing.assert_frame_equal(build_monthly_series(reserialised, today=TODAY), monthly)


def test_default_reference_date_is_today() -> None:
    current = month_key(date.today())

    monthly = build_monthly_series([make_row("P1", "2000-01", custo_total_mes=1)])
    assert monthly["mes"].tolist() == ["2000-01"]

    assert build_monthly_series([make_row("P1", current, custo_total_mes=1)]).empty

    monthly = build_monthly_series([
        make_row("P1", "2000-01", custo_total_mes=1),
        make_row("P1", current, custo_total_mes=1000),
    ])
    assert current not in monthly["mes"].tolist()
    assert monthly["mes"].iloc[-1] == previous_month_key(date.today())
    assert monthly["custoTotal"].sum() == 1.0


@pytest.mark.parametrize("bad", [None, "rows", 42, {"mes": "2024-03"}])
def test_non_sequence_input_raises_type_error(bad) -> None:
    with pytest.raises(TypeError):
        build_monthly_series(bad, today=TODAY)


def test_month_helpers() -> None:
    assert previous_month_key(date(2025, 1, 15)) == "2024-12"
    assert previous_month_key(date(2024, 7, 1)) == "2024-06"
    assert month_range("2024-11", "2025-02") == ["2024-11", "2024-12", "2025-01", "2025-02"]
    assert month_range("2024-05", "2024-04") == []
