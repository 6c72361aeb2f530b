from __future__ import annotations

from datetime import date

import pytest

# Fixed reference date: January 2025 is the open (excluded) month.
TODAY = date(2025, 1, 15)


def make_row(project_code: str = "P1", mes: object = "2024-03", **fields: object) -> dict:
    """A RawMonthlyRow with zeroed amounts unless overridden."""
    row = {
        "project_code": project_code,
        "mes": mes,
        "lider": "Ana Souza",
        "nome_time": "Time Estrutura",
        "status": "Em andamento",
        "custo_direto_mes": 0,
        "custo_indireto_mes": 0,
        "custo_total_mes": 0,
        "horas_mes": 0,
        "receita_mes": 0,
        "receita_liquida_mes": 0,
        "margem_55_mes": 0,
        "margem_operacional_mes": 0,
        "receita_bruta_total": 0,
    }
    row.update(fields)
    return row


def make_cargo_row(
    usuario: str = "João Pereira",
    cargo: str | None = "Engenheiro",
    mes: object = "2024-03-01",
    project_code: str = "P1",
    **fields: object,
) -> dict:
    row = {
        "usuario": usuario,
        "cargo": cargo,
        "project_code": project_code,
        "mes": mes,
        "horas": 0,
        "horas_totais_mes": 0,
        "custo_direto": 0,
        "custo_indireto": 0,
        "custo_total": 0,
    }
    row.update(fields)
    return row


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def portfolio_rows() -> list[dict]:
    """Two projects over Oct 2024 - Jan 2025 with mixed physical shapes."""
    return [
        make_row("P1", "2024-10", custo_total_mes="R$ 1.000,00", receita_mes=2000,
                 margem_55_mes=900, horas_mes=10, receita_bruta_total=500000,
                 project_name="Edifício Aurora"),
        make_row("P1", "2024-11-01", custo_total_mes={"value": "1500.00"}, receita_mes="R$ 2.500,00",
                 margem_55_mes=1100, horas_mes=12, receita_bruta_total="R$ 500.000,00",
                 project_name="Edifício Aurora"),
        make_row("P2", {"value": "2024-12-01T00:00:00"}, custo_total_mes=800, receita_mes=0,
                 margem_55_mes=0, horas_mes=8, receita_bruta_total=250000,
                 lider="Bruno Lima", nome_time="Time Industrial", status="Pausado",
                 project_name="Galpão Norte"),
        # open month, left out of every series
        make_row("P1", "2025-01-05", custo_total_mes=99999, receita_bruta_total=500000,
                 project_name="Edifício Aurora"),
    ]
