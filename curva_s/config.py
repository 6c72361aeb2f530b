"""
Configuration: field registries, business thresholds, status vocabularies.

MONTHLY_FIELDS maps each warehouse column of a RawMonthlyRow to the
MonthlyAggregate field it is summed into, and whether its sign is kept.
"""

from pathlib import Path

# ---------------------------------------------------------------------------
# File paths — sample extracts used by main.py and app.py
# ---------------------------------------------------------------------------
DATA_DIR = Path(__file__).resolve().parent.parent / "data"

CURVA_S_FILE = DATA_DIR / "curva_s.json"
CUSTOS_POR_CARGO_FILE = DATA_DIR / "custos_por_cargo.json"

# ---------------------------------------------------------------------------
# Raw row fields
# ---------------------------------------------------------------------------
# The warehouse exposes the month as "mes"; exports built by hand use "month".
MONTH_FIELDS = ("month", "mes")

PROJECT_FIELD = "project_code"
CONTRACT_VALUE_FIELD = "receita_bruta_total"

# warehouse column -> (aggregate field, keep_sign)
MONTHLY_FIELDS: dict[str, tuple[str, bool]] = {
    "custo_total_mes": ("custoTotal", False),
    "custo_direto_mes": ("custoDireto", False),
    "custo_indireto_mes": ("custoIndireto", False),
    "horas_mes": ("horas", False),
    "receita_mes": ("receitaMes", False),
    "receita_liquida_mes": ("receitaLiquidaMes", False),
    "margem_55_mes": ("margem55Mes", False),
    # Operational margin can be a loss
    "margem_operacional_mes": ("margemOperacionalMes", True),
}

MONTHLY_COLUMNS = ["mes"] + [field for field, _ in MONTHLY_FIELDS.values()]

CUMULATIVE_COLUMNS = [
    "custoTotalAcumulado",
    "receitaBrutaAcumulado",
    "receitaLiquidaAcumulado",
    "margem55Acumulado",
    "margemOperacionalAcumulado",
]

# ---------------------------------------------------------------------------
# Business thresholds
# ---------------------------------------------------------------------------
# Months below this total cost are administrative noise, not operating months.
MIN_ACTIVE_MONTH_COST = 300.0

# Currency units; a month diverges when abs(difference) is strictly greater.
RECONCILIATION_TOLERANCE = 1.0

# Depth limit when unwrapping boxed {"value": ...} scalars.
MAX_BOX_DEPTH = 4

# ---------------------------------------------------------------------------
# Status vocabularies (matched lower-cased, by substring)
# ---------------------------------------------------------------------------
FINALIZED_STATUSES = (
    "finalizado",
    "finalizada",
    "concluído",
    "concluido",
    "cancelado",
    "execução",
    "execucao",
    "termo de encerramento",
    "encerramento",
)

PAUSED_STATUSES = ("pausa", "pausado")

NO_STATUS_LABEL = "Sem Status"
NO_CARGO_LABEL = "Sem cargo"

# Per-user reconciliation labels
USER_STATUS_OK = "ok"
USER_STATUS_UNALLOCATED = "nao_alocado"
USER_STATUS_NO_SOURCE = "sem_fonte"
