"""
Curva S — End-to-end analytics pipeline.

Runs the engine from warehouse extracts (or simulated rows when no extract
is present) to dashboard-ready outputs and prints smoke-test summaries.

Usage:
    python main.py
"""

import logging
import sys
from pathlib import Path

import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from curva_s.config import CURVA_S_FILE, CUSTOS_POR_CARGO_FILE
from curva_s.dashboard import (
    get_curva_s_overview,
    get_reconciliation_report,
    get_role_breakdown,
    get_user_reconciliation_report,
)
from curva_s.filters import list_leaders
from curva_s.loaders import attach_cargo, load_rows_json
from curva_s.simulator import (
    generate_cargo_rows,
    generate_curva_s_rows,
    generate_reconciliation_totals,
    generate_user_ledger,
    generate_users,
)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the full pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  CURVA S — Portfolio Cost & Revenue Engine")
    print("  Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Load source data
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SOURCE DATA")
    print("-" * 40)

    if CURVA_S_FILE.exists():
        rows = load_rows_json(CURVA_S_FILE)
    else:
        logger.info("%s not found, using simulated rows", CURVA_S_FILE)
        rows = generate_curva_s_rows()
    print(f"\nCurva S rows: {len(rows)} loaded")

    if CUSTOS_POR_CARGO_FILE.exists():
        cargo_rows = load_rows_json(CUSTOS_POR_CARGO_FILE)
    else:
        cargo_rows = attach_cargo(generate_cargo_rows(), generate_users())
    print(f"Cost-by-cargo rows: {len(cargo_rows)} loaded")

    # ------------------------------------------------------------------
    # 2. Curva S overview
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] CURVA S OVERVIEW")
    print("-" * 40)

    print(f"\nLeaders: {list_leaders(rows)}")

    overview = get_curva_s_overview(rows, show_finalized=True)
    curves = pd.DataFrame(overview["curves"])
    if not curves.empty:
        print(curves[[
            "mes", "custoTotal", "custoTotalAcumulado",
            "receitaBrutaAcumulado", "margem55Acumulado", "margemOperacionalAcumulado",
        ]].to_string(index=False))

    print("\nKPIs:")
    for name, value in overview["kpis"].items():
        print(f"  {name:18s} | {value:,.2f}")

    # ------------------------------------------------------------------
    # 3. Cost by cargo
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] COST BY CARGO")
    print("-" * 40)

    breakdown = get_role_breakdown(cargo_rows)
    for group in breakdown["cargos"]:
        pct = f"{group['pctHoras']:.1f}%" if group["pctHoras"] is not None else "n/d"
        print(f"\n  {group['cargo']:20s} | {group['totalCusto']:>14,.2f} | {group['totalHoras']:>8,.1f}h | {pct}")
        for person in group["pessoas"]:
            pct = f"{person['pctHoras']:.1f}%" if person["pctHoras"] is not None else "n/d"
            print(f"      {person['usuario']:18s} | {person['custoTotal']:>14,.2f} | {person['horas']:>8,.1f}h | {pct}")

    # ------------------------------------------------------------------
    # 4. Reconciliation audit
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] RECONCILIATION AUDIT")
    print("-" * 40)

    source, distributed = generate_reconciliation_totals(cargo_rows)
    report = get_reconciliation_report(source, distributed, privileged=True)
    for record in report["records"]:
        print(
            f"  {record['mes']} | fonte {record['total_fonte']:>14,.2f} | "
            f"dist {record['total_dist']:>14,.2f} | dif {record['diferenca']:>+12,.2f}"
        )
    print(f"\n  Summary: {report['summary']}")

    if report["records"]:
        month = report["records"][-1]["mes"]
        user_report = get_user_reconciliation_report(
            generate_user_ledger(cargo_rows), cargo_rows, month, privileged=True,
        )
        print(f"\n  Users in {month}: {user_report['summary']}")
        for record in user_report["records"][:5]:
            print(f"    {record['usuario']:18s} | {record['status']:11s} | dif {record['diferenca']:>+12,.2f}")

    # ------------------------------------------------------------------
    # 5. Acceptance checks
    # ------------------------------------------------------------------
    print("\n")
    print("[ 5 ] ACCEPTANCE CHECKS")
    print("-" * 40)

    months = curves["mes"].tolist() if not curves.empty else []
    check1 = bool(months) and len(months) == len(pd.period_range(months[0], months[-1], freq="M"))
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] Monthly series is gap-free ({len(months)} months)")

    check2 = curves.empty or bool(curves["custoTotalAcumulado"].is_monotonic_increasing)
    print(f"  [{'PASS' if check2 else 'FAIL'}] Cumulative cost is non-decreasing")

    check3 = all(
        abs(sum(p["horas"] for p in g["pessoas"]) - g["totalHoras"]) < 1e-6
        for g in breakdown["cargos"]
    )
    print(f"  [{'PASS' if check3 else 'FAIL'}] Cargo hours equal the sum of their people")

    check4 = all(abs(r["diferenca"]) > 1.0 for r in report["records"])
    print(f"  [{'PASS' if check4 else 'FAIL'}] Reconciliation lists only divergent months")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
