"""
Curva S — Interactive Dashboard

Run with:  streamlit run app.py
"""

import sys
from pathlib import Path

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent))

from curva_s.config import CURVA_S_FILE, CUSTOS_POR_CARGO_FILE, MIN_ACTIVE_MONTH_COST
from curva_s.breakdown import build_cargo_monthly_costs
from curva_s.dashboard import (
    get_curva_s_overview,
    get_reconciliation_report,
    get_role_breakdown,
    get_user_reconciliation_report,
)
from curva_s.filters import list_leaders, list_projects, list_teams
from curva_s.loaders import attach_cargo, load_rows_json
from curva_s.reconciliation import reconciliation_frame
from curva_s.simulator import (
    generate_cargo_rows,
    generate_curva_s_rows,
    generate_reconciliation_totals,
    generate_user_ledger,
    generate_users,
)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Curva S",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded",
)

CURVE_COLORS = {
    "custo": "#e74c3c",
    "receita": "#3498db",
    "margem55": "#2ecc71",
    "operacional": "#f39c12",
}


# ---------------------------------------------------------------------------
# Data loading (cached)
# ---------------------------------------------------------------------------
@st.cache_data
def load_all_data():
    if CURVA_S_FILE.exists():
        rows = load_rows_json(CURVA_S_FILE)
    else:
        rows = generate_curva_s_rows()

    if CUSTOS_POR_CARGO_FILE.exists():
        cargo_rows = load_rows_json(CUSTOS_POR_CARGO_FILE)
    else:
        cargo_rows = attach_cargo(generate_cargo_rows(), generate_users())

    source, distributed = generate_reconciliation_totals(cargo_rows)
    return {
        "rows": rows,
        "cargo_rows": cargo_rows,
        "source": source,
        "distributed": distributed,
        "ledger": generate_user_ledger(cargo_rows),
    }


@st.cache_data
def cached_overview(lider, nome_time, project_code, show_finalized, show_paused):
    return get_curva_s_overview(
        data["rows"],
        lider=lider,
        nome_time=nome_time,
        project_code=project_code,
        show_finalized=show_finalized,
        show_paused=show_paused,
    )


def brl(value: float) -> str:
    text = f"{value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {text}"


data = load_all_data()

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("Curva S")
st.sidebar.markdown("Custos e receitas do portfólio")
st.sidebar.divider()

page = st.sidebar.radio(
    "Navegar",
    ["Curva S", "Custos por Cargo", "Auditoria de Custos"],
)

is_privileged = st.sidebar.checkbox("Acesso privilegiado", value=False)

# ===========================================================================
# PAGE: Curva S
# ===========================================================================
if page == "Curva S":
    st.title("Curva S")

    rows = data["rows"]
    col1, col2, col3 = st.columns(3)
    show_finalized = st.sidebar.toggle("Mostrar finalizados", value=False)
    show_paused = st.sidebar.toggle("Mostrar pausados", value=True)

    with col1:
        lider = st.selectbox("Líder", ["Todos"] + list_leaders(rows))
    lider = None if lider == "Todos" else lider
    with col2:
        nome_time = st.selectbox("Time", ["Todos"] + list_teams(rows, lider))
    nome_time = None if nome_time == "Todos" else nome_time
    with col3:
        projects = list_projects(rows, lider, nome_time, show_finalized, show_paused)
        labels = {p["code"]: f"{p['code']} — {p['name']}" for p in projects}
        project_code = st.selectbox(
            "Projeto",
            [None] + list(labels),
            format_func=lambda c: "Todos" if c is None else labels[c],
        )

    overview = cached_overview(lider, nome_time, project_code, show_finalized, show_paused)
    kpis = overview["kpis"]
    curves = pd.DataFrame(overview["curves"])

    cards = st.columns(4)
    cards[0].metric("Margem %", f"{kpis['margemPercentual']:.2f}%")
    cards[1].metric("Custo total", brl(kpis["custoTotal"]))
    cards[2].metric("Receita bruta", brl(kpis["receitaBruta"]))
    cards[3].metric("Margem operacional", brl(kpis["margemOperacional"]))
    cards = st.columns(4)
    cards[0].metric("Valor do contrato", brl(kpis["valorContrato"]))
    cards[1].metric("Falta receber", brl(kpis["faltaReceber"]))
    cards[2].metric(
        "Custo médio mensal", brl(kpis["custoMedio"]),
        help=f"Meses com custo ≥ {brl(MIN_ACTIVE_MONTH_COST)} ({kpis['mesesAtivos']} meses)",
    )
    cards[3].metric("Status", overview["status"])

    if curves.empty:
        st.warning("Sem dados para os filtros selecionados.")
    else:
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=curves["mes"], y=curves["custoTotalAcumulado"],
            name="Custo acumulado", mode="lines+markers",
            line=dict(color=CURVE_COLORS["custo"], width=3),
        ))
        fig.add_trace(go.Scatter(
            x=curves["mes"], y=curves["receitaBrutaAcumulado"],
            name="Receita bruta acumulada", mode="lines+markers",
            line=dict(color=CURVE_COLORS["receita"], width=3),
        ))
        fig.add_trace(go.Scatter(
            x=curves["mes"], y=curves["margem55Acumulado"],
            name="Margem 55% acumulada", mode="lines+markers",
            line=dict(color=CURVE_COLORS["margem55"], width=3),
        ))
        fig.add_trace(go.Scatter(
            x=curves["mes"], y=curves["margemOperacionalAcumulado"],
            name="Margem operacional acumulada", mode="lines",
            line=dict(color=CURVE_COLORS["operacional"], width=2, dash="dash"),
        ))
        fig.update_layout(height=450, plot_bgcolor="rgba(0,0,0,0)", yaxis_title="R$")
        fig.add_hline(y=0, line_dash="dot", line_color="#888")
        st.plotly_chart(fig, use_container_width=True)

        col1, col2 = st.columns(2)
        with col1:
            fig = px.bar(curves, x="mes", y="custoTotal", title="Custo mensal")
            fig.update_traces(marker_color=CURVE_COLORS["custo"])
            st.plotly_chart(fig, use_container_width=True)
        with col2:
            fig = px.bar(curves, x="mes", y="horas", title="Horas mensais")
            st.plotly_chart(fig, use_container_width=True)

# ===========================================================================
# PAGE: Custos por Cargo
# ===========================================================================
elif page == "Custos por Cargo":
    st.title("Custos por Cargo")

    cargo_rows = data["cargo_rows"]
    stacked = build_cargo_monthly_costs(cargo_rows)
    if not stacked.empty:
        long = stacked.melt(id_vars="mes", var_name="cargo", value_name="custo")
        fig = px.bar(long, x="mes", y="custo", color="cargo", title="Custo mensal por cargo")
        fig.update_layout(barmode="stack", height=420)
        st.plotly_chart(fig, use_container_width=True)

    months = get_role_breakdown(cargo_rows)["months"]
    selected = st.selectbox("Mês", [None] + months, format_func=lambda m: "Todos" if m is None else m)
    breakdown = get_role_breakdown(cargo_rows, filter_month=selected)

    for group in breakdown["cargos"]:
        pct = f"{group['pctHoras']:.1f}%" if group["pctHoras"] is not None else "n/d"
        with st.expander(f"{group['cargo']} — {brl(group['totalCusto'])} — {group['totalHoras']:,.0f}h ({pct})"):
            people = pd.DataFrame(group["pessoas"])
            people["pctHoras"] = people["pctHoras"].apply(
                lambda x: f"{x:.1f}%" if x is not None and pd.notna(x) else "n/d"
            )
            st.dataframe(people, use_container_width=True, hide_index=True)

# ===========================================================================
# PAGE: Auditoria de Custos
# ===========================================================================
elif page == "Auditoria de Custos":
    st.title("Auditoria de Custos")

    if not is_privileged:
        st.error("Acesso restrito a usuários privilegiados.")
    else:
        show_all = st.toggle("Mostrar todos os meses", value=False)
        report = get_reconciliation_report(
            data["source"], data["distributed"], privileged=True, only_divergent=not show_all,
        )
        summary = report["summary"]

        cols = st.columns(3)
        cols[0].metric("Meses com divergência", f"{summary['totalDivergentMonths']} / {summary['totalMonths']}")
        cols[1].metric("Soma das divergências", brl(summary["sumAbsoluteDifference"]))
        cols[2].metric("Maior divergência mensal", brl(summary["maxAbsoluteDifference"]))

        table = reconciliation_frame(report["records"])
        if table.empty:
            st.success("Nenhuma divergência encontrada.")
        else:
            st.dataframe(table, use_container_width=True, hide_index=True)

        # -------------------------------------------------------------------
        # Drill-down: month -> person -> project
        # -------------------------------------------------------------------
        st.subheader("Detalhe por usuário")
        months = [r["mes"] for r in report["records"]] or [None]
        month = st.selectbox("Mês", months, format_func=lambda m: "—" if m is None else m)

        if month is not None:
            user_report = get_user_reconciliation_report(
                data["ledger"], data["cargo_rows"], month, privileged=True,
            )
            user_summary = user_report["summary"]
            cols = st.columns(3)
            cols[0].metric("Usuários", user_summary["totalUsuarios"])
            cols[1].metric("Não alocados", user_summary["naoAlocados"])
            cols[2].metric("Custo não alocado", brl(user_summary["custoNaoAlocado"]))
            st.dataframe(pd.DataFrame(user_report["records"]), use_container_width=True, hide_index=True)

            usuario = st.selectbox("Usuário", [r["usuario"] for r in user_report["records"]])
            projects = get_user_reconciliation_report(
                data["ledger"], data["cargo_rows"], month, privileged=True, usuario=usuario,
            )["projects"]
            if projects:
                st.dataframe(pd.DataFrame(projects), use_container_width=True, hide_index=True)
            else:
                st.info("Sem custo distribuído para este usuário no mês.")
