"""
Curva S — financial time-series engine for the project portfolio dashboard

Normalises raw per-project monthly rows from the BI warehouse into gap-free
monthly series, cumulative cost/revenue S-curves, KPI cards, a cost-by-role
breakdown, and the monthly cost reconciliation audit.

To feed it from the warehouse:
    Pass the JSON rows returned by the Curva S query straight to
    dashboard.get_curva_s_overview(rows, ...). Dates and amounts may arrive
    as plain scalars, pt-BR strings, or boxed {"value": ...} objects;
    loaders.utils normalises them.

To connect to Streamlit or an HTTP endpoint:
    Every function in curva_s.dashboard returns plain dicts and lists.
    They are pure, so callers may cache them keyed on the filter state.

To change a business threshold:
    Edit config.MIN_ACTIVE_MONTH_COST or config.RECONCILIATION_TOLERANCE.
"""
