"""Data ingestion loaders and value normalisers for warehouse extracts."""

from .utils import normalise_amount, normalise_month
from .warehouse import attach_cargo, load_rows_excel, load_rows_json

__all__ = [
    "normalise_amount",
    "normalise_month",
    "attach_cargo",
    "load_rows_excel",
    "load_rows_json",
]
