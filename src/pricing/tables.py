"""
Tabular views over quote lists for price boards and exports.
"""

from typing import Iterable

import pandas as pd

from .models import PriceQuote

QUOTE_COLUMNS = ["variety", "grade", "base_price", "last_updated", "is_active", "is_stale"]


def quotes_to_frame(quotes: Iterable[PriceQuote]) -> pd.DataFrame:
    """One row per quote, sorted by variety then grade."""
    rows = [
        {
            "variety": q.variety,
            "grade": q.grade,
            "base_price": q.base_price,
            "last_updated": q.last_updated,
            "is_active": q.is_active,
            "is_stale": q.is_stale,
        }
        for q in quotes
    ]
    df = pd.DataFrame(rows, columns=QUOTE_COLUMNS)
    if df.empty:
        return df
    return df.sort_values(["variety", "grade"]).reset_index(drop=True)


def price_matrix(quotes: Iterable[PriceQuote]) -> pd.DataFrame:
    """
    Variety x grade matrix of base prices.

    Missing combinations are NaN. Grade columns are ordered 1..10.
    """
    df = quotes_to_frame(quotes)
    if df.empty:
        return pd.DataFrame()

    matrix = df.pivot_table(index="variety", columns="grade", values="base_price", aggfunc="last")
    matrix = matrix.reindex(columns=sorted(matrix.columns))
    matrix.columns.name = "grade"
    return matrix


def stale_pairs(quotes: Iterable[PriceQuote]) -> pd.DataFrame:
    """Rows of quotes_to_frame() that are flagged stale."""
    df = quotes_to_frame(quotes)
    if df.empty:
        return df
    return df[df["is_stale"].astype(bool)].reset_index(drop=True)
