"""
Tabular views over ledger contents – listings, category usage and CSV export.
"""

from typing import Dict, Iterable, Tuple

import pandas as pd

from cloakroom.models import Category, Document

LISTING_COLUMNS = [
    "code", "last_name", "first_name", "middle_name", "phone", "email",
    "item_description", "category", "deposit_amount", "pickup_amount",
    "deposit_date", "pickup_date", "status", "archived_at", "created_by",
]


def documents_frame(documents: Iterable[Document]) -> pd.DataFrame:
    """One row per document, enum fields flattened to their tags."""
    rows = []
    for doc in documents:
        rows.append({
            "code": doc.code,
            "last_name": doc.last_name,
            "first_name": doc.first_name,
            "middle_name": doc.middle_name,
            "phone": doc.phone,
            "email": doc.email,
            "item_description": doc.item_description,
            "category": doc.category.value,
            "deposit_amount": doc.deposit_amount,
            "pickup_amount": doc.pickup_amount,
            "deposit_date": doc.deposit_date.isoformat(),
            "pickup_date": doc.pickup_date,
            "status": doc.status.value,
            "archived_at": doc.archived_at.isoformat() if doc.archived_at else "",
            "created_by": doc.created_by,
        })
    return pd.DataFrame(rows, columns=LISTING_COLUMNS)


def category_usage_frame(usage: Dict[Category, Tuple[int, int]]) -> pd.DataFrame:
    df = pd.DataFrame(
        [(c.value, active, limit) for c, (active, limit) in usage.items()],
        columns=["category", "active", "limit"],
    )
    df["free"] = (df["limit"] - df["active"]).clip(lower=0)
    return df


def totals_by_category(documents: Iterable[Document]) -> pd.DataFrame:
    """Count and amount sums per category."""
    df = documents_frame(documents)
    if df.empty:
        return pd.DataFrame(columns=["category", "count", "deposit_amount", "pickup_amount"])
    grouped = df.groupby("category", sort=True).agg(
        count=("code", "size"),
        deposit_amount=("deposit_amount", "sum"),
        pickup_amount=("pickup_amount", "sum"),
    )
    return grouped.reset_index()


def render_table(df: pd.DataFrame, max_rows: int = 0) -> str:
    """Markdown table for the terminal."""
    if df.empty:
        return "(no rows)"
    if max_rows:
        df = df.head(max_rows)
    return df.to_markdown(index=False)


def export_csv(documents: Iterable[Document], path) -> int:
    """Write the listing to *path*; returns the number of rows written."""
    df = documents_frame(documents)
    df.to_csv(path, index=False)
    return len(df)
