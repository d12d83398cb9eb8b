"""DataFrame views of aggregated points."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from wxextract.records import PointRecord

COLUMNS = ["latitude", "longitude", "value"]


def to_dataframe(points: Iterable[PointRecord]) -> pd.DataFrame:
    """
    Tabulate points in the order given.
    """

    rows = [(p.latitude, p.longitude, p.value) for p in points]
    return pd.DataFrame(rows, columns=COLUMNS)


def summarize(points: Iterable[PointRecord]) -> dict[str, float]:
    """
    Return count, maximum and mean value, zeros when there are no points.
    """

    df = to_dataframe(points)
    if df.empty:
        return {"count": 0, "max_value": 0.0, "mean_value": 0.0}
    return {
        "count": int(len(df)),
        "max_value": float(df["value"].max()),
        "mean_value": float(df["value"].mean()),
    }
