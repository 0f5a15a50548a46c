"""Shared dashboard formatting helpers."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

ACTUAL_DATE_STYLE = 'background-color: #DCFCE7; color: #166534'


def display_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Text-only copy of a table frame; missing cells become empty strings."""
    out = frame.astype(object).where(frame.notna(), '')
    return out.astype(str)


def cell_styles(frame: pd.DataFrame, highlighted: Iterable[tuple[int, int]]) -> pd.DataFrame:
    styles = pd.DataFrame('', index=frame.index, columns=frame.columns)
    n_rows, n_cols = frame.shape
    for row, col in highlighted:
        if row < n_rows and col < n_cols:
            styles.iat[row, col] = ACTUAL_DATE_STYLE
    return styles


def style_table(
    frame: pd.DataFrame,
    *,
    highlighted: Iterable[tuple[int, int]] = (),
) -> pd.io.formats.style.Styler | pd.DataFrame:
    """Mark actual milestone dates; frames with nothing to mark are returned unstyled."""
    highlighted = list(highlighted)
    if frame.empty or not highlighted:
        return frame
    styles = cell_styles(frame, highlighted)
    return frame.style.apply(lambda _df: styles, axis=None)
