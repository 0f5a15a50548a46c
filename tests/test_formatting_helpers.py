import numpy as np
import pandas as pd

from src.dashboard.components.formatting import ACTUAL_DATE_STYLE, cell_styles, display_frame, style_table


def test_display_frame_renders_text_and_blanks_missing() -> None:
    df = pd.DataFrame({'S.No': [1, 2], 'Value': [1.35, np.nan], 'Date': ['2024-01-01', None]})
    out = display_frame(df)
    assert out.values.tolist() == [['1', '1.35', '2024-01-01'], ['2', '', '']]


def test_cell_styles_ignore_out_of_range_cells() -> None:
    df = pd.DataFrame({'A': ['x', 'y'], 'B': ['2024-01-01', '2024-02-01']})
    styles = cell_styles(df, [(1, 1), (5, 0), (0, 9)])
    assert styles.iat[1, 1] == ACTUAL_DATE_STYLE
    assert (styles.values == '').sum() == 3


def test_style_table_marks_actual_dates() -> None:
    df = pd.DataFrame({'Project Name': ['Alpha Solar'], 'COD': ['2024-01-01']})
    styled = style_table(df, highlighted={(0, 1)})
    html = styled.to_html()
    assert 'background-color: #DCFCE7' in html
    assert '2024-01-01' in html


def test_style_table_without_highlights_returns_frame() -> None:
    df = pd.DataFrame({'Project Name': ['Alpha Solar']})
    assert style_table(df) is df
    empty = pd.DataFrame()
    assert style_table(empty, highlighted=[(0, 0)]) is empty
