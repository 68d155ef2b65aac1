"""
Observation table handling for MCReplicability.

The extraction and screening stages deliver a table of included p-values.
This module maps the caller's column names onto the canonical layout used
by the resampling engine.
"""

import warnings
from typing import List, Optional, Sequence

import pandas as pd

from ..errors import ConfigurationError
from ..utils.validators import _validate_columns, _validate_p_values, _validate_table_ready

STUDY_COL = "study_id"
ARTICLE_COL = "article_id"
P_COL = "p_value"


def prepare_observations(
    data: pd.DataFrame,
    study_col: str = STUDY_COL,
    p_col: str = P_COL,
    article_col: Optional[str] = None,
    group_cols: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Build a canonical observation table from extracted p-values.

    Args:
        data: Table with one row per extracted p-value.
        study_col: Column identifying the study (unit of independence).
        p_col: Column holding the p-values.
        article_col: Column identifying the article. Defaults to the study
            column when omitted.
        group_cols: Categorical grouping columns carried through
            resampling (journal tier, open-science flag, design, ...).

    Returns:
        New DataFrame with columns ``article_id``, ``study_id``,
        ``p_value`` followed by the grouping columns.

    Raises:
        ConfigurationError: Missing columns, invalid p-values or an empty
            table.
    """
    group_cols = list(group_cols or [])
    needed = [study_col, p_col] + ([article_col] if article_col else []) + group_cols
    _validate_columns(data, needed).raise_if_invalid()

    reserved = {STUDY_COL, ARTICLE_COL, P_COL}
    clashing = [c for c in group_cols if c in reserved]
    if clashing:
        raise ConfigurationError(f"Grouping columns may not use reserved names: {', '.join(clashing)}")

    table = pd.DataFrame(
        {
            ARTICLE_COL: data[article_col if article_col else study_col].to_numpy(),
            STUDY_COL: data[study_col].to_numpy(),
            P_COL: pd.to_numeric(data[p_col], errors="coerce").to_numpy(),
        }
    )
    for col in group_cols:
        table[col] = data[col].to_numpy()

    missing_study = table[STUDY_COL].isna()
    if missing_study.any():
        warnings.warn(f"Dropping {int(missing_study.sum())} row(s) without a study identifier", stacklevel=2)
        table = table.loc[~missing_study].reset_index(drop=True)

    _validate_p_values(table[P_COL]).raise_if_invalid()
    _validate_table_ready(table).raise_if_invalid()

    return table


def group_columns(table: pd.DataFrame) -> List[str]:
    """Grouping columns of a canonical observation table."""
    return [c for c in table.columns if c not in (ARTICLE_COL, STUDY_COL, P_COL)]


def n_studies(table: pd.DataFrame) -> int:
    """Number of distinct studies in a table."""
    return int(table[STUDY_COL].nunique())
