import warnings

import numpy as np
import pandas as pd

from hgsynergy.models.hazard_models import RECORD_COLUMNS


def load_dose_records(path, required=RECORD_COLUMNS) -> pd.DataFrame:
    """
    Load single-ion, mixture or control records from CSV.

    Rows missing a required value are dropped with a warning. Prevalence
    must be a fraction; percentage-scaled files are rejected.
    """
    frame = pd.read_csv(path)
    missing = [col for col in required if col not in frame.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {missing}")

    incomplete = frame[list(required)].isna().any(axis=1)
    if incomplete.any():
        warnings.warn(f"{path}: dropping {int(incomplete.sum())} rows with missing values")
        frame = frame[~incomplete]

    if "Prev" in required and ((frame["Prev"] < 0) | (frame["Prev"] >= 1)).any():
        raise ValueError(f"{path}: Prev must be a fraction in [0, 1), not a percentage")
    return frame.reset_index(drop=True)


def load_datasets(ion_path, mix_path=None, controls_path=None):
    """Load the single-ion, mixture and control tables (the latter two optional)"""
    ions = load_dose_records(ion_path)
    mixtures = load_dose_records(mix_path) if mix_path else None
    controls = (load_dose_records(controls_path, required=("dose", "Prev"))
                if controls_path else None)
    return ions, mixtures, controls


def background_prevalence(controls: pd.DataFrame, prevalence_column="Prev",
                          weight_column="NWeight", group_column=None, group=None) -> float:
    """
    Background prevalence Y_0 from the zero-dose control group.

    Uses the weighted mean prevalence of all zero-dose rows (optionally
    restricted to rows where group_column == group). Unweighted when no
    weight column is present.
    """
    rows = controls[controls["dose"] == 0]
    if group_column is not None:
        rows = rows[rows[group_column] == group]
    if rows.empty:
        raise ValueError("No zero-dose control rows to estimate background prevalence")
    prev = rows[prevalence_column].to_numpy(float)
    if weight_column in rows.columns:
        return float(np.average(prev, weights=rows[weight_column].to_numpy(float)))
    return float(prev.mean())
