import dataclasses

import numpy as np
import pandas as pd
import pytest

from hgsynergy.config import RunConfig
from hgsynergy.data.alldata import generate_ion_dataset
from hgsynergy.utils.data_loader import background_prevalence, load_datasets, load_dose_records


def test_synthetic_dataset_shape():
    df = generate_ion_dataset(seed=1)
    assert df["LET"][df["Z"] > 3].nunique() == 8
    assert len(df) == 60
    assert ((df["Prev"] >= 0) & (df["Prev"] < 1)).all()
    assert df["NWeight"].mean() == pytest.approx(1.0)


def test_synthetic_dataset_is_seeded():
    pd.testing.assert_frame_equal(generate_ion_dataset(seed=3), generate_ion_dataset(seed=3))


def test_load_round_trip(tmp_path):
    path = tmp_path / "oneIon.csv"
    generate_ion_dataset(seed=1).to_csv(path, index=False)
    records = load_dose_records(path)
    assert len(records) == 60
    assert {"Z", "LET", "dose", "Prev", "NWeight"} <= set(records.columns)


def test_incomplete_rows_are_dropped_with_warning(tmp_path):
    path = tmp_path / "oneIon.csv"
    df = generate_ion_dataset(seed=1)
    df.loc[3, "Prev"] = np.nan
    df.to_csv(path, index=False)
    with pytest.warns(UserWarning, match="dropping 1 rows"):
        records = load_dose_records(path)
    assert len(records) == 59


def test_percentages_are_rejected(tmp_path):
    path = tmp_path / "oneIon.csv"
    df = generate_ion_dataset(seed=1)
    df["Prev"] = df["Prev"] * 100
    df.to_csv(path, index=False)
    with pytest.raises(ValueError, match="fraction"):
        load_dose_records(path)


def test_missing_columns_are_rejected(tmp_path):
    path = tmp_path / "oneIon.csv"
    generate_ion_dataset(seed=1).drop(columns="NWeight").to_csv(path, index=False)
    with pytest.raises(ValueError, match="NWeight"):
        load_dose_records(path)


def test_background_prevalence_from_zero_dose_controls(tmp_path):
    controls = pd.DataFrame({
        "group": ["A", "A", "B", "B"],
        "dose": [0.0, 0.0, 0.0, 40.0],
        "Prev": [0.04, 0.06, 0.05, 0.2],
        "NWeight": [1.0, 3.0, 2.0, 1.0],
    })
    assert background_prevalence(controls) == pytest.approx((0.04 + 0.18 + 0.10) / 6)
    assert background_prevalence(controls, group_column="group", group="B") == pytest.approx(0.05)
    assert background_prevalence(controls.drop(columns="NWeight")) == pytest.approx(0.05)
    with pytest.raises(ValueError):
        background_prevalence(controls[controls["dose"] > 0])

    ion_path = tmp_path / "oneIon.csv"
    control_path = tmp_path / "controls.csv"
    generate_ion_dataset(seed=1).to_csv(ion_path, index=False)
    controls.to_csv(control_path, index=False)
    ions, mixtures, loaded = load_datasets(ion_path, controls_path=control_path)
    assert mixtures is None
    assert background_prevalence(loaded) == pytest.approx(background_prevalence(controls))


def test_config_is_fixed_per_run():
    config = RunConfig()
    robust = config.with_background(0.025)
    assert config.y_0 == pytest.approx(0.046404)
    assert robust.y_0 == 0.025
    assert robust.phi == config.phi
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.y_0 = 0.1
    with pytest.raises(ValueError):
        RunConfig(y_0=4.6)
    with pytest.raises(ValueError):
        RunConfig(phi=0)
