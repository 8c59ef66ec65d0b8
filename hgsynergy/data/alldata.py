##Dataset: synthetic single-ion HG prevalence over the reference beams
import numpy as np
import pandas as pd

from hgsynergy.config import DEFAULT_CONFIG
from hgsynergy.models.hazard_models import CalibratedDER, CoefficientSet
from hgsynergy.utils.literature_params import (
    HZE_BEAMS,
    LOW_LET_BEAMS,
    REFERENCE_COEFFICIENTS,
)

HZE_DOSES = (5.0, 10.0, 20.0, 40.0, 60.0, 80.0)  # cGy
LOW_LET_DOSES = (20.0, 40.0, 80.0, 120.0, 160.0, 240.0)


def generate_ion_dataset(seed=42, noise=True, animals_per_group=120, config=DEFAULT_CONFIG,
                         coefficients=None):
    """
    Synthetic single-ion data shaped like the Chang 2016 HG data:
    8 HZE beams plus protons and alphas, prevalence drawn from the NTE and
    low-LET DERs on top of the background Y_0.

    NWeight is the inverse binomial variance, normalised to mean 1.
    """
    coefficients = coefficients or REFERENCE_COEFFICIENTS
    nte = CalibratedDER(CoefficientSet.from_values("NTE", coefficients["NTE"]), config)
    low = CalibratedDER(CoefficientSet.from_values("lowLET", coefficients["lowLET"]), config)
    rng = np.random.default_rng(seed)

    data = []
    beams = [(name, beam, nte, HZE_DOSES) for name, beam in HZE_BEAMS.items()]
    beams += [(name, beam, low, LOW_LET_DOSES) for name, beam in LOW_LET_BEAMS.items()]
    for name, beam, der, doses in beams:
        for dose in doses:
            expected = float(der.prevalence(dose, beam["LET"]))
            if noise:
                observed = rng.binomial(animals_per_group, expected) / animals_per_group
            else:
                observed = expected
            observed = min(max(observed, 1.0 / animals_per_group), 0.99)
            data.append({
                'beam': name,
                'Z': beam["Z"],
                'LET': beam["LET"],
                'dose': dose,
                'Prev': observed,
                'animals': animals_per_group,
                'variance': expected * (1 - expected) / animals_per_group,
            })

    df = pd.DataFrame(data)
    weights = 1.0 / df['variance']
    df['NWeight'] = weights / weights.mean()
    return df.drop(columns='variance')


if __name__ == "__main__":
    df_ions = generate_ion_dataset()
    df_ions.to_csv('hgsynergy/data/synthetic_one_ion.csv', index=False)
    print(df_ions.head(10))
