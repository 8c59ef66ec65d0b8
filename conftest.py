import pytest

from hgsynergy.config import RunConfig
from hgsynergy.data.alldata import generate_ion_dataset
from hgsynergy.models.calibration import calibrate_all
from hgsynergy.models.hazard_models import CoefficientSet, ModelFamily
from hgsynergy.utils.literature_params import REFERENCE_COEFFICIENTS


@pytest.fixture(scope="session")
def config():
    return RunConfig()


@pytest.fixture(scope="session")
def ion_data():
    """Noisy synthetic single-ion data over the 8 reference HZE beams"""
    return generate_ion_dataset(seed=7)


@pytest.fixture(scope="session")
def exact_ion_data():
    return generate_ion_dataset(noise=False)


@pytest.fixture(scope="session")
def reference_coefficients():
    return {
        ModelFamily(family): CoefficientSet.from_values(family, values)
        for family, values in REFERENCE_COEFFICIENTS.items()
    }


@pytest.fixture(scope="session")
def suite(ion_data, config):
    return calibrate_all(ion_data, config)
