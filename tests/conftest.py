import pytest
from voter_propensity.stages.sample import make_demo_survey
from voter_propensity.features.pipeline import SurveyRecoder

@pytest.fixture(scope="session")
def raw_survey():
    return make_demo_survey(n=800, seed=42)

@pytest.fixture(scope="session")
def survey(raw_survey):
    return SurveyRecoder().fit_transform(raw_survey)
