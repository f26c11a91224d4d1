import numpy as np, pandas as pd
import pytest
from voter_propensity.features.pipeline import (
    AGE_GROUP_ORDER, INTERCEPT, TARGET, DesignEncoder, SurveyRecoder, age_group, build_encoding,
    is_possible_voter, party_label, recode_survey)

@pytest.mark.parametrize("code,label", [
    (1, "Republican"), (2, "Democrat"), (3, "Independent"), (1.0, "Republican"), ("2", "Democrat"),
    (4, "Other"), (5, "Other"), (-1, "Other"), (0, "Other"), (1.5, "Other"), (None, "Other"),
    (np.nan, "Other"), ("n/a", "Other"),
])
def test_party_mapping_is_total(code, label):
    assert party_label(code) == label

@pytest.mark.parametrize("age,group", [
    (18, "18 to 24"), (24, "18 to 24"), (25, "25 to 34"), (34, "25 to 34"), (35, "35 to 44"),
    (44, "35 to 44"), (44.5, "45 to 64"), (45, "45 to 64"), (64, "45 to 64"), (65, "65+"), (94, "65+"),
])
def test_age_group_boundaries(age, group):
    assert age_group(age) == group

def test_age_groups_partition_every_age():
    groups = [age_group(a) for a in range(0, 121)]
    assert set(groups) == set(AGE_GROUP_ORDER)
    # contiguous runs in bucket order
    firsts = [groups.index(g) for g in AGE_GROUP_ORDER]
    assert firsts == sorted(firsts)

def test_possible_voter_is_permissive():
    assert [is_possible_voter(c) for c in ["always", "sporadic", "rarely/never", "Always", "", None]] == [1, 1, 0, 0, 0, 0]

def test_recode_derived_fields(raw_survey):
    mean_age = raw_survey["ppage"].mean()
    df = recode_survey(raw_survey, mean_age)
    assert abs(df["mean_cent_age"].sum()) < 1e-6
    assert set(df["party"]) <= {"Republican", "Democrat", "Independent", "Other"}
    assert (df[TARGET] == raw_survey["voter_category"].isin(["always", "sporadic"]).astype(int)).all()
    assert df["age_group"].isin(AGE_GROUP_ORDER).all()
    assert "party" not in raw_survey.columns

def test_recode_rejects_missing_age(raw_survey):
    bad = raw_survey.head(10).astype({"ppage": float})
    bad.loc[bad.index[3], "ppage"] = np.nan
    with pytest.raises(ValueError, match="1 record"):
        recode_survey(bad, 50.0)

def test_recoder_keeps_fitted_mean(raw_survey):
    recoder = SurveyRecoder().fit(raw_survey)
    assert recoder.mean_age_ == pytest.approx(raw_survey["ppage"].mean())
    new = raw_survey.head(5)
    out = recoder.transform(new)
    assert np.allclose(out["mean_cent_age"], new["ppage"] - recoder.mean_age_)
    fixed = SurveyRecoder(mean_age=40).fit(raw_survey).transform(new)
    assert np.allclose(fixed["mean_cent_age"], new["ppage"] - 40)

def test_encoding_reference_levels(survey):
    enc = build_encoding(survey, ["party", "race", "educ"])
    assert enc["party"] == ("Democrat", "Independent", "Other", "Republican")
    assert enc["race"] == tuple(sorted(survey["race"].unique()))
    assert enc["educ"][0] == "College"

def test_encoding_unknown_reference_rejected(survey):
    with pytest.raises(ValueError, match="Reference level"):
        build_encoding(survey, ["gender"], reference={"gender": "Nonbinary"})

def test_design_matrix_columns(survey):
    enc = build_encoding(survey, ["gender", "party"])
    X = DesignEncoder(numeric=("mean_cent_age",), encoding=enc).fit_transform(survey)
    assert list(X.columns) == [INTERCEPT, "mean_cent_age", "gender[Male]",
                               "party[Independent]", "party[Other]", "party[Republican]"]
    assert (X[INTERCEPT] == 1.0).all()
    dem = (survey["party"] == "Democrat").to_numpy()
    assert (X.loc[dem, ["party[Independent]", "party[Other]", "party[Republican]"]].to_numpy() == 0).all()
    assert np.allclose(X.loc[~dem, ["party[Independent]", "party[Other]", "party[Republican]"]].sum(axis=1), 1)

def test_design_rejects_unseen_and_missing(survey):
    enc = build_encoding(survey, ["race"])
    encoder = DesignEncoder(numeric=("mean_cent_age",), encoding=enc).fit(survey)
    unseen = survey.head(3).copy()
    unseen.loc[unseen.index[0], "race"] = "Martian"
    with pytest.raises(ValueError):
        encoder.transform(unseen)
    missing = survey.head(3).copy()
    missing.loc[missing.index[1], "mean_cent_age"] = np.nan
    with pytest.raises(ValueError, match="Missing values"):
        encoder.transform(missing)
