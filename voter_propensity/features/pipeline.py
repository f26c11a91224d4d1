import numpy as np, pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import OneHotEncoder
from voter_propensity.stages.sample import PARTY_COL, CATEGORY_COL, AGE_COL

TARGET = "possible_voter"
INTERCEPT = "Intercept"

PARTY_CODES = {1: "Republican", 2: "Democrat", 3: "Independent"}
OTHER_PARTY = "Other"
VOTER_CATEGORIES = {"always", "sporadic"}
AGE_GROUPS = [(24, "18 to 24"), (34, "25 to 34"), (44, "35 to 44"), (64, "45 to 64")]
OLDEST_GROUP = "65+"
AGE_GROUP_ORDER = [g for _, g in AGE_GROUPS] + [OLDEST_GROUP]

# reference (dropped) level per categorical; unlisted columns use their alphabetically first level
REFERENCE_LEVELS = {"party": "Democrat"}

def party_label(code):
    if code is None: return OTHER_PARTY
    return PARTY_CODES.get(pd.to_numeric(code, errors="coerce"), OTHER_PARTY)

def is_possible_voter(category):
    return int(category in VOTER_CATEGORIES)

def age_group(age):
    if pd.isna(age): raise ValueError("age is missing")
    for upper, label in AGE_GROUPS:
        if age <= upper: return label
    return OLDEST_GROUP

def _ages(df):
    age = pd.to_numeric(df[AGE_COL], errors="coerce")
    bad = int(age.isna().sum())
    if bad:
        raise ValueError(f"{bad} record(s) have a missing or non-numeric {AGE_COL!r}")
    return age

def sample_mean_age(df):
    return float(_ages(df).mean())

def recode_survey(df, mean_age):
    """Attach party, possible_voter, mean_cent_age and age_group; the input frame is not modified."""
    age = _ages(df)
    X = df.copy()
    X[AGE_COL] = age
    X["party"] = X[PARTY_COL].map(party_label)
    X[TARGET] = X[CATEGORY_COL].map(is_possible_voter).astype(int)
    X["mean_cent_age"] = age - float(mean_age)
    X["age_group"] = age.map(age_group)
    return X

class SurveyRecoder(BaseEstimator, TransformerMixin):
    """Learns the sample mean age once in fit; transform recodes with that fixed value."""
    def __init__(self, mean_age=None):
        self.mean_age = mean_age
    def fit(self, X, y=None):
        self.mean_age_ = sample_mean_age(X) if self.mean_age is None else float(self.mean_age)
        return self
    def transform(self, X):
        return recode_survey(X, self.mean_age_)

def _check_complete(X, cols):
    missing = [c for c in cols if c not in X.columns]
    if missing: raise ValueError(f"Missing predictor columns: {missing}")
    na = X[list(cols)].isna().sum()
    na = na[na > 0]
    if len(na):
        raise ValueError(f"Missing values in predictors: {na.to_dict()}")

def build_encoding(df, categorical, reference=None):
    """Encoding table: column -> levels, reference level first, remaining levels sorted."""
    reference = REFERENCE_LEVELS if reference is None else reference
    _check_complete(df, categorical)
    table = {}
    for c in categorical:
        levels = sorted(df[c].astype(str).unique())
        ref = reference.get(c)
        if ref is not None:
            if ref not in levels:
                raise ValueError(f"Reference level {ref!r} not observed in column {c!r}")
            levels.remove(ref); levels.insert(0, ref)
        table[c] = tuple(levels)
    return table

class DesignEncoder(BaseEstimator, TransformerMixin):
    """Design matrix: Intercept, numeric columns as-is, one indicator per non-reference level."""
    def __init__(self, numeric=(), encoding=None):
        self.numeric = numeric; self.encoding = encoding
    def fit(self, X, y=None):
        enc = self.encoding or {}
        self.categorical_ = list(enc)
        _check_complete(X, list(self.numeric) + self.categorical_)
        self.ohe_ = None
        if self.categorical_:
            # handle_unknown="error": levels missing from the table are rejected, never imputed
            self.ohe_ = OneHotEncoder(categories=[list(enc[c]) for c in self.categorical_], drop="first",
                                      handle_unknown="error", sparse_output=False)
            self.ohe_.fit(X[self.categorical_].astype(str))
        self.columns_ = ([INTERCEPT] + list(self.numeric)
                         + [f"{c}[{lvl}]" for c in self.categorical_ for lvl in enc[c][1:]])
        return self
    def transform(self, X):
        _check_complete(X, list(self.numeric) + self.categorical_)
        parts = [pd.DataFrame({INTERCEPT: np.ones(len(X))}, index=X.index),
                 X[list(self.numeric)].astype(float)]
        if self.ohe_ is not None:
            dummies = self.ohe_.transform(X[self.categorical_].astype(str))
            parts.append(pd.DataFrame(dummies, index=X.index, columns=self.columns_[1 + len(self.numeric):]))
        return pd.concat(parts, axis=1)
