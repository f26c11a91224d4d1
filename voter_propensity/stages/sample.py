import os, numpy as np, pandas as pd
SEED=42; ID_COL="RespId"
PARTY_COL="Q30"; CATEGORY_COL="voter_category"; AGE_COL="ppage"
DEMOGRAPHICS=["race","gender","income_cat","educ"]
REQUIRED_COLUMNS=[PARTY_COL, CATEGORY_COL, AGE_COL] + DEMOGRAPHICS

def load_survey(path, sep=","):
    """Read the survey file; raises FileNotFoundError or ValueError, never returns a partial frame."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Survey file not found: {path}")
    df=pd.read_csv(path, sep=sep)
    missing=[c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Survey file {path} is missing required columns: {missing}")
    if df.empty:
        raise ValueError(f"Survey file {path} has no rows")
    return df

def make_demo_survey(n=800, seed=SEED):
    # synthetic respondents in the survey layout, for --demo runs and tests
    rng=np.random.default_rng(seed)
    age=rng.integers(18, 90, n)
    race=rng.choice(["White","Black","Hispanic","Other/Mixed"], n, p=[0.62,0.14,0.14,0.10])
    gender=rng.choice(["Female","Male"], n)
    income=rng.choice(["Less than $40k","$40-75k","$75-125k","$125k or more"], n, p=[0.30,0.28,0.25,0.17])
    educ=rng.choice(["High school or less","Some college","College"], n, p=[0.35,0.30,0.35])
    party=rng.choice([1,2,3,4,5,-1], n, p=[0.28,0.30,0.27,0.06,0.07,0.02])
    eta=(1.2 + 0.045*(age-age.mean()) + 0.35*(educ=="College") - 0.30*(educ=="High school or less")
         + 0.25*(income=="$125k or more") - 0.25*(income=="Less than $40k")
         - 0.45*(party==3) - 0.10*(party==1) - 1.0*np.isin(party,[4,5,-1]))
    voter=rng.binomial(1, 1/(1+np.exp(-eta))).astype(bool)
    always=rng.random(n) < 0.45
    category=np.where(voter, np.where(always,"always","sporadic"), "rarely/never")
    return pd.DataFrame({ID_COL:np.arange(1,n+1), "weight":np.round(rng.uniform(0.5,2.0,n),4),
                         PARTY_COL:party, CATEGORY_COL:category, AGE_COL:age,
                         "race":race, "gender":gender, "income_cat":income, "educ":educ})
