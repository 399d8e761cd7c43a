"""Reference scenario constants."""

# Population PK (one-compartment, first-order absorption)
REFERENCE_KA_PER_H = 0.5
REFERENCE_CL_L_PER_H = 4.0
REFERENCE_V_L = 10.0
REFERENCE_CL_WT_EXPONENT = 0.75
REFERENCE_V_WT_EXPONENT = 1.0
REFERENCE_WEIGHT_KG = 70.0

# Dosing and output grid
REFERENCE_DOSE_AMOUNT = 100.0
REFERENCE_DOSE_TIME_H = 0.0
REFERENCE_GRID_START_H = 0.0
REFERENCE_GRID_END_H = 24.0
REFERENCE_GRID_STEP_H = 0.25

# Between-subject variability (variances of eta_CL, eta_V)
REFERENCE_OMEGA = ((0.09, 0.0), (0.0, 0.04))

# Sampling and summaries
REFERENCE_SEED = 678549
REFERENCE_N_PER_CELL = 20
REFERENCE_N_STRATA = 4
REFERENCE_CI_PROBS = (0.05, 0.95)

# Numerical tolerances
ANALYTIC_AGREEMENT_RTOL = 1e-6
KA_K_SINGULARITY_RTOL = 1e-9
