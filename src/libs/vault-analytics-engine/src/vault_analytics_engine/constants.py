# src/libs/vault-analytics-engine/src/vault_analytics_engine/constants.py

# --- Ledger Event Kinds ---
DEPOSIT = "DEPOSIT"
WITHDRAW = "WITHDRAW"
VALUATION = "VALUATION"

# --- Tolerances ---
USD_EPSILON = 1e-8
UNIT_EPSILON = 1e-12
DERIVATIVE_EPSILON = 1e-12
PERCENT_BASE_EPSILON = 1e-12

# --- IRR Solver ---
DAYS_PER_YEAR = 365
IRR_MAX_ITERATIONS = 100
IRR_TOLERANCE = 1e-10
IRR_RATE_FLOOR = -0.999
IRR_RATE_CEILING = 10.0
IRR_TOTAL_LOSS = -1.0

# --- APR Policy ---
APR_MIN_DAYS = 30
APR_DEEP_LOSS_ROI = -0.9
APR_UNSTABLE_IRR = 0.5
APR_FLOOR_PCT = -100.0
APR_CEILING_PCT = 1000.0

# --- Series Field Names (used for DataFrame columns and API payloads) ---
DATE = "date"
AUM_USD = "aum_usd"
DEPOSITS_CUM_USD = "deposits_cum_usd"
WITHDRAWALS_CUM_USD = "withdrawals_cum_usd"
PNL_USD = "pnl_usd"
ROI_PERCENT = "roi_percent"
APR_PERCENT = "apr_percent"
TWRR_PERCENT = "twrr_percent"

SUMMED_FIELDS = [AUM_USD, DEPOSITS_CUM_USD, WITHDRAWALS_CUM_USD, PNL_USD]
