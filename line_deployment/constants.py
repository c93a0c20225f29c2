from pathlib import Path

import line_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(line_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

#
# Environments
#

MAINNET = "mainnet"
SEPOLIA = "sepolia"

SUPPORTED_ENVIRONMENTS = [MAINNET, SEPOLIA]

LOCAL_NETWORKS = ["local"]

#
# Time
#

ONE_DAY_IN_SECONDS = 60 * 60 * 24
ONE_YEAR_IN_SECONDS = int(ONE_DAY_IN_SECONDS * 365.25)

#
# Token launch
#

# Shares of the initial DEBT supply, in basis points
OHM_TREASURY = "ohm_treasury"  # approved in partnership agreement
DEBT_TREASURY = "debt_treasury"  # community treasury + partnerships + strategic raise
TEAM = "team"
TOKEN_LAUNCH = "token_launch"  # LBP and OP

BPS_DENOMINATOR = 10_000

DEBT_ALLOCATION_BPS = {
    OHM_TREASURY: 330,
    DEBT_TREASURY: 6_170,
    TEAM: 2_000,
    TOKEN_LAUNCH: 1_500,
}

#
# Explorer
#

ALREADY_VERIFIED_MESSAGES = (
    "Contract source code already verified",
    "Already Verified",
)

#
# Secured line
#

# name of the AddCredit event argument holding the credit position id
CREDIT_POSITION_ID_ARGUMENT = "id"
