import pytest
from ape.utils import ZERO_ADDRESS

from line_deployment.constants import (
    BPS_DENOMINATOR,
    DEBT_ALLOCATION_BPS,
    DEBT_TREASURY,
    OHM_TREASURY,
    ONE_YEAR_IN_SECONDS,
    TEAM,
    TOKEN_LAUNCH,
)
from line_deployment.token_launch import (
    NO_CLAWBACK,
    NO_CLIFF,
    compute_allocations,
    deploy_tokens,
)
from tests.conftest import (
    DEBT_TREASURY as TREASURY_ADDRESS,
    OHM_TREASURY as OHM_ADDRESS,
    TEAM_MULTISIG,
    TOKEN_LAUNCH_CONSTANTS,
    VESTING_START,
    FakeDeployer,
)

INITIAL_DEBT_SUPPLY = TOKEN_LAUNCH_CONSTANTS["INITIAL_DEBT_SUPPLY"]


def test_allocation_shares_cover_whole_supply():
    # 3.3% + 61.7% + 20% + 15%
    assert DEBT_ALLOCATION_BPS == {
        OHM_TREASURY: 330,
        DEBT_TREASURY: 6170,
        TEAM: 2000,
        TOKEN_LAUNCH: 1500,
    }
    assert sum(DEBT_ALLOCATION_BPS.values()) == BPS_DENOMINATOR


def test_compute_allocations():
    allocations = compute_allocations(INITIAL_DEBT_SUPPLY)
    assert allocations == {
        OHM_TREASURY: 3_300_000_000,
        DEBT_TREASURY: 61_700_000_000,
        TEAM: 20_000_000_000,
        TOKEN_LAUNCH: 15_000_000_000,
    }
    assert sum(allocations.values()) == INITIAL_DEBT_SUPPLY


def test_rounding_dust_goes_to_token_launch():
    allocations = compute_allocations(10_001)
    assert allocations[OHM_TREASURY] == 330
    assert allocations[DEBT_TREASURY] == 6170
    assert allocations[TEAM] == 2000
    assert allocations[TOKEN_LAUNCH] == 1501
    assert sum(allocations.values()) == 10_001


def test_shares_must_add_up():
    with pytest.raises(ValueError, match="bps"):
        compute_allocations(100, shares={OHM_TREASURY: 5000, TOKEN_LAUNCH: 4000})


def test_credit_token_handed_to_team_multisig(token_deployer):
    deployment = deploy_tokens(token_deployer, start=VESTING_START)

    update_minter = token_deployer.position("transact", "CreditToken", "updateMinter")
    transfer_ownership = token_deployer.position("transact", "CreditToken", "transferOwnership")
    assert update_minter < transfer_ownership
    assert token_deployer.log[update_minter][3] == (TEAM_MULTISIG, True)
    assert token_deployer.log[transfer_ownership][3] == (TEAM_MULTISIG,)
    assert deployment.credit in token_deployer.verified


def test_token_launch_share_sent_to_treasury(token_deployer):
    deployment = deploy_tokens(token_deployer, start=VESTING_START)

    transfers = token_deployer.transactions("transfer")
    assert transfers[0][3] == (TREASURY_ADDRESS, deployment.allocations[TOKEN_LAUNCH])


def test_vesting_schedules(token_deployer):
    deployment = deploy_tokens(token_deployer, start=VESTING_START)
    debt = deployment.debt.address
    allocations = deployment.allocations

    vesting_deploys = [entry for entry in token_deployer.log if entry[0] == "deploy"][2:]
    assert [(name, args) for _, name, args in vesting_deploys] == [
        (
            "TokenVesting:OlympusVesting",
            (
                debt,
                OHM_ADDRESS,
                NO_CLAWBACK,
                allocations[OHM_TREASURY],
                VESTING_START,
                NO_CLIFF,
                int(ONE_YEAR_IN_SECONDS * 1.5),
            ),
        ),
        (
            "TokenVesting:TreasuryVesting",
            (
                debt,
                TREASURY_ADDRESS,
                NO_CLAWBACK,
                allocations[DEBT_TREASURY],
                VESTING_START,
                NO_CLIFF,
                ONE_YEAR_IN_SECONDS * 3,
            ),
        ),
        (
            "TokenVesting:TeamVesting",
            (
                debt,
                TEAM_MULTISIG,
                TREASURY_ADDRESS,
                allocations[TEAM],
                VESTING_START,
                ONE_YEAR_IN_SECONDS,
                ONE_YEAR_IN_SECONDS * 4,
            ),
        ),
    ]
    assert NO_CLAWBACK == ZERO_ADDRESS


def test_vesting_contracts_funded(token_deployer):
    deployment = deploy_tokens(token_deployer, start=VESTING_START)

    funding = token_deployer.transactions("transfer")[1:]
    assert [entry[3] for entry in funding] == [
        (vesting.address, deployment.schedules[alias].amount)
        for alias, vesting in deployment.vesting.items()
    ]
    distributed = sum(entry[3][1] for entry in token_deployer.transactions("transfer"))
    assert distributed == INITIAL_DEBT_SUPPLY


def test_debt_ownership_transferred_last(token_deployer):
    deployment = deploy_tokens(token_deployer, start=VESTING_START)

    handover = token_deployer.position("transact", "DebtToken", "transferOwnership")
    assert token_deployer.log[handover][3] == (TREASURY_ADDRESS,)
    assert all(
        index < handover
        for index, entry in enumerate(token_deployer.log)
        if entry[0] == "deploy" or entry[1:3] == ("DebtToken", "transfer")
    )

    # vesting contracts are verified together once DEBT is handed over
    assert token_deployer.log[-1] == ("verify", ["TokenVesting"] * 3)
    assert token_deployer.finalized == deployment.contracts


@pytest.mark.parametrize("constant", ["DEBT_TEAM_MULTISIG", "DEBT_TREASURY", "OHM_TREASURY"])
def test_placeholder_recipients_refused(constant):
    constants = dict(TOKEN_LAUNCH_CONSTANTS, **{constant: ZERO_ADDRESS})
    deployer = FakeDeployer(constants)

    with pytest.raises(ValueError, match=constant):
        deploy_tokens(deployer, start=VESTING_START)

    assert not deployer.log
