"""
Launches the CREDIT and DEBT tokens.

CREDIT is handed to the team multisig as minter and owner. The DEBT supply is
split by fixed shares: the token launch share goes straight to the treasury
while the OHM, treasury and team shares are locked in vesting contracts.
Ownership of DEBT ends with the treasury.
"""

from typing import Dict, List, NamedTuple, Optional

from ape import chain
from ape.contracts import ContractInstance
from ape.utils import ZERO_ADDRESS
from eth_utils import is_checksum_address

from line_deployment.constants import (
    BPS_DENOMINATOR,
    DEBT_ALLOCATION_BPS,
    DEBT_TREASURY,
    OHM_TREASURY,
    ONE_YEAR_IN_SECONDS,
    TEAM,
    TOKEN_LAUNCH,
)

NO_CLIFF = 0
NO_CLAWBACK = ZERO_ADDRESS

OHM_VESTING_DURATION = int(ONE_YEAR_IN_SECONDS * 1.5)
TREASURY_VESTING_DURATION = ONE_YEAR_IN_SECONDS * 3
TEAM_VESTING_CLIFF = ONE_YEAR_IN_SECONDS
TEAM_VESTING_DURATION = ONE_YEAR_IN_SECONDS * 4


class VestingSchedule(NamedTuple):
    """Constructor arguments of a TokenVesting contract."""

    token: str
    beneficiary: str
    clawback: str
    amount: int
    start: int
    cliff: int
    duration: int


class TokenLaunchDeployment(NamedTuple):
    credit: ContractInstance
    debt: ContractInstance
    allocations: Dict[str, int]
    vesting: Dict[str, ContractInstance]
    schedules: Dict[str, VestingSchedule]

    @property
    def contracts(self) -> List[ContractInstance]:
        return [self.credit, self.debt, *self.vesting.values()]


def compute_allocations(supply: int, shares: Dict[str, int] = None) -> Dict[str, int]:
    """
    Splits ``supply`` by basis point shares. Integer rounding dust goes to
    the token launch share so that the amounts always add up to ``supply``.
    """
    shares = shares or DEBT_ALLOCATION_BPS
    if sum(shares.values()) != BPS_DENOMINATOR:
        raise ValueError(
            f"Allocation shares add up to {sum(shares.values())} bps, expected {BPS_DENOMINATOR}"
        )
    allocations = {name: supply * bps // BPS_DENOMINATOR for name, bps in shares.items()}
    allocations[TOKEN_LAUNCH] += supply - sum(allocations.values())
    return allocations


def vesting_schedules(
    token: str,
    allocations: Dict[str, int],
    start: int,
    ohm_treasury: str,
    debt_treasury: str,
    team_multisig: str,
) -> Dict[str, VestingSchedule]:
    return {
        "OlympusVesting": VestingSchedule(
            token=token,
            beneficiary=ohm_treasury,
            clawback=NO_CLAWBACK,
            amount=allocations[OHM_TREASURY],
            start=start,
            cliff=NO_CLIFF,
            duration=OHM_VESTING_DURATION,
        ),
        "TreasuryVesting": VestingSchedule(
            token=token,
            beneficiary=debt_treasury,
            clawback=NO_CLAWBACK,
            amount=allocations[DEBT_TREASURY],
            start=start,
            cliff=NO_CLIFF,
            duration=TREASURY_VESTING_DURATION,
        ),
        "TeamVesting": VestingSchedule(
            token=token,
            beneficiary=team_multisig,
            clawback=debt_treasury,
            amount=allocations[TEAM],
            start=start,
            cliff=TEAM_VESTING_CLIFF,
            duration=TEAM_VESTING_DURATION,
        ),
    }


def _check_recipient(name: str, address: str) -> None:
    if address == ZERO_ADDRESS or not is_checksum_address(address):
        raise ValueError(f"{name} must be set to a checksum address, got '{address}'")


def deploy_tokens(deployer, start: Optional[int] = None) -> TokenLaunchDeployment:
    """
    Deploys and distributes the CREDIT and DEBT tokens.

    ``start`` is the vesting start timestamp; it defaults to the latest block's timestamp.
    """
    constants = deployer.constants
    team_multisig = constants.DEBT_TEAM_MULTISIG
    debt_treasury = constants.DEBT_TREASURY
    ohm_treasury = constants.OHM_TREASURY
    for name, address in (
        ("DEBT_TEAM_MULTISIG", team_multisig),
        ("DEBT_TREASURY", debt_treasury),
        ("OHM_TREASURY", ohm_treasury),
    ):
        _check_recipient(name, address)

    # initial 10 million global credit limit
    credit = deployer.deploy("CreditToken")
    deployer.verify_contracts([credit])
    deployer.transact_batch(
        [
            (credit.updateMinter, team_multisig, True),
            (credit.transferOwnership, team_multisig),
        ]
    )

    debt = deployer.deploy("DebtToken")
    deployer.verify_contracts([debt])

    allocations = compute_allocations(constants.INITIAL_DEBT_SUPPLY)
    deployer.transact(debt.transfer, debt_treasury, allocations[TOKEN_LAUNCH])
    print(f"Token launch supply sent to treasury: {allocations[TOKEN_LAUNCH]} {debt_treasury}")

    if start is None:
        start = chain.blocks.head.timestamp
    schedules = vesting_schedules(
        token=debt.address,
        allocations=allocations,
        start=start,
        ohm_treasury=ohm_treasury,
        debt_treasury=debt_treasury,
        team_multisig=team_multisig,
    )

    print("Starting DEBT token vesting...")
    vesting = dict()
    for alias, schedule in schedules.items():
        vesting[alias] = deployer.deploy("TokenVesting", *schedule, alias=alias)

    deployer.transact_batch(
        [
            (debt.transfer, vesting[alias].address, schedule.amount)
            for alias, schedule in schedules.items()
        ]
    )

    deployer.transact(debt.transferOwnership, debt_treasury)
    print(f"DEBT ownership transferred to treasury: {debt_treasury}")

    deployer.verify_contracts(list(vesting.values()))

    deployment = TokenLaunchDeployment(
        credit=credit,
        debt=debt,
        allocations=allocations,
        vesting=vesting,
        schedules=schedules,
    )
    deployer.finalize(deployments=deployment.contracts)
    return deployment
