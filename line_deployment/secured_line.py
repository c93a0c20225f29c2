"""
Bootstraps a secured line of credit on a test network.

The revenue token, oracle, libraries, Spigot and Escrow are deployed first,
then ownership of the Spigot and Escrow is handed over to the SecuredLoan,
which is initialized, collateralized, and has a credit position opened and
drawn against by the deployer.
"""

from typing import Dict, List, NamedTuple

from ape.contracts import ContractInstance

from line_deployment.constants import CREDIT_POSITION_ID_ARGUMENT

LIBRARY_NAMES = ["LoanLib", "CreditLib", "CreditListLib", "SpigotedLoanLib"]


class InsufficientAllowance(ValueError):
    """Raised when the line cannot pull the amount about to be borrowed."""


class HandoverError(ValueError):
    """Raised when a contract is not controlled by the line after the ownership transfer."""


class SecuredLineDeployment(NamedTuple):
    token: ContractInstance
    oracle: ContractInstance
    libraries: Dict[str, ContractInstance]
    spigot: ContractInstance
    escrow: ContractInstance
    line: ContractInstance
    position_id: bytes

    @property
    def contracts(self) -> List[ContractInstance]:
        return [
            self.token,
            self.oracle,
            *self.libraries.values(),
            self.spigot,
            self.escrow,
            self.line,
        ]


def get_position_id(line: ContractInstance, receipt) -> bytes:
    """Returns the id of the credit position opened by an addCredit receipt."""
    logs = list(receipt.decode_logs(line.AddCredit))
    if not logs:
        raise ValueError(f"No AddCredit event found in transaction {receipt.txn_hash}")
    return logs[0].event_arguments[CREDIT_POSITION_ID_ARGUMENT]


def check_handover(spigot: ContractInstance, escrow: ContractInstance, line: ContractInstance):
    spigot_owner = spigot.owner()
    if spigot_owner != line.address:
        raise HandoverError(f"Spigot is owned by {spigot_owner}, expected {line.address}")
    escrow_loan = escrow.loan()
    if escrow_loan != line.address:
        raise HandoverError(f"Escrow is bound to {escrow_loan}, expected {line.address}")


def check_allowance(token: ContractInstance, owner: str, spender: str, amount: int) -> None:
    allowance = token.allowance(owner, spender)
    if allowance < amount:
        raise InsufficientAllowance(
            f"{spender} may pull {allowance} {token.contract_type.name} from {owner}; "
            f"{amount} required"
        )


def deploy_secured_line(deployer) -> SecuredLineDeployment:
    """
    Deploys and wires a secured line, then opens two identical credit
    positions and borrows against the second one.

    ``deployer`` is a ``Deployer`` loaded with the secured line parameters.
    """
    constants = deployer.constants
    lender = deployer.get_account().address

    token = deployer.deploy("RevenueToken")

    print("Deploying Oracle with pricing for token and ETH...")
    oracle = deployer.deploy("SimpleOracle")

    print("Deploying Libraries...")
    libraries = {name: deployer.deploy(name) for name in LIBRARY_NAMES}

    spigot = deployer.deploy("Spigot")
    escrow = deployer.deploy("Escrow")

    print("Deploying Line of Credit for token...")
    line = deployer.deploy("SecuredLoan")

    if deployer.newly_deployed(token):
        print("Token just deployed. Minting to deployer and approving line...")
        deployer.transact_batch(
            [
                (token.mint, lender, constants.MINT_AMOUNT),
                (token.approve, line.address, constants.APPROVAL_AMOUNT),
            ]
        )

    print("Handing Spigot and Escrow over to the line...")
    deployer.transact_batch(
        [
            (escrow.updateLoan, line.address),
            (spigot.updateOwner, line.address),
        ]
    )
    check_handover(spigot=spigot, escrow=escrow, line=line)

    print("Initializing line and collateralizing escrow...")
    deployer.transact_batch(
        [
            (line.init,),
            (escrow.enableCollateral, token.address),
            (escrow.addCollateral, constants.COLLATERAL_AMOUNT, token.address),
        ]
    )

    print("Adding LoC for token to deployer...")
    add_credit = (
        line.addCredit,
        constants.DRAWN_RATE,  # 10%
        constants.FACILITY_RATE,  # 5%
        constants.CREDIT_AMOUNT,
        token.address,
        lender,
    )
    receipts = deployer.transact_batch([add_credit, add_credit])
    position_id = get_position_id(line, receipts[1])

    print("Borrowing as deployer...")
    check_allowance(token, owner=lender, spender=line.address, amount=constants.DRAW_AMOUNT)
    deployer.transact(line.borrow, position_id, constants.DRAW_AMOUNT)

    deployment = SecuredLineDeployment(
        token=token,
        oracle=oracle,
        libraries=libraries,
        spigot=spigot,
        escrow=escrow,
        line=line,
        position_id=position_id,
    )
    deployer.finalize(deployments=deployment.contracts)
    return deployment
