from itertools import count
from types import SimpleNamespace
from typing import Any, Dict, NamedTuple

import pytest

from line_deployment.params import Deployer

# Common constants
DEPLOYER_ADDRESS = "0x" + "1" * 40
TEAM_MULTISIG = "0x" + "2" * 40
DEBT_TREASURY = "0x" + "3" * 40
OHM_TREASURY = "0x" + "4" * 40
VESTING_START = 1_700_000_000

SECURED_LINE_CONSTANTS = {
    "MINT_AMOUNT": 5,
    "APPROVAL_AMOUNT": 100,
    "COLLATERAL_AMOUNT": 1,
    "DRAWN_RATE": 1000,
    "FACILITY_RATE": 500,
    "CREDIT_AMOUNT": 10,
    "DRAW_AMOUNT": 5,
}

TOKEN_LAUNCH_CONSTANTS = {
    "DEBT_TEAM_MULTISIG": TEAM_MULTISIG,
    "DEBT_TREASURY": DEBT_TREASURY,
    "OHM_TREASURY": OHM_TREASURY,
    "INITIAL_CREDIT_SUPPLY": 10**7,
    "INITIAL_DEBT_SUPPLY": 10**11,
}


# Fake chain objects


class FakeLog(NamedTuple):
    event_name: str
    event_arguments: Dict[str, Any]


class FakeReceipt:
    def __init__(self, contract, method_name, args, logs=()):
        self.contract = contract
        self.method_name = method_name
        self.args = args
        self.logs = list(logs)
        self.txn_hash = f"0x{id(self):064x}"

    def decode_logs(self, event):
        return [log for log in self.logs if log.event_name == event.name]


class FakeMethod:
    """A contract attribute; calling it directly is a view call."""

    def __init__(self, contract, name):
        self.contract = contract
        self.name = name

    def __call__(self, *args):
        return self.contract.view(self.name, *args)


class FakeContract:
    def __init__(self, name, address, sender):
        self.contract_type = SimpleNamespace(name=name)
        self.address = address
        self.sender = sender
        self.owner_address = sender
        self.loan_address = sender
        self.allowances = dict()
        self.positions = list()
        self.frozen = set()

    def __getattr__(self, item):
        return FakeMethod(self, item)

    def view(self, name, *args):
        if name == "owner":
            return self.owner_address
        if name == "loan":
            return self.loan_address
        if name == "allowance":
            return self.allowances.get(tuple(args), 0)
        raise AttributeError(name)

    def apply(self, name, args) -> FakeReceipt:
        logs = list()
        if name in self.frozen:
            pass
        elif name == "updateOwner":
            self.owner_address = args[0]
        elif name == "updateLoan":
            self.loan_address = args[0]
        elif name == "approve":
            self.allowances[(self.sender, args[0])] = args[1]
        elif name == "addCredit":
            position_id = len(self.positions).to_bytes(32, "big")
            self.positions.append(position_id)
            logs.append(FakeLog("AddCredit", {"id": position_id}))
        return FakeReceipt(self, name, args, logs)


class FakeDeployer:
    """Records deployments and transactions in the order they are issued."""

    def __init__(self, constants, reused=None):
        self.constants = SimpleNamespace(**constants)
        self.account = SimpleNamespace(address=DEPLOYER_ADDRESS)
        self.reused = reused or dict()
        self.log = list()
        self.instances = dict()
        self.fresh = set()
        self.verified = list()
        self.finalized = None
        self._addresses = count(0xA0)

    def get_account(self):
        return self.account

    def deploy(self, contract_name, *args, alias=None):
        name = f"{contract_name}:{alias}" if alias else contract_name
        if name in self.reused:
            instance = self.reused[name]
        else:
            address = "0x" + f"{next(self._addresses):040x}"
            instance = FakeContract(contract_name, address, sender=DEPLOYER_ADDRESS)
            self.fresh.add(address)
        self.instances[name] = instance
        self.log.append(("deploy", name, args))
        return instance

    def newly_deployed(self, instance):
        return instance.address in self.fresh

    def transact(self, method, *args):
        self.log.append(("transact", method.contract.contract_type.name, method.name, args))
        return method.contract.apply(method.name, args)

    def transact_batch(self, calls):
        return [self.transact(method, *args) for method, *args in calls]

    def verify_contracts(self, deployments):
        self.verified.extend(deployments)
        self.log.append(("verify", [d.contract_type.name for d in deployments]))

    def finalize(self, deployments):
        self.finalized = list(deployments)

    # helpers for assertions

    def transactions(self, method_name=None):
        return [
            entry
            for entry in self.log
            if entry[0] == "transact" and (method_name is None or entry[2] == method_name)
        ]

    def position(self, *entry_prefix):
        for index, entry in enumerate(self.log):
            if entry[: len(entry_prefix)] == entry_prefix:
                return index
        raise AssertionError(f"{entry_prefix} not found in {self.log}")


# Fixtures


@pytest.fixture
def line_deployer():
    return FakeDeployer(SECURED_LINE_CONSTANTS)


@pytest.fixture
def token_deployer():
    return FakeDeployer(TOKEN_LAUNCH_CONSTANTS)


@pytest.fixture(autouse=True)
def reset_deployer_state():
    Deployer._reset_records()
    Deployer._set_account(None)
    yield
    Deployer._reset_records()
    Deployer._set_account(None)
