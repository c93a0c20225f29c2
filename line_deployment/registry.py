import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from eth_typing import ABI

from line_deployment.utils import _load_json, get_contract_container

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}

ALIAS_DELIMITER = ":"


def registry_name(contract_type_name: ContractName, alias: Optional[str] = None) -> ContractName:
    """Returns the registry name of a contract, e.g. TokenVesting:TeamVesting."""
    if not alias:
        return contract_type_name
    return f"{contract_type_name}{ALIAS_DELIMITER}{alias}"


def contract_type_name(name: ContractName) -> ContractName:
    """Returns the contract type of a (possibly aliased) registry name."""
    return name.split(ALIAS_DELIMITER)[0]


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in a registry file."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True))
    return contract_abi


def registry_entry(contract_instance: ContractInstance, name: ContractName) -> RegistryEntry:
    """Returns the registry entry of a freshly deployed contract instance."""
    receipt = contract_instance.receipt
    entry = RegistryEntry(
        name=name,
        address=to_checksum_address(contract_instance.address),
        abi=_get_abi(contract_instance),
        chain_id=receipt.chain_id,
        tx_hash=receipt.txn_hash,
        block_number=receipt.block_number,
        deployer=receipt.transaction.sender,
    )
    return entry


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """
    Writes registry entries to a file. Chains present in ``entries`` replace
    their section of an existing registry; other chains are left untouched.
    """

    if not entries:
        if not silent:
            print("No entries provided.")
        return filepath

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        if not silent:
            print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)
        existing_data.update(data)
        data = existing_data
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_entries_for_chain(filepath: Path, chain_id: ChainId) -> Dict[str, RegistryEntry]:
    """Returns the registry entries of a single chain, keyed by contract name."""
    if not filepath.exists():
        return dict()
    return {e.name: e for e in read_registry(filepath) if e.chain_id == chain_id}


def contracts_from_registry(filepath: Path, chain_id: ChainId) -> Dict[str, ContractInstance]:
    """Returns a dictionary of contract instances from a registry file."""
    deployments = dict()
    for contract_name, entry in registry_entries_for_chain(filepath, chain_id).items():
        contract_container = get_contract_container(contract_type_name(contract_name))
        deployments[contract_name] = contract_container.at(entry.address)
    return deployments
