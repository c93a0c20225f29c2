import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from ape import accounts, compilers, networks, project
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts import ContractContainer, ContractInstance
from ape.exceptions import ApeException

from line_deployment.constants import ALREADY_VERIFIED_MESSAGES, ARTIFACTS_DIR
from line_deployment.networks import is_local_network

ETHERSCAN_API_KEY_ENVVAR = "ETHERSCAN_API_KEY"


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the artifact file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def validate_config(config: Dict) -> Path:
    """
    Checks the shape of a parameters file and that its chain_id
    matches the connected network. Returns the registry filepath.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Constructor parameters file missing 'contracts' field.")

    config_chain_id = int(config_chain_id)
    network_chain_id = networks.provider.network.chain_id
    if config_chain_id != network_chain_id and not is_local_network():
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({network_chain_id})."
        )

    return get_artifact_filepath(config=config)


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the explorer API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    if not os.environ.get(ETHERSCAN_API_KEY_ENVVAR):
        raise ValueError(f"{ETHERSCAN_API_KEY_ENVVAR} is not set.")


def check_infura_plugin() -> None:
    """Checks that the ape-infura plugin is installed."""
    if is_local_network():
        return  # unnecessary for local deployment
    if networks.provider.name != "infura":
        return  # unnecessary when using a provider different than infura
    try:
        import ape_infura  # noqa: F401
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    for envvar in _ENVIRONMENT_VARIABLE_NAMES:
        api_key = os.environ.get(envvar)
        if api_key:
            break
    else:
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()
    check_infura_plugin()


def is_already_verified(error: Exception) -> bool:
    """Returns True if an explorer error only reports that the source is already verified."""
    message = str(error)
    return any(known in message for known in ALREADY_VERIFIED_MESSAGES)


def verify_contract(name: str, instance: ContractInstance, explorer=None) -> None:
    """
    Publishes the source of a single deployed contract to the block explorer.
    A contract that is already verified counts as a successful verification.
    """
    explorer = explorer or networks.provider.network.explorer
    if explorer is None:
        raise ValueError(f"No block explorer configured for {networks.provider.network.name}.")

    print(f"(i) Verifying {name} at {instance.address}...")
    try:
        explorer.publish_contract(instance.address)
    except ApeException as e:
        if not is_already_verified(e):
            print(f"Error verifying {name}")
            raise
        print(f"{name} already verified, skipping.")
    else:
        print(f"Successfully verified {name}")


def verify_contracts(contracts: List[ContractInstance], explorer=None) -> None:
    """Verifies a batch of contracts; the first real failure aborts the batch."""
    for instance in contracts:
        verify_contract(instance.contract_type.name, instance, explorer=explorer)


def get_contract_project(contract: str):
    """Returns the project, root or dependency, that provides a contract."""
    if hasattr(project, contract):
        return project

    # not in root project; check dependencies
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        dependency_api = list(dependency_versions.values())[0]
        if hasattr(dependency_api, contract):
            return dependency_api
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    """
    Returns the container of a contract by name. Contracts that link libraries
    only compile once those libraries are linked (see ``link_library``).
    """
    return getattr(get_contract_project(contract), contract)


def link_library(library: ContractInstance) -> None:
    """
    Registers a deployed library and recompiles the project that provides it,
    so that contracts using the library compile with its address.
    """
    library_name = library.contract_type.name
    print(f"(i) Linking {library_name} at {library.address}")
    compilers.solidity.add_library(library, project=get_contract_project(library_name))


def get_deployer_account(alias: Optional[str] = None) -> AccountAPI:
    """
    Returns the deployer account: the first test account on a local network,
    otherwise the named account or an interactively selected one.
    """
    if is_local_network():
        return accounts.test_accounts[0]
    if alias:
        return accounts.load(alias)
    return select_account()


def registry_filepath_from_name(name: str) -> Path:
    p = ARTIFACTS_DIR / f"{name}.json"
    if not p.exists():
        raise ValueError(f"No registry found for '{name}'")

    return p


def get_chain_name(chain_id: int) -> str:
    """Returns the name of the chain given its chain ID."""
    for ecosystem_name, ecosystem in networks.ecosystems.items():
        for network_name, network in ecosystem.networks.items():
            if network.chain_id == chain_id:
                return f"{ecosystem_name} {network_name}"
    raise ValueError(f"Chain ID {chain_id} not found in networks.")
