from collections import OrderedDict
from typing import List

from ape.utils import ZERO_ADDRESS


def _abort() -> None:
    print("Aborting deployment!")
    exit(-1)


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    answer = input(f"Deploy {contract_name} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for deployment parameter; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _contains_zero_address(value) -> bool:
    if isinstance(value, list):
        return any(_contains_zero_address(v) for v in value)
    return value == ZERO_ADDRESS


def _confirm_resolution(
    resolved_params: OrderedDict, contract_name: str, libraries: List[str] = None
) -> None:
    """Asks the user to confirm the resolved constructor parameters for a single contract."""
    if libraries:
        print(f"\nLinked libraries for {contract_name}: {', '.join(libraries)}")

    if len(resolved_params) == 0:
        print(f"\n(i) No constructor parameters for {contract_name}")
        _confirm_deployment(contract_name)
        return

    print(f"\nConstructor parameters for {contract_name}")
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
    _confirm_deployment(contract_name)
    if any(_contains_zero_address(v) for v in resolved_params.values()):
        _confirm_zero_address()
