import os
from pathlib import Path
from typing import NamedTuple

from ape import networks

from line_deployment.constants import (
    CONSTRUCTOR_PARAMS_DIR,
    LOCAL_NETWORKS,
    MAINNET,
    SEPOLIA,
)


class Environment(NamedTuple):
    """A named chain environment that deployments can target."""

    name: str
    chain_id: int
    rpc_envvar: str
    mnemonic_envvar: str
    explorer_url: str

    @property
    def params_dir(self) -> Path:
        return CONSTRUCTOR_PARAMS_DIR / self.name


ENVIRONMENTS = {
    MAINNET: Environment(
        name=MAINNET,
        chain_id=1,
        rpc_envvar="MAINNET_ETH_RPC",
        mnemonic_envvar="MAINNET_ETH_MNEMONIC",
        explorer_url="https://etherscan.io/",
    ),
    SEPOLIA: Environment(
        name=SEPOLIA,
        chain_id=11155111,
        rpc_envvar="SEPOLIA_ETH_RPC",
        mnemonic_envvar="SEPOLIA_ETH_MNEMONIC",
        explorer_url="https://sepolia.etherscan.io/",
    ),
}


def get_environment(name: str) -> Environment:
    try:
        return ENVIRONMENTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown environment '{name}'; expected one of {', '.join(ENVIRONMENTS)}"
        )


def _required_envvar(envvar: str) -> str:
    value = os.environ.get(envvar)
    if not value:
        raise ValueError(f"{envvar} is not set.")
    return value


def mnemonic(environment: Environment) -> str:
    """Returns the deployer mnemonic of an environment from its environment variable."""
    return _required_envvar(environment.mnemonic_envvar)


def is_local_network() -> bool:
    """Returns True when connected to a local development network."""
    return networks.provider.network.name in LOCAL_NETWORKS
