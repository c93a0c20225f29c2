from pathlib import Path

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from line_deployment.registry import contract_type_name, contracts_from_registry
from line_deployment.types import ChecksumAddress
from line_deployment.utils import get_contract_container, verify_contracts


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Registry name of the contract to verify",
    type=click.STRING,
    required=True,
    multiple=True,
)
@click.option(
    "--registry-filepath",
    "-f",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="Registry of the deployment",
    required=False,
)
@click.option(
    "--address",
    "-a",
    help="Address of an unregistered contract; requires a single contract name",
    type=ChecksumAddress(),
    required=False,
)
def cli(network, contract_names, registry_filepath, address):
    """Verify deployed contracts."""
    if not (bool(registry_filepath) ^ bool(address)):
        raise click.BadOptionUsage(
            option_name="--registry-filepath",
            message=(
                f"Provide either 'registry_filepath' or 'address'; "
                f"got {registry_filepath}, {address}"
            ),
        )

    if address:
        if len(contract_names) != 1:
            raise click.BadOptionUsage(
                option_name="--address", message="Exactly one contract name is required."
            )
        contract_container = get_contract_container(contract_type_name(contract_names[0]))
        verify_contracts([contract_container.at(address)])
        return

    chain_id = networks.active_provider.chain_id
    contracts = contracts_from_registry(registry_filepath, chain_id=chain_id)

    contract_instances = []
    for contract_name in contract_names:
        try:
            contract_instances.append(contracts[contract_name])
        except KeyError:
            raise ValueError(
                f"Contract '{contract_name}' not found in registry, '{registry_filepath}', "
                f"for chain {chain_id}"
            )

    verify_contracts(contract_instances)


if __name__ == "__main__":
    cli()
