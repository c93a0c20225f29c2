#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option

from line_deployment.constants import SEPOLIA
from line_deployment.networks import get_environment, is_local_network
from line_deployment.options import (
    autosign_option,
    deployer_option,
    params_option,
    verify_option,
)
from line_deployment.params import Deployer
from line_deployment.secured_line import deploy_secured_line
from line_deployment.utils import get_deployer_account

PARAMS_FILENAME = "secured-line.yml"


@click.command(cls=ConnectedProviderCommand, name="deploy-secured-line")
@network_option(required=True)
@deployer_option
@params_option
@verify_option
@autosign_option
def cli(network, deployer_alias, params_filepath, verify, autosign):
    """
    Deploys a revenue token, oracle, libraries, Spigot, Escrow and SecuredLoan
    on the test network, then opens a credit line and borrows against it.

    ape run deploy_secured_line --network ethereum:sepolia:infura
    """
    click.echo(f"Connected to {network.name} network.")
    environment = get_environment(SEPOLIA)
    params_filepath = params_filepath or environment.params_dir / PARAMS_FILENAME

    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify and not is_local_network(),
        account=get_deployer_account(deployer_alias),
        autosign=autosign,
    )
    deployment = deploy_secured_line(deployer=deployer)

    click.echo(f"Line of credit: {environment.explorer_url}address/{deployment.line.address}")
    click.echo(f"Borrowed against position: {deployment.position_id.hex()}")


if __name__ == "__main__":
    cli()
