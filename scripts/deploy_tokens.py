#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option

from line_deployment.constants import MAINNET
from line_deployment.networks import get_environment, is_local_network
from line_deployment.options import (
    autosign_option,
    deployer_option,
    params_option,
    verify_option,
)
from line_deployment.params import Deployer
from line_deployment.token_launch import deploy_tokens
from line_deployment.utils import get_deployer_account

PARAMS_FILENAME = "tokens.yml"


@click.command(cls=ConnectedProviderCommand, name="deploy-tokens")
@network_option(required=True)
@deployer_option
@params_option
@verify_option
@autosign_option
def cli(network, deployer_alias, params_filepath, verify, autosign):
    """
    Deploys CREDIT and DEBT, distributes the DEBT supply and starts its vesting.

    ape run deploy_tokens --network ethereum:mainnet:infura
    """
    click.echo(f"Connected to {network.name} network.")
    environment = get_environment(MAINNET)
    params_filepath = params_filepath or environment.params_dir / PARAMS_FILENAME

    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify and not is_local_network(),
        account=get_deployer_account(deployer_alias),
        autosign=autosign,
    )
    deployment = deploy_tokens(deployer=deployer)

    click.echo(f"CREDIT: {environment.explorer_url}address/{deployment.credit.address}")
    click.echo(f"DEBT: {environment.explorer_url}address/{deployment.debt.address}")
    for alias, vesting in deployment.vesting.items():
        schedule = deployment.schedules[alias]
        click.echo(
            f"{alias}: {environment.explorer_url}address/{vesting.address} "
            f"({schedule.amount} DEBT)"
        )


if __name__ == "__main__":
    cli()
