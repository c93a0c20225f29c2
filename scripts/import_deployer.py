#!/usr/bin/env python3

import os

import click
from ape_accounts import import_account_from_mnemonic

from line_deployment.networks import get_environment, mnemonic
from line_deployment.options import environment_option

PASSPHRASE_ENVVAR = "DEPLOYER_PASSPHRASE"


@click.command(name="import-deployer")
@environment_option
@click.option(
    "--alias",
    help="Alias of the imported ape account.",
    type=click.STRING,
    default="deployer",
)
def cli(environment, alias):
    """Import the deployer account of an environment from its mnemonic."""
    environment = get_environment(environment)
    try:
        passphrase = os.environ[PASSPHRASE_ENVVAR]
    except KeyError:
        raise click.ClickException(f"{PASSPHRASE_ENVVAR} is not set.")

    account = import_account_from_mnemonic(alias, passphrase, mnemonic(environment))
    click.echo(f"Account imported: {account.address}")


if __name__ == "__main__":
    cli()
