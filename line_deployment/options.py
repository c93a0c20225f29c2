from pathlib import Path

import click

from line_deployment.constants import SUPPORTED_ENVIRONMENTS

environment_option = click.option(
    "--environment",
    "-e",
    help="Deployment environment",
    type=click.Choice(SUPPORTED_ENVIRONMENTS),
    required=True,
)

deployer_option = click.option(
    "--deployer",
    "deployer_alias",
    help="Alias of the ape account to deploy with; prompts when omitted.",
    envvar="DEPLOYER",
    type=click.STRING,
    required=False,
)

params_option = click.option(
    "--params",
    "-p",
    "params_filepath",
    help="Deployment parameters YAML; defaults to the environment's file.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Verify deployed contracts on the block explorer.",
    default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Automatically sign transactions.",
    is_flag=True,
)
