#!/usr/bin/python3


from itertools import groupby
from pathlib import Path
from typing import List, Optional, Tuple

import click
from ape.cli import ConnectedProviderCommand

from line_deployment.constants import ARTIFACTS_DIR
from line_deployment.registry import RegistryEntry, read_registry
from line_deployment.utils import get_chain_name, registry_filepath_from_name


def _format_chain_name(chain_name: str) -> str:
    """Format the chain name to capitalize each word and join with slashes."""
    return "/".join(word.capitalize() for word in chain_name.split())


def _get_registry_entries(name: Optional[str] = None) -> List[Tuple[str, List[RegistryEntry]]]:
    """Parse the named registry file, or every registry file in the artifacts directory."""
    if name:
        filepaths = [registry_filepath_from_name(name)]
    else:
        filepaths = sorted(ARTIFACTS_DIR.glob("*.json"))

    registry_entries = list()
    for filepath in filepaths:
        entries = sorted(read_registry(filepath=filepath), key=lambda e: e.chain_id)
        registry_entries.append((Path(filepath).stem, entries))
    return registry_entries


def _display_registry_entries(registry_entries: List[Tuple[str, List[RegistryEntry]]]) -> None:
    """Display registry entries grouped by chain ID."""
    for registry, entries in registry_entries:
        grouped_entries = groupby(entries, key=lambda e: e.chain_id)
        click.secho(f"\n{registry}", fg="green")

        for chain_id, chain_entries in grouped_entries:
            chain_name = _format_chain_name(get_chain_name(chain_id))
            click.secho(f"    {chain_name}", fg="yellow")

            for index, entry in enumerate(chain_entries, start=1):
                click.secho(f"        {index}. {entry.name} {entry.address}", fg="cyan")


@click.command(cls=ConnectedProviderCommand, name="list-contracts")
@click.option(
    "--registry",
    "-r",
    help="Registry name, e.g. secured-line-sepolia",
    type=click.STRING,
)
def cli(registry):
    """List all contracts in the registries. Optionally filter by registry."""
    registry_entries = _get_registry_entries(registry)
    _display_registry_entries(registry_entries)


if __name__ == "__main__":
    cli()
