from pathlib import Path

import click

from addressbook_deploy.constants import ADDRESS_BOOK_ENVVAR
from addressbook_deploy.types import ChecksumAddress

params_option = click.option(
    "--constructor-params-filepath",
    "-f",
    "params_filepath",
    help="Deployment plan (YAML) filepath",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    envvar="DEPLOYMENT_PLAN",
    required=True,
)

registry_address_option = click.option(
    "--address-book",
    "-r",
    "registry_address",
    help=f"Address book to attach to; overrides {ADDRESS_BOOK_ENVVAR}.",
    type=ChecksumAddress(),
    required=False,
)
