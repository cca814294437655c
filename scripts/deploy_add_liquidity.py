#!/usr/bin/python3

from addressbook_deploy.cli import ape_client_factory
from addressbook_deploy.runner import run_deployment
from addressbook_deploy.utils import params_filepath

PARAMS_FILEPATH = params_filepath("add-liquidity")


def main():
    """
    Deploys AddLiquidity behind a proxy and registers it as 'addLiquidity'
    in the existing AddressBook (ADDRESS_BOOK).
    """
    raise SystemExit(run_deployment(PARAMS_FILEPATH, ape_client_factory(account=None)))
