#!/usr/bin/python3

from addressbook_deploy.cli import ape_client_factory
from addressbook_deploy.runner import run_deployment
from addressbook_deploy.utils import params_filepath

PARAMS_FILEPATH = params_filepath("upgrade-auto-compound")


def main():
    """
    Upgrades the 'autocompound' proxy registered in the AddressBook
    (ADDRESS_BOOK) to a freshly deployed AutoCompoundV2 implementation.
    The AddressBook entry is unchanged.
    """
    raise SystemExit(run_deployment(PARAMS_FILEPATH, ape_client_factory(account=None)))
