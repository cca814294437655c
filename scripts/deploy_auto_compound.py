#!/usr/bin/python3

from addressbook_deploy.cli import ape_client_factory
from addressbook_deploy.runner import run_deployment
from addressbook_deploy.utils import params_filepath

PARAMS_FILEPATH = params_filepath("auto-compound")


def main():
    """
    Deploys AutoCompoundV2 behind a proxy and registers it as 'autocompound'
    in the existing AddressBook (ADDRESS_BOOK).
    """
    raise SystemExit(run_deployment(PARAMS_FILEPATH, ape_client_factory(account=None)))
