#!/usr/bin/python3

from addressbook_deploy.cli import ape_client_factory
from addressbook_deploy.runner import run_deployment
from addressbook_deploy.utils import params_filepath

PARAMS_FILEPATH = params_filepath("token")


def main():
    """
    Deploys Token and Pool into the existing AddressBook (ADDRESS_BOOK).
    Pool reads the token address from the AddressBook, so Token goes first.

    ape run deploy_token --network ethereum:sepolia:infura
    """
    raise SystemExit(run_deployment(PARAMS_FILEPATH, ape_client_factory(account=None)))
