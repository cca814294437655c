#!/usr/bin/python3

from addressbook_deploy.cli import ape_client_factory
from addressbook_deploy.runner import run_deployment
from addressbook_deploy.utils import params_filepath

PARAMS_FILEPATH = params_filepath("testnet")


def main():
    """
    Deploys a fresh AddressBook, seeds it with the DEX factory, router and
    treasury safe (FACTORY, ROUTER, SAFE) and deploys every module behind a
    proxy, registering each one as it goes. Prints NAME=address lines.

    ape run deploy_testnet --network ethereum:sepolia:infura
    """
    raise SystemExit(run_deployment(PARAMS_FILEPATH, ape_client_factory(account=None)))
