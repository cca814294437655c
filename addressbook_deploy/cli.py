#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from addressbook_deploy.config import DeploymentConfig
from addressbook_deploy.options import params_option, registry_address_option
from addressbook_deploy.runner import run_deployment
from addressbook_deploy.transactor import ApeChainClient


def ape_client_factory(account):
    def factory(config: DeploymentConfig) -> ApeChainClient:
        client = ApeChainClient(account=account, autosign=config.autosign, verify=config.verify)
        client.print_deployment_info()
        return client

    return factory


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@params_option
@registry_address_option
@click.pass_context
def cli(ctx, network, account, params_filepath, registry_address):
    """
    Deploys every module of a plan and wires each one into the address book.

    Addresses are read from ADDRESS_BOOK, ROUTER, FACTORY and SAFE (a .env file
    is honoured); AUTOSIGN and VERIFY toggle signing prompts and verification.
    """
    exit_status = run_deployment(
        params_filepath, ape_client_factory(account), registry_address=registry_address
    )
    ctx.exit(exit_status)


if __name__ == "__main__":
    cli()
