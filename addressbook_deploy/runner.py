from pathlib import Path
from typing import Callable, Optional

import click

from addressbook_deploy.config import DeploymentConfig
from addressbook_deploy.errors import DeploymentError
from addressbook_deploy.interfaces import ChainClient
from addressbook_deploy.orchestrator import DeploymentResult, Orchestrator, Reporter, exit_code
from addressbook_deploy.params import DeploymentPlan

ClientFactory = Callable[[DeploymentConfig], ChainClient]


def _report_failure(result: DeploymentResult) -> None:
    click.echo(f"Deployment '{result.plan}' failed: {result.error}", err=True)
    if result.records:
        registered = ", ".join(record.name for record in result.records)
        click.echo(f"Left in place from this run: {registered}", err=True)


def run_deployment(
    params_filepath: Path,
    client_factory: ClientFactory,
    config: Optional[DeploymentConfig] = None,
    registry_address: Optional[str] = None,
) -> int:
    """
    Loads the configuration and plan, runs it and returns the process exit
    status: 0 on success, 1 on any failure.
    """
    try:
        config = config or DeploymentConfig.from_env()
        if registry_address:
            config = config._replace(registry_address=registry_address)
        plan = DeploymentPlan.from_yaml(params_filepath, deployment_config=config)
        client = client_factory(config)
    except DeploymentError as error:
        click.echo(f"Error: {error}", err=True)
        return 1

    orchestrator = Orchestrator(client=client, reporter=Reporter(bulk=plan.bulk, echo=click.echo))
    result = orchestrator.run(plan, registry_address=config.registry_address)
    if not result.ok:
        _report_failure(result)
    return exit_code(result)
