from collections import OrderedDict

from addressbook_deploy.errors import DeploymentAborted


def _declined(answer: str) -> bool:
    return answer.lower().strip() == "n"


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    answer = input(f"Deploy {contract_name} Y/N? ")
    if _declined(answer):
        print("Aborting deployment!")
        raise DeploymentAborted(f"Deployment of {contract_name} declined.")


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if _declined(answer):
        print("Aborting deployment!")
        raise DeploymentAborted("Transaction declined.")


def _confirm_resolution(resolved_params: OrderedDict, contract_name: str) -> None:
    """Asks the user to confirm the resolved constructor parameters for a single contract."""
    if len(resolved_params) == 0:
        print(f"\n(i) No constructor parameters for {contract_name}")
        _confirm_deployment(contract_name)
        return

    print(f"\nConstructor parameters for {contract_name}")
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
    _confirm_deployment(contract_name)
