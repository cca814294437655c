import typing
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, List, Optional

from ape import chain, networks, project
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance
from ape.exceptions import ApeException, VirtualMachineError
from ape.utils import EMPTY_BYTES32
from eth_utils import to_checksum_address
from ethpm_types import MethodABI
from web3 import Web3

from addressbook_deploy.confirm import _confirm_resolution, _continue
from addressbook_deploy.constants import (
    DEFAULT_INITIALIZER,
    EIP1967_ADMIN_SLOT,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_ADMIN_NAME,
    PROXY_NAME,
)
from addressbook_deploy.errors import (
    ConfigurationError,
    DeploymentError,
    RevertError,
    SubmissionError,
)
from addressbook_deploy.interfaces import ChainClient, ContractFactory

w3 = Web3()


@contextmanager
def _translate_errors(action: str):
    """Maps chain client failures onto the deployment error taxonomy."""
    try:
        yield
    except DeploymentError:
        raise
    except VirtualMachineError as e:
        raise RevertError(f"{action} reverted: {e}") from e
    except (ApeException, OSError) as e:
        raise SubmissionError(f"{action} failed: {e}") from e


def _get_method(instance: ContractInstance, method: str) -> Any:
    try:
        return getattr(instance, method)
    except AttributeError:
        raise ConfigurationError(f"{instance.contract_type.name} has no '{method}' method.")


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ConfigurationError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ConfigurationError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ConfigurationError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ConfigurationError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
) -> None:
    """Validates the constructor parameters against the constructor ABI."""
    if len(resolved_parameters) != len(abi_inputs):
        raise ConfigurationError(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        # validate name
        if abi_input.name != name:
            raise ConfigurationError(
                f"{contract_name} constructor parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input.name}'."
            )

        # validate value type
        if not w3.is_encodable(abi_input.type, value):
            raise ConfigurationError(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input.type}'"
            )


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.

    ape waits for the receipt of every transaction it sends (and raises when it
    reverted), so each call below returns only once the transaction is confirmed.
    """

    def __init__(self, account: Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

    def transact(self, instance: ContractInstance, method: str, *args) -> ReceiptAPI:
        handler = _get_method(instance, method)
        named_args = _validate_method_args(method_abis=handler.abis, args=args)
        base_message = (
            f"\nTransacting {instance.contract_type.name}[{instance.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        with _translate_errors(f"{instance.contract_type.name}.{method}"):
            return handler(*args, sender=self._account)

    def call(self, instance: ContractInstance, method: str, *args) -> Any:
        handler = _get_method(instance, method)
        with _translate_errors(f"{instance.contract_type.name}.{method} call"):
            return handler(*args)

    def deploy_contract(
        self, container: ContractContainer, resolved_params: OrderedDict
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name)

        with _translate_errors(f"Deploying {contract_name}"):
            return self._account.deploy(container, *resolved_params.values())


class ApeContractFactory(ContractFactory):
    """A project (or dependency) contract type deployed through an ape account."""

    def __init__(self, client: "ApeChainClient", container: ContractContainer):
        self.client = client
        self.container = container

    @property
    def name(self) -> str:
        return self.container.contract_type.name

    def deploy(self, constructor_params: OrderedDict) -> ContractInstance:
        _validate_constructor_abi_inputs(
            contract_name=self.name,
            abi_inputs=self._constructor_inputs(self.container),
            resolved_parameters=constructor_params,
        )
        return self.client.deploy_contract(self.container, constructor_params)

    @staticmethod
    def _constructor_inputs(container: ContractContainer) -> List[Any]:
        return list(container.constructor.abi.inputs)

    def _check_initializer(self, initializer: Optional[str], arguments: List[Any]) -> bool:
        """
        Returns False only when no initializer was named, the contract has no
        default initializer and there is nothing to pass to one.
        """
        method_name = initializer or DEFAULT_INITIALIZER
        method_abis = [
            abi for abi in self.container.contract_type.methods if abi.name == method_name
        ]
        if not method_abis:
            if initializer or arguments:
                raise ConfigurationError(f"{self.name} has no '{method_name}' method.")
            return False
        _validate_method_args(method_abis=method_abis, args=arguments)
        return True

    def _encode_initializer(
        self, implementation: ContractInstance, initializer: Optional[str], arguments: List[Any]
    ) -> bytes:
        if not self._check_initializer(initializer, arguments):
            return b""  # nothing to initialize
        method_name = initializer or DEFAULT_INITIALIZER
        return getattr(implementation, method_name).encode_input(*arguments)

    def deploy_proxy(
        self, initializer: Optional[str], arguments: List[Any]
    ) -> ContractInstance:
        self._check_initializer(initializer, arguments)
        implementation = self.client.deploy_contract(self.container, OrderedDict())
        data = self._encode_initializer(implementation, initializer, arguments)

        proxy_container = self.client.get_proxy_container(PROXY_NAME)
        proxy_params = OrderedDict(
            {
                "_logic": implementation.address,
                "initialOwner": self.client.deployer_address,
                "_data": data,
            }
        )
        _validate_constructor_abi_inputs(
            contract_name=PROXY_NAME,
            abi_inputs=self._constructor_inputs(proxy_container),
            resolved_parameters=proxy_params,
        )
        print(f"\nDeploying {PROXY_NAME} contract to proxy {self.name}.")
        proxy_contract = self.client.deploy_contract(proxy_container, proxy_params)
        print(
            f"\nWrapping {self.name} into {PROXY_NAME} "
            f"(as type {self.name}) at {proxy_contract.address}."
        )
        return self.container.at(proxy_contract.address)

    def upgrade(
        self, proxy_address: str, initializer: Optional[str] = None, arguments: List[Any] = None
    ) -> ContractInstance:
        arguments = arguments or list()
        if initializer:
            self._check_initializer(initializer, arguments)
        elif arguments:
            raise ConfigurationError(f"Upgrade arguments given for {self.name} without an initializer.")
        implementation = self.client.deploy_contract(self.container, OrderedDict())
        data = b""
        if initializer:
            data = self._encode_initializer(implementation, initializer, arguments)

        with _translate_errors(f"Reading proxy admin of {proxy_address}"):
            admin_slot = chain.provider.get_storage_at(
                address=proxy_address, slot=EIP1967_ADMIN_SLOT
            )
        if admin_slot == EMPTY_BYTES32:
            raise ConfigurationError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )

        admin_address = to_checksum_address(admin_slot[-20:])
        proxy_admin = self.client.get_proxy_container(PROXY_ADMIN_NAME).at(admin_address)
        self.client.transact(
            proxy_admin, "upgradeAndCall", proxy_address, implementation.address, data
        )
        return self.container.at(proxy_address)

    def at(self, address: str) -> ContractInstance:
        return self.container.at(address)


class ApeChainClient(Transactor, ChainClient):
    """Chain client backed by the connected ape provider and a single account."""

    def __init__(
        self,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        verify: bool = False,
    ):
        super().__init__(account=account, autosign=autosign)
        self.verify = verify

    @property
    def deployer_address(self) -> str:
        return self._account.address

    def get_factory(self, contract_name: str) -> ApeContractFactory:
        return ApeContractFactory(client=self, container=get_contract_container(contract_name))

    def get_proxy_container(self, contract_name: str) -> ContractContainer:
        try:
            oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
        except KeyError:
            raise ConfigurationError(
                f"Missing {OZ_DEPENDENCY_NAME}@{OZ_DEPENDENCY_VERSION} dependency; "
                "check ape-config.yaml."
            )
        return getattr(oz_dependency, contract_name)

    def finalize(self, instances: List[ContractInstance]) -> None:
        if self.verify:
            verify_contracts(contracts=instances)

    def print_deployment_info(self) -> None:
        print(
            f"Account: {self.deployer_address}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            sep="\n",
        )


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    if explorer is None:
        raise ConfigurationError("No block explorer plugin configured for this network.")
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        with _translate_errors(f"Verifying {instance.contract_type.name}"):
            explorer.publish_contract(instance.address)
