import typing
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from addressbook_deploy.constants import (
    ADDRESS_BOOK_CONTRACT,
    ADDRESS_BOOK_OUTPUT,
    SET_ADDRESS_BOOK_METHOD,
)
from addressbook_deploy.errors import ConfigurationError, DeploymentError
from addressbook_deploy.interfaces import ChainClient
from addressbook_deploy.params import (
    DeploymentPlan,
    ModuleDescriptor,
    ResolutionContext,
    _resolve_param,
)
from addressbook_deploy.registry import AddressBook
from addressbook_deploy.utils import format_output


class DeploymentRecord(typing.NamedTuple):
    """Outcome of a single module deployment; lives only as long as the run."""

    name: str
    contract: str
    address: ChecksumAddress
    proxied: bool
    output: str
    upgraded: bool = False


class DeploymentResult(typing.NamedTuple):
    plan: str
    records: List[DeploymentRecord]
    error: Optional[DeploymentError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def address_of(self, name: str) -> ChecksumAddress:
        for record in self.records:
            if record.name == name:
                return record.address
        raise KeyError(name)


def _registry_record(address_book: AddressBook) -> DeploymentRecord:
    return DeploymentRecord(
        name=ADDRESS_BOOK_CONTRACT,
        contract=ADDRESS_BOOK_CONTRACT,
        address=address_book.address,
        proxied=False,
        output=ADDRESS_BOOK_OUTPUT,
    )


def exit_code(result: DeploymentResult) -> int:
    return 0 if result.ok else 1


class Reporter:
    """Prints deployed addresses, as NAME=address lines in bulk mode."""

    def __init__(self, bulk: bool = False, echo: Callable[[str], Any] = print):
        self.bulk = bulk
        self.echo = echo

    def report(self, record: DeploymentRecord) -> None:
        if self.bulk:
            self.echo(format_output(record.output, record.address))
        elif record.upgraded:
            self.echo(f"{record.contract} proxy upgraded at: {record.address}")
        elif record.proxied:
            self.echo(f"{record.contract} proxy deployed to: {record.address}")
        else:
            self.echo(f"{record.contract} deployed to: {record.address}")


class Orchestrator:
    """
    Deploys modules one at a time and wires each into the address book.

    For every module: resolve arguments, deploy (behind a proxy or directly),
    hand it the address book, register it under its symbolic name and report
    the address. Each step waits for its transaction to be confirmed before
    the next is issued. Nothing is retried or rolled back: the first failure
    ends the run and already registered entries stay in place.
    """

    def __init__(self, client: ChainClient, reporter: Optional[Reporter] = None):
        self.client = client
        self.reporter = reporter or Reporter()
        self.deployed: Dict[str, Any] = OrderedDict()

    def _context(self, address_book: AddressBook, module: str) -> ResolutionContext:
        return ResolutionContext(
            address_book=address_book,
            deployer_address=self.client.deployer_address,
            module=module,
        )

    def deploy_registry(self, seeds: Optional[OrderedDict] = None) -> AddressBook:
        """Deploys a fresh address book and writes the seed entries into it."""
        print(f"\nDeploying {ADDRESS_BOOK_CONTRACT}")
        factory = self.client.get_factory(ADDRESS_BOOK_CONTRACT)
        instance = factory.deploy(OrderedDict())
        address_book = AddressBook(client=self.client, instance=instance)
        self.deployed[ADDRESS_BOOK_CONTRACT] = instance
        self.reporter.report(_registry_record(address_book))

        context = self._context(address_book, module=ADDRESS_BOOK_CONTRACT)
        for name, value in (seeds or OrderedDict()).items():
            address_book.set(name, _resolve_param(value, context))
        return address_book

    def attach_registry(self, address: Optional[str]) -> AddressBook:
        if not address:
            raise ConfigurationError("No address book address configured.")
        return AddressBook.at(client=self.client, address=address)

    def deploy_module(self, module: ModuleDescriptor, address_book: AddressBook) -> DeploymentRecord:
        if module.upgrade:
            return self.upgrade_module(module, address_book)

        context = self._context(address_book, module=module.name)
        self._check_lookups(module, address_book)

        factory = self.client.get_factory(module.contract)
        if module.proxied:
            arguments = module.resolve_arguments(context)
            print(f"\nDeploying {module.contract} proxy as '{module.name}'")
            instance = factory.deploy_proxy(module.initializer, arguments)
        else:
            constructor_params = module.resolve_constructor(context)
            print(f"\nDeploying {module.contract} as '{module.name}'")
            instance = factory.deploy(constructor_params)

        address = to_checksum_address(instance.address)
        if module.address_book_aware:
            self.client.transact(instance, SET_ADDRESS_BOOK_METHOD, address_book.address)
        address_book.set(module.name, address)

        record = DeploymentRecord(
            name=module.name,
            contract=module.contract,
            address=address,
            proxied=module.proxied,
            output=module.output_name,
        )
        self.deployed[module.name] = instance
        self.reporter.report(record)

        self._run_calls(module, address_book)
        return record

    def upgrade_module(
        self, module: ModuleDescriptor, address_book: AddressBook
    ) -> DeploymentRecord:
        """Points the proxy registered under the module's name at a new implementation."""
        context = self._context(address_book, module=module.name)
        proxy_address = address_book.require(module.name, module=module.name)
        self._check_lookups(module, address_book)
        arguments = module.resolve_arguments(context)

        print(f"\nUpgrading '{module.name}' proxy at {proxy_address} to {module.contract}")
        factory = self.client.get_factory(module.contract)
        instance = factory.upgrade(proxy_address, module.initializer, arguments)

        record = DeploymentRecord(
            name=module.name,
            contract=module.contract,
            address=to_checksum_address(instance.address),
            proxied=True,
            output=module.output_name,
            upgraded=True,
        )
        self.deployed[module.name] = instance
        self.reporter.report(record)

        self._run_calls(module, address_book)
        return record

    def _check_lookups(self, module: ModuleDescriptor, address_book: AddressBook) -> None:
        """
        Fails before the module's first transaction when a call target was not
        deployed in this run or a name it reads has no address book entry.
        """
        for call in module.calls:
            target_name = call.target or module.name
            if target_name != module.name and target_name not in self.deployed:
                raise ConfigurationError(
                    f"Call target '{target_name}' was not deployed in this run.", module.name
                )
        for name in module.dependencies():
            if name not in self.deployed:
                address_book.require(name, module=module.name)

    def _run_calls(self, module: ModuleDescriptor, address_book: AddressBook) -> None:
        context = self._context(address_book, module=module.name)
        for call in module.calls:
            target_name = call.target or module.name
            target = self.deployed.get(target_name)
            if target is None:
                raise ConfigurationError(
                    f"Call target '{target_name}' was not deployed in this run.", module.name
                )
            arguments = _resolve_param(list(call.arguments), context)
            self.client.transact(target, call.method, *arguments)

    def run(
        self, plan: DeploymentPlan, registry_address: Optional[str] = None
    ) -> DeploymentResult:
        """Executes a plan; failures are returned, not raised."""
        self.reporter.bulk = self.reporter.bulk or plan.bulk
        records = list()
        try:
            if plan.deploys_registry:
                address_book = self.deploy_registry(plan.seeds)
                records.append(_registry_record(address_book))
            else:
                address_book = self.attach_registry(registry_address)

            for module in plan.modules:
                records.append(self.deploy_module(module, address_book))

            self.client.finalize(list(self.deployed.values()))
        except DeploymentError as error:
            return DeploymentResult(plan=plan.name, records=records, error=error)

        return DeploymentResult(plan=plan.name, records=records)
