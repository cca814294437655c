from collections import OrderedDict
from itertools import count

import pytest
from eth_utils import to_checksum_address

from addressbook_deploy.config import DeploymentConfig
from addressbook_deploy.constants import ZERO_ADDRESS
from addressbook_deploy.errors import ConfigurationError, RevertError
from addressbook_deploy.interfaces import ChainClient, ContractFactory

DEPLOYER = to_checksum_address("0x" + "de" * 20)
ROUTER = to_checksum_address("0x" + "11" * 20)
FACTORY = to_checksum_address("0x" + "22" * 20)
SAFE = to_checksum_address("0x" + "33" * 20)


# In-memory contracts


class FakeContract:
    def __init__(self, chain, contract_name, address):
        self.chain = chain
        self.contract_name = contract_name
        self.address = address
        self.implementation = None
        self.constructor_params = OrderedDict()


class FakeAddressBook(FakeContract):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entries = dict()

    def get(self, name):
        return self.entries.get(name, ZERO_ADDRESS)

    def set(self, name, address):
        self.entries[name] = address


class FakeModule(FakeContract):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.initialize_calls = list()
        self.address_book = None

    def initialize(self, *args):
        if self.initialize_calls:
            raise RevertError("Initializable: contract is already initialized")
        self.initialize_calls.append(args)

    def setAddressBook(self, address):
        self.address_book = address

    def lookup(self, name):
        address = self.chain.contracts[self.address_book].get(name)
        if address == ZERO_ADDRESS:
            raise RevertError(f"{name} not registered")
        return address


class FakePool(FakeModule):
    """Reads the token address out of the address book during its own setup."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.token = None
        self.liquidity_created = False

    def setAddressBook(self, address):
        super().setAddressBook(address)
        self.token = self.lookup("token")

    def createLiquidity(self):
        self.liquidity_created = True


class FakeERC20(FakeModule):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.balances = dict()

    def mintTo(self, to, amount):
        self.balances[to] = self.balances.get(to, 0) + amount


class FakeUpgradeable(FakeModule):
    """Implementation without an initializer."""

    initialize = None


CONTRACT_TYPES = {
    "AddressBook": FakeAddressBook,
    "Pool": FakePool,
    "FakeToken": FakeERC20,
    "NoInit": FakeUpgradeable,
    "Legacy": FakeContract,
}


class FakeFactory(ContractFactory):
    def __init__(self, chain, contract_name):
        self.chain = chain
        self.contract_name = contract_name

    @property
    def name(self):
        return self.contract_name

    def _new(self):
        self.chain.check_failure(self.contract_name, "deploy")
        contract_class = CONTRACT_TYPES.get(self.contract_name, FakeModule)
        instance = contract_class(self.chain, self.contract_name, self.chain.next_address())
        self.chain.contracts[instance.address] = instance
        return instance

    def deploy(self, constructor_params):
        instance = self._new()
        instance.constructor_params = constructor_params
        self.chain.log.append((self.contract_name, "deploy", tuple(constructor_params.values())))
        return instance

    def deploy_proxy(self, initializer, arguments):
        method_name = initializer or "initialize"
        contract_class = CONTRACT_TYPES.get(self.contract_name, FakeModule)
        if getattr(contract_class, method_name, None) is None and (initializer or arguments):
            raise ConfigurationError(f"{self.contract_name} has no '{method_name}' method.")

        implementation = self._new()
        proxy = self._new()
        proxy.implementation = implementation.address
        self.chain.log.append((self.contract_name, "deploy_proxy", tuple(arguments)))
        method = getattr(proxy, method_name, None)
        if method is not None:
            method(*arguments)
        return proxy

    def upgrade(self, proxy_address, initializer=None, arguments=None):
        implementation = self._new()
        proxy = self.chain.contracts[proxy_address]
        proxy.implementation = implementation.address
        self.chain.log.append((self.contract_name, "upgrade", (proxy_address,)))
        if initializer:
            getattr(proxy, initializer)(*(arguments or list()))
        return proxy

    def at(self, address):
        return self.chain.contracts[address]


class FakeChainClient(ChainClient):
    """
    Deterministic chain: fresh sequential addresses, every transaction applied
    immediately. Failures are injected per (contract, method).
    """

    def __init__(self, deployer=DEPLOYER):
        self._deployer = deployer
        self._addresses = count(0x1000)
        self.contracts = dict()
        self.log = list()
        self.failures = dict()
        self.finalized = None

    @property
    def deployer_address(self):
        return self._deployer

    def next_address(self):
        return to_checksum_address("0x" + format(next(self._addresses), "040x"))

    def fail(self, contract_name, method, error=None):
        self.failures[(contract_name, method)] = error or RevertError(
            f"{contract_name}.{method} reverted"
        )

    def check_failure(self, contract_name, method):
        error = self.failures.get((contract_name, method))
        if error is not None:
            raise error

    def get_factory(self, contract_name):
        return FakeFactory(self, contract_name)

    def transact(self, instance, method, *args):
        handler = getattr(instance, method, None)
        if handler is None:
            raise ConfigurationError(f"{instance.contract_name} has no '{method}' method.")
        self.check_failure(instance.contract_name, method)
        result = handler(*args)
        self.log.append((instance.contract_name, method, args))
        return result

    def call(self, instance, method, *args):
        return getattr(instance, method)(*args)

    def finalize(self, instances):
        self.finalized = list(instances)

    def transactions(self, method=None):
        return [entry for entry in self.log if method is None or entry[1] == method]


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def config():
    return DeploymentConfig(router_address=ROUTER, factory_address=FACTORY, safe_address=SAFE)


@pytest.fixture
def address_book(chain):
    from addressbook_deploy.registry import AddressBook

    instance = chain.get_factory("AddressBook").deploy(OrderedDict())
    return AddressBook(client=chain, instance=instance)
