from typing import Any, Optional

from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from addressbook_deploy.constants import ADDRESS_BOOK_CONTRACT, ZERO_ADDRESS
from addressbook_deploy.errors import ConfigurationError, MissingRegistryEntry
from addressbook_deploy.interfaces import ChainClient

ContractName = str


class AddressBook:
    """
    The on-chain registry mapping symbolic module names to addresses.

    Nothing is cached: every lookup is a call against the contract, so the
    latest write always wins.
    """

    GET_METHOD = "get"
    SET_METHOD = "set"

    def __init__(self, client: ChainClient, instance: Any):
        self.client = client
        self.instance = instance

    @property
    def address(self) -> ChecksumAddress:
        return to_checksum_address(self.instance.address)

    @classmethod
    def at(cls, client: ChainClient, address: Optional[str]) -> "AddressBook":
        if not address or not is_address(address):
            raise ConfigurationError(f"Invalid address book address: '{address}'")
        if to_checksum_address(address) == ZERO_ADDRESS:
            raise ConfigurationError("Address book address must not be the zero address")
        factory = client.get_factory(ADDRESS_BOOK_CONTRACT)
        return cls(client=client, instance=factory.at(to_checksum_address(address)))

    def get(self, name: ContractName) -> ChecksumAddress:
        """Returns the registered address, or the zero address when unset."""
        address = self.client.call(self.instance, self.GET_METHOD, name)
        if not address:
            return ZERO_ADDRESS
        return to_checksum_address(address)

    def require(self, name: ContractName, module: Optional[str] = None) -> ChecksumAddress:
        address = self.get(name)
        if address == ZERO_ADDRESS:
            raise MissingRegistryEntry(name, module=module)
        return address

    def set(self, name: ContractName, address: str) -> Any:
        if not isinstance(address, str) or not is_address(address):
            raise ConfigurationError(f"Refusing to register '{name}' at invalid address '{address}'")
        if to_checksum_address(address) == ZERO_ADDRESS:
            raise ConfigurationError(f"Refusing to register '{name}' at the zero address")
        print(f"Registering {name} at {address}")
        return self.client.transact(self.instance, self.SET_METHOD, name, address)
