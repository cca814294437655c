import os
import typing
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from addressbook_deploy.constants import (
    ADDRESS_BOOK_ENVVAR,
    AUTOSIGN_ENVVAR,
    FACTORY_ENVVAR,
    ROUTER_ENVVAR,
    SAFE_ENVVAR,
    VERIFY_ENVVAR,
    ZERO_ADDRESS,
)
from addressbook_deploy.errors import ConfigurationError

TRUTHY = ("1", "true", "yes", "y", "on")


def _parse_address(envvar: str, value: Optional[str]) -> Optional[ChecksumAddress]:
    """Returns a checksum address, or None for an unset/empty value."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not is_address(value):
        raise ConfigurationError(f"{envvar} is not a valid address: '{value}'")
    address = to_checksum_address(value)
    if address == ZERO_ADDRESS:
        raise ConfigurationError(f"{envvar} must not be the zero address")
    return address


def _parse_flag(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in TRUTHY


class DeploymentConfig(typing.NamedTuple):
    """
    Process-wide deployment inputs, loaded once at start up.

    registry_address -- address book to attach to; required by plans that use an
                        existing registry (ADDRESS_BOOK).
    router_address   -- DEX router, seeded into a fresh registry as 'router' (ROUTER).
    factory_address  -- DEX factory, seeded into a fresh registry as 'factory' (FACTORY).
    safe_address     -- treasury multisig, seeded into a fresh registry as 'safe' (SAFE).
    autosign         -- sign without interactive confirmation (AUTOSIGN).
    verify           -- publish contract sources to the explorer (VERIFY).
    """

    registry_address: Optional[ChecksumAddress] = None
    router_address: Optional[ChecksumAddress] = None
    factory_address: Optional[ChecksumAddress] = None
    safe_address: Optional[ChecksumAddress] = None
    autosign: bool = False
    verify: bool = False

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True
    ) -> "DeploymentConfig":
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        return cls(
            registry_address=_parse_address(ADDRESS_BOOK_ENVVAR, environ.get(ADDRESS_BOOK_ENVVAR)),
            router_address=_parse_address(ROUTER_ENVVAR, environ.get(ROUTER_ENVVAR)),
            factory_address=_parse_address(FACTORY_ENVVAR, environ.get(FACTORY_ENVVAR)),
            safe_address=_parse_address(SAFE_ENVVAR, environ.get(SAFE_ENVVAR)),
            autosign=_parse_flag(environ.get(AUTOSIGN_ENVVAR)),
            verify=_parse_flag(environ.get(VERIFY_ENVVAR)),
        )

    def as_constants(self) -> Dict[str, Optional[ChecksumAddress]]:
        """Exposes configured addresses to plan files as upper-case constants."""
        return {
            "REGISTRY_ADDRESS": self.registry_address,
            "ROUTER_ADDRESS": self.router_address,
            "FACTORY_ADDRESS": self.factory_address,
            "SAFE_ADDRESS": self.safe_address,
        }

    def require_registry_address(self) -> ChecksumAddress:
        if not self.registry_address:
            raise ConfigurationError(f"{ADDRESS_BOOK_ENVVAR} is not set.")
        return self.registry_address
