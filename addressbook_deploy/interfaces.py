from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List, Optional


class ContractFactory(ABC):
    """Deploys, proxies and attaches to a single contract type."""

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def deploy(self, constructor_params: OrderedDict) -> Any:
        """Deploys the contract directly, running its constructor."""
        raise NotImplementedError

    @abstractmethod
    def deploy_proxy(self, initializer: Optional[str], arguments: List[Any]) -> Any:
        """
        Deploys an implementation behind a new proxy, running the initializer
        exactly once as part of proxy creation. Returns the proxy wrapped as
        this contract type.

        With no initializer named, "initialize" is run when the contract has
        one. A named initializer the contract lacks is a ConfigurationError.
        """
        raise NotImplementedError

    @abstractmethod
    def upgrade(
        self, proxy_address: str, initializer: Optional[str] = None, arguments: List[Any] = None
    ) -> Any:
        """Deploys a new implementation and points an existing proxy at it."""
        raise NotImplementedError

    @abstractmethod
    def at(self, address: str) -> Any:
        """Attaches to an already deployed instance."""
        raise NotImplementedError


class ChainClient(ABC):
    """
    Narrow view of the chain used by the orchestrator.

    Every call that submits a transaction blocks until it is confirmed and
    raises a DeploymentError subclass on failure.
    """

    @property
    @abstractmethod
    def deployer_address(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_factory(self, contract_name: str) -> ContractFactory:
        raise NotImplementedError

    @abstractmethod
    def transact(self, instance: Any, method: str, *args) -> Any:
        raise NotImplementedError

    @abstractmethod
    def call(self, instance: Any, method: str, *args) -> Any:
        """Read-only call."""
        raise NotImplementedError

    def finalize(self, instances: List[Any]) -> None:
        """Hook run once after a successful deployment."""
