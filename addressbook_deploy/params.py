import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import is_address, to_checksum_address

from addressbook_deploy.config import DeploymentConfig
from addressbook_deploy.constants import (
    DECLARED_ORDER,
    NEW_REGISTRY,
    ORDERING_MODES,
    REGISTRY_MODES,
    RESOLVED_ORDER,
    ZERO_ADDRESS,
)
from addressbook_deploy.errors import ConfigurationError, MissingRegistryEntry, OrderingError
from addressbook_deploy.utils import _load_yaml

MODULE_CONSTRUCTOR_KEY = "constructor"
MODULE_PROXY_KEY = "proxy"
MODULE_KEYS = {
    "contract",
    MODULE_CONSTRUCTOR_KEY,
    MODULE_PROXY_KEY,
    "address_book",
    "depends_on",
    "calls",
    "output",
    "upgrade",
}


class ResolutionContext:
    def __init__(
        self,
        address_book,
        deployer_address: str,
        module: Optional[str] = None,
    ):
        self.address_book = address_book
        self.deployer_address = deployer_address
        self.module = module


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        return context.deployer_address

    def __repr__(self):
        return f"${self.DEPLOYER_INDICATOR}"


class AddressBookAddress(Variable):
    REGISTRY_INDICATOR = "registry"

    @classmethod
    def is_registry(cls, value: str) -> bool:
        """Returns True if the variable refers to the address book itself."""
        return value == cls.REGISTRY_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        return context.address_book.address

    def __repr__(self):
        return f"${self.REGISTRY_INDICATOR}"


class Constant(Variable):
    def __init__(self, constant_name: str, constants: Dict[str, Any]):
        try:
            self.constant_value = constants[constant_name]
        except KeyError:
            raise ConfigurationError(f"Constant '{constant_name}' not found in deployment file.")
        if self.constant_value is None:
            raise ConfigurationError(f"Constant '{constant_name}' is not set.")
        self.constant_name = constant_name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value

    def __repr__(self):
        return f"${self.constant_name}"


class RegistryLookup(Variable):
    """An address read from the address book by symbolic name at resolution time."""

    def __init__(self, name: str):
        self.name = name

    def resolve(self, context: ResolutionContext) -> Any:
        return context.address_book.require(self.name, module=context.module)

    def __repr__(self):
        return f"${self.name}"


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, (list, tuple)):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, context: ResolutionContext) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, context)

    return resolved_parameters


def _variable_from_value(variable: str, constants: Dict[str, Any]) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif AddressBookAddress.is_registry(variable):
        return AddressBookAddress()
    elif Constant.is_constant(variable):
        return Constant(variable, constants)
    else:
        return RegistryLookup(variable)


def _process_raw_value(value: Any, constants: Dict[str, Any]) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, constants) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, constants)

    return value


def _process_raw_values(values: Dict[str, Any], constants: Dict[str, Any]) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, constants)

    return processed_parameters


def _registry_names(value: Any) -> List[str]:
    """Returns the address book names a (processed) value reads."""
    if isinstance(value, (list, tuple)):
        names = list()
        for v in value:
            names.extend(_registry_names(v))
        return names
    if isinstance(value, RegistryLookup):
        return [value.name]
    return []


# Descriptors


class PostDeployCall(typing.NamedTuple):
    """A transaction issued once the module is deployed and registered."""

    method: str
    arguments: Tuple[Any, ...] = ()
    target: Optional[str] = None  # address book name; None means the module itself


class ModuleDescriptor(typing.NamedTuple):
    name: str
    contract: str
    proxied: bool = True
    initializer: Optional[str] = None  # None: "initialize" on deploy, nothing on upgrade
    arguments: Tuple[Any, ...] = ()
    constructor: Optional[OrderedDict] = None
    address_book_aware: bool = True
    depends_on: Tuple[str, ...] = ()
    calls: Tuple[PostDeployCall, ...] = ()
    output: Optional[str] = None
    upgrade: bool = False

    @property
    def output_name(self) -> str:
        """Name used for machine-parseable NAME=address output."""
        return self.output or f"{self.name.upper()}_ADDRESS"

    def setup_names(self) -> List[str]:
        """Address book names read while deploying this module."""
        names = list(self.depends_on)
        names.extend(_registry_names(list(self.arguments)))
        if self.constructor:
            names.extend(_registry_names(list(self.constructor.values())))
        return list(OrderedDict.fromkeys(names))

    def dependencies(self) -> List[str]:
        """Every address book name this module needs, excluding itself."""
        names = self.setup_names()
        for call in self.calls:
            if call.target:
                names.append(call.target)
            names.extend(_registry_names(list(call.arguments)))
        return [n for n in OrderedDict.fromkeys(names) if n != self.name]

    def resolve_arguments(self, context: ResolutionContext) -> List[Any]:
        return _resolve_param(list(self.arguments), context)

    def resolve_constructor(self, context: ResolutionContext) -> OrderedDict:
        return _resolve_params(self.constructor or OrderedDict(), context)


def _parse_call(raw_call: Any, constants: Dict[str, Any], module: str) -> PostDeployCall:
    if isinstance(raw_call, str):
        return PostDeployCall(method=raw_call)
    if not isinstance(raw_call, dict) or "method" not in raw_call:
        raise ConfigurationError("Malformed post-deploy call.", module=module)
    arguments = raw_call.get("arguments") or list()
    if not isinstance(arguments, list):
        raise ConfigurationError("Call arguments must be a list.", module=module)
    return PostDeployCall(
        method=raw_call["method"],
        arguments=tuple(_process_raw_value(arguments, constants)),
        target=raw_call.get("target"),
    )


def _parse_module(name: str, data: Dict[str, Any], constants: Dict[str, Any]) -> ModuleDescriptor:
    unknown_keys = set(data) - MODULE_KEYS
    if unknown_keys:
        raise ConfigurationError(f"Unknown module keys: {', '.join(sorted(unknown_keys))}", module=name)

    proxy_data = data.get(MODULE_PROXY_KEY, dict())
    if proxy_data is None or proxy_data is True:
        proxy_data = dict()

    if MODULE_CONSTRUCTOR_KEY in data:
        if MODULE_PROXY_KEY in data and proxy_data is not False:
            raise ConfigurationError(
                "A proxied module is set up by its initializer, not its constructor.", module=name
            )
        proxy_data = False

    proxied = proxy_data is not False
    initializer, arguments, constructor = None, tuple(), None
    if proxied:
        if not isinstance(proxy_data, dict):
            raise ConfigurationError("Malformed proxy parameters.", module=name)
        initializer = proxy_data.get("initializer")
        raw_arguments = proxy_data.get("arguments") or list()
        if not isinstance(raw_arguments, list):
            raise ConfigurationError("Initializer arguments must be a list.", module=name)
        arguments = tuple(_process_raw_value(raw_arguments, constants))
    else:
        raw_constructor = data.get(MODULE_CONSTRUCTOR_KEY) or dict()
        if not isinstance(raw_constructor, dict):
            raise ConfigurationError("Malformed constructor parameters.", module=name)
        constructor = _process_raw_values(raw_constructor, constants)

    upgrade = bool(data.get("upgrade", False))
    if upgrade and not proxied:
        raise ConfigurationError("Only proxied modules can be upgraded.", module=name)

    depends_on = data.get("depends_on") or list()
    if isinstance(depends_on, str):
        depends_on = [depends_on]
    calls = tuple(_parse_call(c, constants, module=name) for c in data.get("calls") or list())

    return ModuleDescriptor(
        name=name,
        contract=data.get("contract", name),
        proxied=proxied,
        initializer=initializer,
        arguments=arguments,
        constructor=constructor,
        address_book_aware=bool(data.get("address_book", True)),
        depends_on=tuple(depends_on),
        calls=calls,
        output=data.get("output"),
        upgrade=upgrade,
    )


def _get_modules(config: Dict, constants: Dict[str, Any]) -> List[ModuleDescriptor]:
    raw_modules = config.get("modules")
    if not raw_modules:
        raise ConfigurationError("Deployment file missing 'modules' field.")

    modules = list()
    for module_info in raw_modules:
        if isinstance(module_info, str):
            name, data = module_info, dict()
        elif isinstance(module_info, dict) and len(module_info) == 1:
            name = list(module_info.keys())[0]  # only one entry
            data = module_info[name] or dict()
        else:
            raise ConfigurationError("Malformed modules YAML.")
        modules.append(_parse_module(name, data, constants))

    names = [m.name for m in modules]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate module names: {', '.join(duplicates)}")
    return modules


def _check_seeds(seeds: OrderedDict) -> None:
    """Seed values are addresses: literals, constants, $deployer or $registry."""
    for name, value in seeds.items():
        if isinstance(value, RegistryLookup):
            raise ConfigurationError(f"Seed '{name}' cannot read the registry it seeds.")
        if isinstance(value, Constant):
            value = value.constant_value
        elif isinstance(value, Variable):
            continue
        if not isinstance(value, str) or not is_address(value):
            raise ConfigurationError(f"Seed '{name}' is not a valid address: '{value}'")
        if to_checksum_address(value) == ZERO_ADDRESS:
            raise ConfigurationError(f"Seed '{name}' must not be the zero address")


def check_ordering(
    modules: List[ModuleDescriptor], seeds: List[str], registry_mode: str
) -> None:
    """
    Checks that every module is declared after the modules it depends on.
    Names that are neither deployed by the plan nor seeded must already be
    registered, which is impossible for a fresh registry.
    """
    positions = {module.name: index for index, module in enumerate(modules)}
    for index, module in enumerate(modules):
        if module.name in module.setup_names():
            raise OrderingError("Module cannot read its own address during setup.", module.name)
        if module.upgrade and registry_mode == NEW_REGISTRY:
            raise MissingRegistryEntry(module.name, module=module.name)
        for call in module.calls:
            if call.target and call.target != module.name and call.target not in positions:
                raise ConfigurationError(
                    f"Call target '{call.target}' is not a module of this plan.", module.name
                )
        for dependency in module.dependencies():
            position = positions.get(dependency)
            if position is not None:
                if position > index:
                    raise OrderingError(
                        f"Depends on '{dependency}' which is declared after it.", module.name
                    )
                continue
            if dependency in seeds:
                continue
            if registry_mode == NEW_REGISTRY:
                raise MissingRegistryEntry(dependency, module=module.name)


def resolve_ordering(modules: List[ModuleDescriptor]) -> List[ModuleDescriptor]:
    """
    Orders modules so each one follows its dependencies, keeping the declared
    order wherever the dependency graph allows it.
    """
    by_name = OrderedDict((module.name, module) for module in modules)
    pending = OrderedDict(
        (m.name, {d for d in m.dependencies() if d in by_name}) for m in modules
    )

    ordered = list()
    while pending:
        ready = next((name for name, deps in pending.items() if not deps), None)
        if ready is None:
            raise OrderingError(f"Dependency cycle between modules: {', '.join(pending)}")
        del pending[ready]
        for deps in pending.values():
            deps.discard(ready)
        ordered.append(by_name[ready])
    return ordered


class DeploymentPlan(typing.NamedTuple):
    """An ordered set of modules plus the registry they are wired into."""

    name: str
    registry_mode: str
    bulk: bool
    seeds: OrderedDict
    modules: List[ModuleDescriptor]

    @property
    def deploys_registry(self) -> bool:
        return self.registry_mode == NEW_REGISTRY

    def module(self, name: str) -> ModuleDescriptor:
        for module in self.modules:
            if module.name == name:
                return module
        raise ConfigurationError(f"No module named '{name}' in plan '{self.name}'.")

    @classmethod
    def from_config(
        cls, config: Dict, deployment_config: Optional[DeploymentConfig] = None
    ) -> "DeploymentPlan":
        print("Processing deployment plan...")
        deployment = config.get("deployment")
        if not deployment:
            raise ConfigurationError("deployment is not set in params file.")

        registry_mode = deployment.get("registry", NEW_REGISTRY)
        if registry_mode not in REGISTRY_MODES:
            raise ConfigurationError(f"Unsupported registry mode '{registry_mode}'.")
        order = deployment.get("order", DECLARED_ORDER)
        if order not in ORDERING_MODES:
            raise ConfigurationError(f"Unsupported ordering '{order}'.")

        constants = dict()
        if deployment_config is not None:
            constants.update(deployment_config.as_constants())
        constants.update(config.get("constants") or dict())

        raw_seeds = config.get("seeds") or dict()
        if raw_seeds and registry_mode != NEW_REGISTRY:
            raise ConfigurationError("Seeds are only written to a freshly deployed registry.")
        seeds = _process_raw_values(raw_seeds, constants)
        _check_seeds(seeds)

        modules = _get_modules(config, constants)
        if order == RESOLVED_ORDER:
            modules = resolve_ordering(modules)
        check_ordering(modules, seeds=list(seeds), registry_mode=registry_mode)

        return cls(
            name=deployment.get("name", "deployment"),
            registry_mode=registry_mode,
            bulk=bool(deployment.get("bulk", False)),
            seeds=seeds,
            modules=modules,
        )

    @classmethod
    def from_yaml(
        cls, filepath: Path, deployment_config: Optional[DeploymentConfig] = None
    ) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        if not isinstance(config, dict):
            raise ConfigurationError(f"Malformed deployment file {filepath}.")
        return cls.from_config(config, deployment_config=deployment_config)
