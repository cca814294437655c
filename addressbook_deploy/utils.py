from pathlib import Path

import yaml

from addressbook_deploy.constants import CONSTRUCTOR_PARAMS_DIR
from addressbook_deploy.errors import ConfigurationError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def params_filepath(name: str) -> Path:
    """Returns the path of a bundled deployment plan, e.g. 'testnet'."""
    p = CONSTRUCTOR_PARAMS_DIR / f"{name}.yml"
    if not p.exists():
        raise ConfigurationError(f"No deployment plan found named '{name}'")

    return p


def format_output(name: str, address: str) -> str:
    """Machine-parseable NAME=value line."""
    return f"{name}={address}"
