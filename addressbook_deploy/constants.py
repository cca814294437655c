from pathlib import Path

import addressbook_deploy

#
# Filesystem
#

DEPLOYMENT_DIR = Path(addressbook_deploy.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"

#
# Addresses
#

ZERO_ADDRESS = "0x" + "0" * 40

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_NAME = "TransparentUpgradeableProxy"
PROXY_ADMIN_NAME = "ProxyAdmin"

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

ADDRESS_BOOK_CONTRACT = "AddressBook"
ADDRESS_BOOK_OUTPUT = "ADDRESSBOOK_ADDRESS"
SET_ADDRESS_BOOK_METHOD = "setAddressBook"
DEFAULT_INITIALIZER = "initialize"

#
# Environment
#

ADDRESS_BOOK_ENVVAR = "ADDRESS_BOOK"
ROUTER_ENVVAR = "ROUTER"
FACTORY_ENVVAR = "FACTORY"
SAFE_ENVVAR = "SAFE"
AUTOSIGN_ENVVAR = "AUTOSIGN"
VERIFY_ENVVAR = "VERIFY"

#
# Plans
#

NEW_REGISTRY = "new"
EXISTING_REGISTRY = "existing"
REGISTRY_MODES = [NEW_REGISTRY, EXISTING_REGISTRY]

DECLARED_ORDER = "declared"
RESOLVED_ORDER = "resolved"
ORDERING_MODES = [DECLARED_ORDER, RESOLVED_ORDER]
