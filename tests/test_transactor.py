from collections import OrderedDict
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from ape.exceptions import ApeException, ContractLogicError
from eth_utils import to_checksum_address

from addressbook_deploy.constants import PROXY_NAME
from addressbook_deploy.errors import ConfigurationError, RevertError, SubmissionError
from addressbook_deploy.transactor import (
    ApeContractFactory,
    Transactor,
    _translate_errors,
    _validate_constructor_abi_inputs,
    _validate_method_args,
)
from tests.conftest import DEPLOYER, ROUTER


def abi_input(name, type_):
    return SimpleNamespace(name=name, type=type_)


def test_revert_is_translated():
    with pytest.raises(RevertError, match="Pool.createLiquidity reverted"):
        with _translate_errors("Pool.createLiquidity"):
            raise ContractLogicError("execution reverted")


@pytest.mark.parametrize("error", [ApeException("nonce too low"), ConnectionError("refused")])
def test_submission_failure_is_translated(error):
    with pytest.raises(SubmissionError, match="Deploying Pool failed"):
        with _translate_errors("Deploying Pool"):
            raise error


def test_deployment_errors_pass_through():
    with pytest.raises(ConfigurationError):
        with _translate_errors("Deploying Pool"):
            raise ConfigurationError("bad input")


def test_constructor_inputs_validation():
    inputs = [abi_input("_router", "address"), abi_input("_fee", "uint256")]
    _validate_constructor_abi_inputs("Helper", inputs, OrderedDict(_router=ROUTER, _fee=3))

    with pytest.raises(ConfigurationError, match="length mismatch"):
        _validate_constructor_abi_inputs("Helper", inputs, OrderedDict(_router=ROUTER))
    with pytest.raises(ConfigurationError, match="does not match the expected ABI name"):
        _validate_constructor_abi_inputs("Helper", inputs, OrderedDict(router=ROUTER, _fee=3))
    with pytest.raises(ConfigurationError, match="whose type does not match"):
        _validate_constructor_abi_inputs("Helper", inputs, OrderedDict(_router=ROUTER, _fee="x"))


def test_method_args_validation():
    abis = [
        SimpleNamespace(name="mintTo", inputs=[abi_input("to", "address")]),
        SimpleNamespace(
            name="mintTo", inputs=[abi_input("to", "address"), abi_input("amount", "uint256")]
        ),
    ]
    assert _validate_method_args(abis, [ROUTER, 5]) == {"to": ROUTER, "amount": 5}
    with pytest.raises(ConfigurationError, match="Could not find ABI"):
        _validate_method_args(abis, [ROUTER, "five"])
    with pytest.raises(ConfigurationError):
        _validate_method_args([], [])


def test_deploy_proxy_wraps_implementation():
    implementation = SimpleNamespace(address=to_checksum_address("0x" + "0a" * 20))
    proxy = SimpleNamespace(address=to_checksum_address("0x" + "0b" * 20))
    proxy_container = MagicMock()
    proxy_container.constructor.abi.inputs = [
        abi_input("_logic", "address"),
        abi_input("initialOwner", "address"),
        abi_input("_data", "bytes"),
    ]

    client = MagicMock()
    client.deployer_address = DEPLOYER
    client.deploy_contract.side_effect = [implementation, proxy]
    client.get_proxy_container.return_value = proxy_container

    container = MagicMock()
    container.contract_type.name = "Swap"
    container.contract_type.methods = []

    factory = ApeContractFactory(client=client, container=container)
    instance = factory.deploy_proxy(None, [])

    client.get_proxy_container.assert_called_once_with(PROXY_NAME)
    _, proxy_params = client.deploy_contract.call_args_list[1].args
    assert list(proxy_params.items()) == [
        ("_logic", implementation.address),
        ("initialOwner", DEPLOYER),
        ("_data", b""),
    ]
    container.at.assert_called_once_with(proxy.address)
    assert instance is container.at.return_value


def test_initializer_arguments_need_an_initializer():
    client = MagicMock()
    client.deploy_contract.return_value = SimpleNamespace(address=to_checksum_address("0x" + "0a" * 20))
    container = MagicMock()
    container.contract_type.name = "Swap"
    container.contract_type.methods = []

    factory = ApeContractFactory(client=client, container=container)
    with pytest.raises(ConfigurationError, match="has no 'initialize' method"):
        factory.deploy_proxy("initialize", [ROUTER])
    client.deploy_contract.assert_not_called()


def initialize_factory(client):
    container = MagicMock()
    container.contract_type.name = "Swap"
    container.contract_type.methods = [SimpleNamespace(name="initialize", inputs=[])]
    return ApeContractFactory(client=client, container=container)


def test_named_initializer_must_be_in_abi():
    client = MagicMock()
    factory = initialize_factory(client)

    with pytest.raises(ConfigurationError, match="has no 'initialise' method"):
        factory._encode_initializer(MagicMock(), "initialise", [])
    with pytest.raises(ConfigurationError, match="has no 'initialise' method"):
        factory.deploy_proxy("initialise", [])
    with pytest.raises(ConfigurationError, match="has no 'reinitialize' method"):
        factory.upgrade("0x" + "0c" * 20, initializer="reinitialize")
    client.deploy_contract.assert_not_called()


def test_default_initializer_is_encoded():
    implementation = MagicMock(address=to_checksum_address("0x" + "0a" * 20))
    implementation.initialize.encode_input.return_value = b"\x81\x29\xfc\x1c"
    proxy = SimpleNamespace(address=to_checksum_address("0x" + "0b" * 20))
    proxy_container = MagicMock()
    proxy_container.constructor.abi.inputs = [
        abi_input("_logic", "address"),
        abi_input("initialOwner", "address"),
        abi_input("_data", "bytes"),
    ]
    client = MagicMock()
    client.deployer_address = DEPLOYER
    client.deploy_contract.side_effect = [implementation, proxy]
    client.get_proxy_container.return_value = proxy_container

    initialize_factory(client).deploy_proxy(None, [])

    _, proxy_params = client.deploy_contract.call_args_list[1].args
    assert proxy_params["_data"] == b"\x81\x29\xfc\x1c"
    implementation.initialize.encode_input.assert_called_once_with()


def test_missing_method_is_a_configuration_error():
    transactor = Transactor(account=MagicMock(), autosign=True)
    instance = SimpleNamespace(
        contract_type=SimpleNamespace(name="Legacy"), address=to_checksum_address("0x" + "0d" * 20)
    )

    with pytest.raises(ConfigurationError, match="Legacy has no 'setAddressBook' method"):
        transactor.transact(instance, "setAddressBook", ROUTER)
    with pytest.raises(ConfigurationError, match="Legacy has no 'owner' method"):
        transactor.call(instance, "owner")
