import typing
from collections import OrderedDict, namedtuple
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Sequence, Tuple

from ape import networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ape.utils import ZERO_ADDRESS
from ethpm_types import MethodABI
from web3.auto import w3

from line_deployment.confirm import _confirm_resolution, _continue
from line_deployment.networks import is_local_network
from line_deployment.registry import (
    RegistryEntry,
    registry_entries_for_chain,
    registry_entry,
    registry_name,
    write_registry,
)
from line_deployment.utils import (
    _load_yaml,
    check_plugins,
    get_contract_container,
    link_library,
    validate_config,
    verify_contracts,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_LIBRARIES_KEY = "libraries"

Call = Tuple  # (ContractTransactionHandler, *args)


class DeploymentOrderError(ValueError):
    """Raised when a contract is needed before it has been deployed."""


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()

    @property
    def preceding_contract_names(self) -> List[str]:
        """Contracts listed (and therefore deployed) before the current one."""
        if self.contract_name not in self.contract_names:
            return list(self.contract_names)
        return self.contract_names[: self.contract_names.index(self.contract_name)]


# Variables


class Variable:
    VARIABLE_PREFIX = "$"

    def resolve(self, strict: bool = False) -> Any:
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

    def resolve(self, strict: bool = False) -> Any:
        deployer_account = Deployer.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, strict: bool = False) -> Any:
        return self.constant_value


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")
        if contract_name not in context.preceding_contract_names:
            raise DeploymentOrderError(
                f"{context.contract_name} references {contract_name}, "
                f"which is not deployed before it"
            )
        self.contract_name = contract_name

    def resolve(self, strict: bool = False) -> Any:
        """Resolves the address of a contract deployed (or reused) earlier in this run."""
        record = Deployer.get_record(self.contract_name)
        if record is None:
            if strict:
                raise DeploymentOrderError(f"{self.contract_name} has not been deployed yet")
            # eager validation
            return ZERO_ADDRESS
        return record.address


def _resolve_param(value: Any, strict: bool = False) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, strict) for v in value]

    if isinstance(value, Variable):
        return value.resolve(strict)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, strict: bool = False) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, strict)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise ValueError("Malformed constructor parameters YAML.")

    if len(set(contract_names)) != len(contract_names):
        raise ValueError("Duplicate contract names in constructor parameters YAML.")
    return contract_names


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
) -> None:
    """
    Validates the constructor parameters against the constructor ABI.
    Parameter names are labels only; values are matched by position.
    """
    if len(resolved_parameters) != len(abi_inputs):
        raise ConstructorParameters.Invalid(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        if not w3.is_encodable(abi_input.type, value):
            raise ConstructorParameters.Invalid(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input.type}'"
            )


def validate_constructor_parameters(
    contracts_parameters, contracts_libraries: typing.Dict[str, List[str]] = None
) -> None:
    """
    Validates the constructor parameters for all contracts in a single config.
    Contracts that link libraries have no ABI before linking; they are
    validated at deployment time instead.
    """
    contracts_libraries = contracts_libraries or dict()
    for contract, parameters in contracts_parameters.items():
        if not isinstance(parameters, dict):
            # this can happen if the yml file is malformed
            raise ValueError(f"Malformed constructor parameter config for {contract}.")

        if contracts_libraries.get(contract):
            continue

        resolved_parameters = _resolve_params(parameters=parameters)
        contract_container = get_contract_container(contract)
        _validate_constructor_abi_inputs(
            contract_name=contract,
            abi_inputs=contract_container.constructor.abi.inputs,
            resolved_parameters=resolved_parameters,
        )


class ConstructorParameters:
    """Represents the constructor parameters and linked libraries for a set of contracts."""

    class Invalid(Exception):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict, libraries: typing.Dict[str, List[str]] = None):
        self.parameters = parameters
        self.libraries = libraries or dict()
        validate_constructor_parameters(parameters, self.libraries)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "ConstructorParameters":
        """Loads the constructor parameters from a parsed YAML config."""
        print("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        contracts_libraries = dict()
        contract_names = _get_contract_names(config)
        constants = config.get("constants")
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contracts_config[contract_info] = OrderedDict()
                continue

            if len(contract_info) != 1:
                raise ValueError("Malformed constructor parameters YAML.")

            contract_name = list(contract_info.keys())[0]  # only one entry
            contract_data = contract_info[contract_name] or dict()
            context = VariableContext(
                contract_names=contract_names, constants=constants, contract_name=contract_name
            )
            contracts_config[contract_name] = cls._process_parameters(contract_data, context)
            contracts_libraries[contract_name] = cls._process_libraries(contract_data, context)

        return cls(parameters=contracts_config, libraries=contracts_libraries)

    @classmethod
    def _process_parameters(cls, contract_data, context: VariableContext) -> OrderedDict:
        parameter_values = OrderedDict()
        if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
            parameter_values = _process_raw_values(
                OrderedDict(contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY]), context
            )
        return parameter_values

    @classmethod
    def _process_libraries(cls, contract_data, context: VariableContext) -> List[str]:
        libraries = contract_data.get(CONTRACT_LIBRARIES_KEY) or list()
        for library in libraries:
            # same existence and ordering rules as an address variable
            ContractName(library, context)
        return list(libraries)

    def resolve(self, contract_name: str, strict: bool = True) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        if contract_name not in self.parameters:
            raise ValueError(f"{contract_name} is not listed in the deployment parameters.")
        resolved_params = _resolve_params(self.parameters[contract_name], strict=strict)
        return resolved_params

    def get_libraries(self, contract_name: str) -> List[str]:
        return self.libraries.get(contract_name, list())


class DeploymentRecord(NamedTuple):
    """A contract deployed, or reused from the registry, by a deployer run."""

    name: str
    instance: ContractInstance
    newly_deployed: bool
    constructor_args: OrderedDict
    libraries: Dict[str, str]

    @property
    def address(self) -> str:
        return self.instance.address


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    @staticmethod
    def _describe(method: ContractTransactionHandler, args: Sequence[Any]) -> str:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"{method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method.abis[0].name}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            return f"{base_message} with arguments:\n\t{pretty_args}"
        return f"{base_message} with no arguments"

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        print(f"\nTransacting {self._describe(method, args)}")
        if not self._autosign:
            _continue()

        return method(*args, sender=self._account)

    def transact_batch(self, calls: Sequence[Call]) -> List[ReceiptAPI]:
        """
        Submits a batch of independent calls, confirmed once as a whole.
        Calls are sent in the given order and the receipts are returned in
        that same order once all of them are mined.
        """
        print(f"\nTransacting batch of {len(calls)} call(s):")
        for position, (method, *args) in enumerate(calls):
            print(f"[{position}] {self._describe(method, args)}")
        if not self._autosign:
            _continue()

        return [method(*args, sender=self._account) for method, *args in calls]


class Deployer(Transactor):
    """
    Represents an ape account plus
    deployment parameters for a set of contracts, plus validated/annotated execution.
    """

    __DEPLOYER_ACCOUNT: AccountAPI = None
    __RECORDS: Dict[str, DeploymentRecord] = dict()

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
    ):
        super().__init__(account, autosign)

        check_plugins()
        self.path = path
        self.config = config
        self.registry_filepath = validate_config(config=self.config)
        self._set_account(self._account)
        self._reset_records()

        self.constructor_parameters = ConstructorParameters.from_config(self.config)

        # Little trick to expose constants as attributes (e.g., deployer.constants.FOO)
        constants = config.get("constants", {})
        _Constants = namedtuple("_Constants", list(constants))
        self.constants = _Constants(**constants)

        self.verify = verify
        self._verified = set()
        self._registered = self._load_registered()
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @classmethod
    def get_account(cls) -> AccountAPI:
        """Returns the deployer account."""
        return cls.__DEPLOYER_ACCOUNT

    @classmethod
    def _set_account(cls, deployer: AccountAPI) -> None:
        """Sets the deployer account."""
        cls.__DEPLOYER_ACCOUNT = deployer

    @classmethod
    def get_record(cls, contract_name: str) -> typing.Optional[DeploymentRecord]:
        """Returns the record of a contract deployed (or reused) in this run."""
        return cls.__RECORDS.get(contract_name)

    @classmethod
    def _add_record(cls, record: DeploymentRecord) -> None:
        cls.__RECORDS[record.name] = record

    @classmethod
    def _reset_records(cls) -> None:
        cls.__RECORDS = dict()

    def _record_of(self, instance: ContractInstance) -> DeploymentRecord:
        for record in self.__RECORDS.values():
            if record.address == instance.address:
                return record
        raise ValueError(f"{instance.address} was not deployed by this deployer.")

    def newly_deployed(self, instance: ContractInstance) -> bool:
        """Returns True if the contract was deployed by this run rather than reused."""
        return self._record_of(instance).newly_deployed

    def _load_registered(self) -> Dict[str, RegistryEntry]:
        if is_local_network():
            # local chains do not outlive a run
            return dict()
        chain_id = networks.provider.network.chain_id
        return registry_entries_for_chain(self.registry_filepath, chain_id)

    def deploy(
        self, contract_name: str, *args, alias: typing.Optional[str] = None
    ) -> ContractInstance:
        """
        Deploys a contract by name with the constructor parameters from the params file, or
        with ``args`` when they are only known at runtime. ``alias`` registers the instance as
        ``<ContractType>:<alias>`` so that several instances of one type can coexist.

        Libraries are linked before the contract container is fetched, and every fresh
        deployment is written to the registry as soon as it is mined.
        """
        name = registry_name(contract_name, alias)
        libraries = self._link_libraries(contract_name)
        container = get_contract_container(contract_name)

        registered = self._registered.get(name)
        if registered is not None:
            print(f"\n(i) Reusing {name} at {registered.address}")
            instance = container.at(registered.address)
            record = DeploymentRecord(
                name=name,
                instance=instance,
                newly_deployed=False,
                constructor_args=OrderedDict(),
                libraries=libraries,
            )
            self._add_record(record)
            return instance

        if args:
            resolved_constructor_params = OrderedDict(
                (f"arg{position}", value) for position, value in enumerate(args)
            )
        else:
            resolved_constructor_params = self.constructor_parameters.resolve(contract_name)
        _validate_constructor_abi_inputs(
            contract_name=name,
            abi_inputs=container.constructor.abi.inputs,
            resolved_parameters=resolved_constructor_params,
        )
        instance = self._deploy_contract(
            container, resolved_constructor_params, libraries=list(libraries)
        )
        print(f"{name} deployed to: {instance.address}")
        record = DeploymentRecord(
            name=name,
            instance=instance,
            newly_deployed=True,
            constructor_args=resolved_constructor_params,
            libraries=libraries,
        )
        self._add_record(record)
        self._publish(record)
        return instance

    def _publish(self, record: DeploymentRecord) -> None:
        """Adds a fresh deployment to this chain's section of the registry."""
        self._registered[record.name] = registry_entry(record.instance, name=record.name)
        write_registry(entries=list(self._registered.values()), filepath=self.registry_filepath)

    def _link_libraries(self, contract_name: str) -> Dict[str, str]:
        linked = dict()
        for library in self.constructor_parameters.get_libraries(contract_name):
            record = self.get_record(library)
            if record is None:
                raise DeploymentOrderError(
                    f"{contract_name} links {library}, which has not been deployed yet"
                )
            link_library(record.instance)
            linked[library] = record.address
        return linked

    def _deploy_contract(
        self,
        container: ContractContainer,
        resolved_params: OrderedDict,
        libraries: List[str] = None,
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name, libraries=libraries)
        deployment_params = [container, *resolved_params.values()]

        deployer_account = self.get_account()
        # verification happens separately so that "already verified" is tolerated
        return deployer_account.deploy(*deployment_params, publish=False)

    def verify_contracts(self, deployments: List[ContractInstance]) -> None:
        """Verifies contracts on the block explorer, once per run, when verification is on."""
        if not self.verify:
            return
        pending = [d for d in deployments if d.address not in self._verified]
        verify_contracts(contracts=pending)
        self._verified.update(d.address for d in pending)

    def finalize(self, deployments: List[ContractInstance]) -> None:
        """
        Verifies the contracts deployed by this run and prints a summary of the deployment.
        """
        records = [self._record_of(d) for d in deployments]
        self.verify_contracts([record.instance for record in records if record.newly_deployed])

        print(f"\n(i) Registry: {self.registry_filepath}")
        for record in records:
            status = "deployed" if record.newly_deployed else "reused"
            print(f"\t{record.name} {record.address} ({status})")

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
