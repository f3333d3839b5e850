"""
Deployment configuration.

Settings come from the environment (a `.env` file is loaded by the entry
points); per-contract descriptors come from `<CHAIN_CONFIGS_PATH>/<CHAIN_ID>.json`.
Neither is mutated: placeholders are filled into copies at deploy time.
"""

import os
import re
import json
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .artifacts import is_populated
from .errors import MissingParameterError, PreconditionError

logger = logging.getLogger(__name__)

GAS_PRICE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z][a-zA-Z0-9/:._-]*)\s*$")

SECONDS_IN_DAY = 60 * 60 * 24


def resolve(name: str, recorded: Any = None, configured: Any = None, default: Any = None) -> Any:
    """
    Pick the value for one parameter.

    Args:
        name: Parameter name, used in the error message
        recorded: Value from the artifact record
        configured: Value from the chain configuration
        default: Network-wide fallback (usually the owner multisig)

    Returns:
        The first populated value in the order recorded, configured, default

    Raises:
        MissingParameterError: None of the sources is populated
    """
    for value in (recorded, configured, default):
        if is_populated(value):
            return value
    raise MissingParameterError(name)


def _segments(path: str) -> List[str]:
    return [part for part in path.split(".") if part]


def get_path(payload: Any, path: str) -> Any:
    """Read a dotted path ("a.0.b"), returning None when any segment is absent"""
    node = payload
    for part in _segments(path):
        if isinstance(node, dict):
            node = node.get(part)
        elif isinstance(node, list) and part.isdigit():
            index = int(part)
            node = node[index] if index < len(node) else None
        else:
            return None
        if node is None:
            return None
    return node


def set_path(payload: Any, path: str, value: Any) -> None:
    """Write a dotted path, creating missing intermediate containers"""
    parts = _segments(path)
    node = payload
    for i, part in enumerate(parts):
        last = i == len(parts) - 1
        next_container: Any = [] if (not last and parts[i + 1].isdigit()) else {}
        if isinstance(node, list):
            index = int(part)
            while len(node) <= index:
                node.append(None)
            if last:
                node[index] = value
            else:
                if not isinstance(node[index], (dict, list)):
                    node[index] = next_container
                node = node[index]
        else:
            if last:
                node[part] = value
            else:
                if not isinstance(node.get(part), (dict, list)):
                    node[part] = next_container
                node = node[part]


def expand_path(payload: Any, path: str) -> List[str]:
    """Expand `*` segments against the list lengths found in payload"""
    parts = _segments(path)
    if "*" not in parts:
        return [path]

    star = parts.index("*")
    prefix = ".".join(parts[:star])
    rest = ".".join(parts[star + 1:])
    items = get_path(payload, prefix) if prefix else payload
    if not isinstance(items, list):
        return []

    out: List[str] = []
    for i in range(len(items)):
        head = f"{prefix}.{i}" if prefix else str(i)
        out.extend(expand_path(payload, f"{head}.{rest}" if rest else head))
    return out


@dataclass(frozen=True)
class Settings:
    """Process settings read from the environment"""
    mnemonic: str
    gas_price: str
    gas_amount: float
    gas_denom: str
    rpc_url: str
    lcd_url: str
    chain_id: str
    artifacts_path: str = "artifacts"
    chain_configs_path: str = "chain_configs"
    address_prefix: str = "sei"
    gas_limit: int = 4000000
    log_file: str = "deploy.log"
    slack_webhook: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def required(name: str, purpose: str) -> str:
            value = (env.get(name) or "").strip()
            if not value:
                raise PreconditionError(f"Set the {name} env variable to {purpose}")
            return value

        mnemonic = required("MNEMONIC", "the mnemonic of the wallet to use")
        gas_price = required("GAS_PRICE", "the gas price to use when creating client")
        rpc_url = required("RPC_URL", "the RPC URL of the node to use")
        lcd_url = required("LCD_URL", "the ledger URL the signing client should use")
        chain_id = required("CHAIN_ID", "the chain id of the network to deploy to")

        match = GAS_PRICE_PATTERN.match(gas_price)
        if not match:
            raise PreconditionError(f"GAS_PRICE must look like '0.1usei', got '{gas_price}'")

        gas_limit_raw = env.get("GAS_LIMIT") or "4000000"
        try:
            gas_limit = int(gas_limit_raw)
        except ValueError:
            raise PreconditionError(f"GAS_LIMIT must be an integer, got '{gas_limit_raw}'")

        return cls(
            mnemonic=mnemonic,
            gas_price=gas_price,
            gas_amount=float(match.group(1)),
            gas_denom=match.group(2),
            rpc_url=rpc_url.rstrip("/"),
            lcd_url=lcd_url,
            chain_id=chain_id,
            artifacts_path=env.get("ARTIFACTS_PATH") or "artifacts",
            chain_configs_path=env.get("CHAIN_CONFIGS_PATH") or "chain_configs",
            address_prefix=env.get("ADDRESS_PREFIX") or "sei",
            gas_limit=gas_limit,
            log_file=env.get("LOG_FILE") or "deploy.log",
            slack_webhook=env.get("SLACK_WEBHOOK") or None,
        )


@dataclass(frozen=True)
class UnitDescriptor:
    """Static description of one deployable contract.

    `substitutions` maps payload paths to record keys whose values fill them;
    `owner_fields` lists payload paths (`*` allowed for lists) that fall back
    to the owner multisig.
    """
    name: str
    binary: str
    init_msg: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None
    admin: Optional[str] = None
    substitutions: Dict[str, str] = field(default_factory=dict)
    owner_fields: Tuple[str, ...] = ()
    code_key: Optional[str] = None

    @property
    def code_id_key(self) -> str:
        return self.code_key or f"{self.name}CodeID"

    @property
    def address_key(self) -> str:
        return f"{self.name}Address"


@dataclass(frozen=True)
class PairConfig:
    """One trading pair to create through the factory"""
    identifier: str
    asset_infos: List[Dict[str, Any]]
    pair_type: Dict[str, Any]
    init_params: Optional[Dict[str, Any]] = None
    init_oracle: bool = False

    @property
    def pool_key(self) -> str:
        return f"pool{self.identifier}"

    @property
    def lp_token_key(self) -> str:
        return f"lpToken{self.identifier}"

    @property
    def oracle_key(self) -> str:
        return f"oracle{self.identifier}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PairConfig":
        identifier = str(data.get("identifier") or "").strip()
        if not identifier:
            raise PreconditionError("Every entry in createPairs.pairs needs an identifier")
        asset_infos = data.get("assetInfos")
        if not isinstance(asset_infos, list) or len(asset_infos) != 2:
            raise PreconditionError(f"Pair {identifier}: assetInfos must list exactly two assets")
        return cls(
            identifier=identifier,
            asset_infos=copy.deepcopy(asset_infos),
            pair_type=copy.deepcopy(data.get("pairType") or {"xyk": {}}),
            init_params=copy.deepcopy(data.get("initParams")),
            init_oracle=bool(data.get("initOracle")),
        )


def _unit(section: Dict[str, Any], **kwargs: Any) -> UnitDescriptor:
    return UnitDescriptor(
        init_msg=copy.deepcopy(section.get("initMsg") or {}),
        label=section.get("label"),
        admin=section.get("admin"),
        **kwargs,
    )


@dataclass(frozen=True)
class ChainConfig:
    """Chain configuration file for one network"""
    multisig: Optional[str]
    token: UnitDescriptor
    treasury: UnitDescriptor
    pair: UnitDescriptor
    pair_stable: UnitDescriptor
    factory: UnitDescriptor
    router: UnitDescriptor
    oracle: UnitDescriptor
    pairs: List[PairConfig] = field(default_factory=list)
    factory_owner_proposal: Optional[Dict[str, Any]] = None

    def require_owner(self) -> str:
        if not is_populated(self.multisig):
            raise PreconditionError("Set the proper owner multisig for the contracts")
        return self.multisig  # type: ignore[return-value]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainConfig":
        general = data.get("generalInfo") or {}
        factory = data.get("factory") or {}
        pairs = (data.get("createPairs") or {}).get("pairs") or []

        proposal = None
        if factory.get("change_owner"):
            proposal = copy.deepcopy(factory.get("proposeNewOwner") or {})
            if not is_populated(proposal.get("owner")):
                raise PreconditionError("factory.change_owner is set but proposeNewOwner.owner is missing")

        parsed_pairs = [PairConfig.from_dict(p) for p in pairs]
        seen = set()
        for pair in parsed_pairs:
            if pair.identifier in seen:
                raise PreconditionError(f"Duplicate pair identifier: {pair.identifier}")
            seen.add(pair.identifier)

        return cls(
            multisig=general.get("multisig"),
            token=_unit(
                data.get("token") or {},
                name="token",
                binary="astroport_token.wasm",
                owner_fields=("marketing.marketing", "initial_balances.*.address"),
            ),
            treasury=_unit(
                data.get("treasury") or {},
                name="treasury",
                binary="astroport_whitelist.wasm",
                owner_fields=("admins.0",),
                code_key="whitelistCodeID",
            ),
            pair=UnitDescriptor(name="pair", binary="astroport_pair.wasm"),
            pair_stable=UnitDescriptor(name="pairStable", binary="astroport_pair_stable.wasm"),
            factory=_unit(
                factory,
                name="factory",
                binary="astroport_factory.wasm",
                substitutions={
                    "token_code_id": "tokenCodeID",
                    "whitelist_code_id": "whitelistCodeID",
                },
            ),
            router=_unit(
                data.get("router") or {},
                name="router",
                binary="astroport_router.wasm",
                substitutions={"astroport_factory": "factoryAddress"},
            ),
            oracle=_unit(
                data.get("oracle") or {},
                name="oracle",
                binary="astroport_oracle.wasm",
                substitutions={"factory_contract": "factoryAddress"},
            ),
            pairs=parsed_pairs,
            factory_owner_proposal=proposal,
        )

    @classmethod
    def load(cls, chain_configs_path: str, chain_id: str) -> "ChainConfig":
        path = os.path.join(chain_configs_path, f"{chain_id}.json")
        if not os.path.exists(path):
            raise PreconditionError(f"Chain configuration not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise PreconditionError(f"Chain configuration {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PreconditionError(f"Chain configuration {path} must be a JSON object")
        logger.info(f"Loaded chain configuration from {path}")
        return cls.from_dict(data)
