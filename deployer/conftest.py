"""
Shared fixtures: a recording in-memory gateway and a sample chain configuration.
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from deployer.artifacts import ArtifactStore
from deployer.config import ChainConfig
from deployer.errors import TransactionError
from deployer.executor import StepExecutor
from deployer.gateway import ChainGateway, TxResult

CHAIN_ID = "localsei"
SENDER = "sei1deployer"
MULTISIG = "sei1multisig"

BINARIES = [
    "astroport_token.wasm",
    "astroport_whitelist.wasm",
    "astroport_pair.wasm",
    "astroport_pair_stable.wasm",
    "astroport_factory.wasm",
    "astroport_router.wasm",
    "astroport_oracle.wasm",
]


def tx(tx_hash: str, event_type: str, **attributes: Any) -> TxResult:
    return TxResult(
        tx_hash=tx_hash,
        events=[{"type": event_type, "attributes": [{"key": k, "value": str(v)} for k, v in attributes.items()]}],
    )


class FakeGateway(ChainGateway):
    """Records every call; answers like a well-behaved chain"""

    def __init__(self, chain_id: str = CHAIN_ID, address: str = SENDER,
                 code_ids: Optional[List[int]] = None, addresses: Optional[List[str]] = None):
        self._chain_id = chain_id
        self._address = address
        self.code_ids = list(code_ids or [])
        self.addresses = list(addresses or [])
        self.calls: List[Tuple[str, tuple]] = []
        self.contracts: Dict[str, Dict[str, Any]] = {}
        self.balances: Dict[Tuple[str, str], str] = {}
        self.fail: Optional[Callable[[str, tuple], bool]] = None
        self.frozen = False
        self._counter = 0

    @property
    def chain_id(self) -> str:
        return self._chain_id

    @property
    def address(self) -> str:
        return self._address

    def freeze(self) -> None:
        """Any further call fails the test"""
        self.frozen = True

    def _call(self, method: str, *args: Any) -> int:
        if self.frozen:
            raise AssertionError(f"unexpected {method} call: {args}")
        self.calls.append((method, args))
        if self.fail is not None and self.fail(method, args):
            raise TransactionError(5, f"hash-{method}-{len(self.calls)}", "rejected by chain")
        self._counter += 1
        return self._counter

    def count(self, method: str) -> int:
        return len([c for c in self.calls if c[0] == method])

    def upload(self, binary_path: str) -> TxResult:
        n = self._call("upload", binary_path)
        code_id = self.code_ids.pop(0) if self.code_ids else n
        return tx(f"hash-upload-{n}", "store_code", code_id=code_id)

    def instantiate(self, code_id: int, init_msg: Dict[str, Any], label: str, admin: Optional[str] = None) -> TxResult:
        n = self._call("instantiate", code_id, copy.deepcopy(init_msg), label, admin)
        address = self.addresses.pop(0) if self.addresses else f"sei1contract{n}"
        self.contracts[address] = {
            "code_id": code_id,
            "init_msg": copy.deepcopy(init_msg),
            "admin": admin,
            "owner": init_msg.get("owner"),
        }
        for entry in init_msg.get("initial_balances") or []:
            self.balances[(address, entry["address"])] = entry["amount"]
        return tx(f"hash-instantiate-{n}", "instantiate", _contract_address=address, code_id=code_id)

    def execute(self, address: str, msg: Dict[str, Any], funds: Optional[str] = None) -> TxResult:
        n = self._call("execute", address, copy.deepcopy(msg), funds)
        if "create_pair" in msg:
            pair = f"sei1pair{n}"
            self.contracts[pair] = {"lp": f"sei1lp{n}"}
            return tx(f"hash-execute-{n}", "wasm", action="create_pair", pair_contract_addr=pair)
        return tx(f"hash-execute-{n}", "wasm", action=next(iter(msg)))

    def query(self, address: str, msg: Dict[str, Any]) -> Any:
        self._call("query", address, copy.deepcopy(msg))
        if "pair" in msg:
            return {"liquidity_token": self.contracts[address]["lp"]}
        if "balance" in msg:
            return {"balance": self.balances.get((address, msg["balance"]["address"]), "0")}
        if "config" in msg:
            return {"owner": self.contracts.get(address, {}).get("owner")}
        return {}


def sample_config_dict() -> Dict[str, Any]:
    return {
        "generalInfo": {"multisig": MULTISIG},
        "token": {
            "admin": "",
            "initMsg": {
                "name": "Rum",
                "symbol": "RUM",
                "decimals": 6,
                "initial_balances": [
                    {"address": "", "amount": "1000000"},
                    {"address": "sei1alice", "amount": "5"},
                ],
                "marketing": {"marketing": ""},
            },
            "label": "Rum token",
        },
        "treasury": {"initMsg": {"admins": [""], "mutable": True}, "label": "Treasury"},
        "factory": {
            "initMsg": {
                "pair_configs": [
                    {"pair_type": {"xyk": {}}, "total_fee_bps": 30, "maker_fee_bps": 3333},
                    {"pair_type": {"stable": {}}, "total_fee_bps": 5, "maker_fee_bps": 5000},
                ],
                "owner": "",
            },
            "label": "Factory",
        },
        "router": {"initMsg": {"astroport_factory": ""}, "label": "Router"},
        "oracle": {"initMsg": {"factory_contract": ""}, "label": "Oracle"},
        "createPairs": {
            "pairs": [
                {
                    "identifier": "SeiRum",
                    "assetInfos": [{"native_token": {"denom": "usei"}}, {"token": {"contract_addr": "sei1rum"}}],
                    "pairType": {"xyk": {}},
                    "initOracle": True,
                },
                {
                    "identifier": "SeiUsdc",
                    "assetInfos": [{"native_token": {"denom": "usei"}}, {"native_token": {"denom": "uusdc"}}],
                    "pairType": {"stable": {}},
                    "initParams": {"amp": 100},
                },
                {
                    "identifier": "RumUsdc",
                    "assetInfos": [{"token": {"contract_addr": "sei1rum"}}, {"native_token": {"denom": "uusdc"}}],
                    "pairType": {"xyk": {}},
                },
            ]
        },
    }


@pytest.fixture
def artifacts_dir(tmp_path):
    path = tmp_path / "artifacts"
    path.mkdir()
    for name in BINARIES:
        (path / name).write_bytes(b"\0asm")
    return path


@pytest.fixture
def store(artifacts_dir):
    return ArtifactStore(str(artifacts_dir))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def chain_config():
    return ChainConfig.from_dict(sample_config_dict())


@pytest.fixture
def executor(gateway, store, artifacts_dir):
    return StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)
