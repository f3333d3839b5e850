"""
Chain gateway: the upload / instantiate / execute / query primitives the
deployment steps need, and the cosmpy-backed implementation used in
production.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from cosmpy.aerial.client import LedgerClient, NetworkConfig
from cosmpy.aerial.client.utils import prepare_and_broadcast_basic_transaction
from cosmpy.aerial.contract.cosmwasm import (
    create_cosmwasm_execute_msg,
    create_cosmwasm_instantiate_msg,
    create_cosmwasm_store_code_msg,
)
from cosmpy.aerial.exceptions import BroadcastError
from cosmpy.aerial.tx import Transaction
from cosmpy.aerial.wallet import LocalWallet
from cosmpy.crypto.address import Address
from cosmpy.protos.cosmwasm.wasm.v1.query_pb2 import QuerySmartContractStateRequest

from .config import Settings
from .errors import PreconditionError, TransactionError

logger = logging.getLogger(__name__)


@dataclass
class TxResult:
    """Outcome of a transaction included in a block"""
    tx_hash: str
    code: int = 0
    raw_log: str = ""
    height: Optional[int] = None
    events: List[Dict[str, Any]] = field(default_factory=list)


class ChainGateway(ABC):
    """Signing client the deployment runs against"""

    @property
    @abstractmethod
    def chain_id(self) -> str:
        ...

    @property
    @abstractmethod
    def address(self) -> str:
        """Sender address of the deployment wallet"""

    @abstractmethod
    def upload(self, binary_path: str) -> TxResult:
        ...

    @abstractmethod
    def instantiate(self, code_id: int, init_msg: Dict[str, Any], label: str, admin: Optional[str] = None) -> TxResult:
        ...

    @abstractmethod
    def execute(self, address: str, msg: Dict[str, Any], funds: Optional[str] = None) -> TxResult:
        ...

    @abstractmethod
    def query(self, address: str, msg: Dict[str, Any]) -> Any:
        ...


def fetch_chain_id(rpc_url: str, timeout: int = 30) -> str:
    """Network name reported by the node's `/status` endpoint"""
    response = requests.get(f"{rpc_url.rstrip('/')}/status", timeout=timeout)
    response.raise_for_status()
    data = response.json()
    result = data.get("result", data)
    try:
        return result["node_info"]["network"]
    except (KeyError, TypeError):
        raise PreconditionError(f"Node at {rpc_url} did not report its network in /status")


def _flatten_events(events: Dict[str, Dict[str, str]]) -> List[Dict[str, Any]]:
    return [
        {"type": event_type, "attributes": [{"key": k, "value": v} for k, v in attributes.items()]}
        for event_type, attributes in events.items()
    ]


class CosmWasmGateway(ChainGateway):
    def __init__(self, client: LedgerClient, wallet: LocalWallet, chain_id: str, gas_limit: int = 4000000):
        self._client = client
        self._wallet = wallet
        self._chain_id = chain_id
        self.gas_limit = gas_limit

    @property
    def chain_id(self) -> str:
        return self._chain_id

    @property
    def address(self) -> str:
        return str(self._wallet.address())

    def _broadcast(self, msg: Any) -> TxResult:
        tx = Transaction()
        tx.add_message(msg)
        submitted = None
        try:
            submitted = prepare_and_broadcast_basic_transaction(self._client, tx, self._wallet, gas_limit=self.gas_limit)
            logger.info(f"Transaction sent: {submitted.tx_hash}")
            submitted.wait_to_complete()
        except BroadcastError as e:
            # rejected after inclusion: the response carries the chain code
            response = submitted.response if submitted is not None else None
            if response is not None and response.code:
                raise TransactionError(response.code, response.hash, response.raw_log) from e
            raise TransactionError("broadcast", getattr(e, "tx_hash", None), str(e)) from e

        response = submitted.response
        if response.code != 0:
            raise TransactionError(response.code, response.hash, response.raw_log)

        events: List[Dict[str, Any]] = []
        for log in response.logs or []:
            events.extend(_flatten_events(log.events))
        if not events:
            events = _flatten_events(response.events or {})

        logger.info(f"Transaction {response.hash} confirmed in block {response.height}")
        return TxResult(
            tx_hash=response.hash,
            code=response.code,
            raw_log=response.raw_log,
            height=response.height,
            events=events,
        )

    def upload(self, binary_path: str) -> TxResult:
        msg = create_cosmwasm_store_code_msg(binary_path, self._wallet.address())
        return self._broadcast(msg)

    def instantiate(self, code_id: int, init_msg: Dict[str, Any], label: str, admin: Optional[str] = None) -> TxResult:
        msg = create_cosmwasm_instantiate_msg(
            code_id,
            init_msg,
            label,
            self._wallet.address(),
            admin_address=Address(admin) if admin else None,
        )
        return self._broadcast(msg)

    def execute(self, address: str, msg: Dict[str, Any], funds: Optional[str] = None) -> TxResult:
        execute_msg = create_cosmwasm_execute_msg(self._wallet.address(), Address(address), msg, funds=funds)
        return self._broadcast(execute_msg)

    def query(self, address: str, msg: Dict[str, Any]) -> Any:
        request = QuerySmartContractStateRequest(address=address, query_data=json.dumps(msg).encode("utf-8"))
        response = self._client.wasm.SmartContractState(request)
        return json.loads(response.data)


def connect(settings: Settings) -> CosmWasmGateway:
    """
    Open the signing client described by settings.

    Raises:
        PreconditionError: The node's chain id differs from CHAIN_ID
    """
    chain_id = fetch_chain_id(settings.rpc_url)
    if chain_id != settings.chain_id:
        raise PreconditionError(f"Chain ID mismatch. Expected {settings.chain_id}, got {chain_id}")

    config = NetworkConfig(
        chain_id=chain_id,
        url=settings.lcd_url,
        fee_minimum_gas_price=settings.gas_amount,
        fee_denomination=settings.gas_denom,
        staking_denomination=settings.gas_denom,
    )
    client = LedgerClient(config)
    wallet = LocalWallet.from_mnemonic(settings.mnemonic, prefix=settings.address_prefix)
    return CosmWasmGateway(client, wallet, chain_id, gas_limit=settings.gas_limit)
