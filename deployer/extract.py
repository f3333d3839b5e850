"""
Extraction rules for chain responses.

Each rule targets one response shape and raises ExtractionError instead of
returning None when the shape is not what was expected.
"""

from typing import Any, Dict, List, Optional

from .errors import ExtractionError


def find_attribute(events: List[Dict[str, Any]], event_type: str, key: str) -> Optional[str]:
    """Value of the first `key` attribute on the first event of `event_type` that carries one"""
    for event in events or []:
        if not isinstance(event, dict) or event.get("type") != event_type:
            continue
        for attribute in event.get("attributes") or []:
            if isinstance(attribute, dict) and attribute.get("key") == key:
                return attribute.get("value")
    return None


def _require_attribute(result: Any, event_type: str, key: str) -> str:
    value = find_attribute(getattr(result, "events", None) or [], event_type, key)
    if value is None or value == "":
        tx_hash = getattr(result, "tx_hash", None)
        raise ExtractionError(f"No '{key}' attribute on a '{event_type}' event in transaction {tx_hash}")
    return value


def extract_code_id(result: Any) -> int:
    """Code id of an upload: `store_code` event, `code_id` attribute"""
    value = _require_attribute(result, "store_code", "code_id")
    try:
        code_id = int(value)
    except (TypeError, ValueError):
        raise ExtractionError(f"code_id '{value}' is not an integer")
    if code_id <= 0:
        raise ExtractionError(f"code_id must be positive, got {code_id}")
    return code_id


def extract_contract_address(result: Any) -> str:
    """Address of an instantiated contract: `instantiate` event, `_contract_address` attribute"""
    return _require_attribute(result, "instantiate", "_contract_address")


def extract_pair_address(result: Any) -> str:
    """Address of a pair created by the factory: `wasm` event, `pair_contract_addr` attribute"""
    return _require_attribute(result, "wasm", "pair_contract_addr")


def extract_liquidity_token(pair_info: Any) -> str:
    """LP token address from a pair `{pair: {}}` query"""
    if not isinstance(pair_info, dict):
        raise ExtractionError(f"Pair query returned {type(pair_info).__name__}, expected an object")
    value = pair_info.get("liquidity_token")
    if not isinstance(value, str) or not value:
        raise ExtractionError("Pair query response has no liquidity_token")
    return value
