"""
Asset descriptions and binary message encoding used in contract payloads.
"""

import json
import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Union


def to_encoded_binary(obj: Any) -> str:
    """JSON-encode obj and return it base64-encoded, as contracts expect for `Binary` fields"""
    return base64.b64encode(json.dumps(obj, separators=(",", ":")).encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class NativeAsset:
    """Native chain denom (e.g. usei)"""
    denom: str

    def get_denom(self) -> str:
        return self.denom


@dataclass(frozen=True)
class TokenAsset:
    """CW20 token identified by its contract address"""
    addr: str

    def get_denom(self) -> str:
        return self.addr


Asset = Union[NativeAsset, TokenAsset]


def asset_from_info(info: Dict[str, Any]) -> Asset:
    """
    Build an asset from its `asset_info` JSON form.

    Raises:
        ValueError: info is neither a native_token nor a token description
    """
    if "native_token" in info:
        return NativeAsset(denom=info["native_token"]["denom"])
    if "token" in info:
        return TokenAsset(addr=info["token"]["contract_addr"])
    raise ValueError(f"Unknown asset info: {info}")


def describe_pair(asset_infos: List[Dict[str, Any]]) -> str:
    """Short `denomA/denomB` description for logs"""
    return "/".join(asset_from_info(info).get_denom() for info in asset_infos)
