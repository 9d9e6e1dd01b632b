from typing import (
    Any,
    Dict,
    List,
    Mapping,
    TypedDict,
    Union,
)

from eth_typing import (
    HexStr,
)

JSONObject = Dict[str, Any]

# Indices into a transaction template, keyed by "data", "gas" and "value".
InstanceIndexes = Mapping[str, int]

Storage = Mapping[int, int]


class AccountJSON(TypedDict):
    balance: HexStr
    nonce: HexStr
    code: HexStr
    storage: Dict[HexStr, HexStr]


class StepJSON(TypedDict, total=False):
    pc: int
    op: int
    depth: int
    gas: int
    stackSize: int
    stack: List[HexStr]
    memory: str
    storage: Dict[HexStr, HexStr]


class TraceJSON(TypedDict):
    steps: List[Union[StepJSON, "TraceJSON"]]
    outcome: str
    data: str


class AccessJSON(TypedDict):
    address: HexStr
    storageKeys: List[HexStr]
