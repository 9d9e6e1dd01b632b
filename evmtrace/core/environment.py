from typing import (
    Any,
    Dict,
    Iterable,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
)

from eth_utils import (
    to_dict,
)

from evmtrace._utils.hexadecimal import (
    encode_big_int,
    parse_big_int,
)
from evmtrace.constants import (
    ADDRESS_BYTE_WIDTH,
    EMPTY_MAPPING,
    WORD_BYTE_WIDTH,
)
from evmtrace.exceptions import (
    MalformedFixture,
)
from evmtrace.typing import (
    JSONObject,
)

# (json key, field name, byte width of the encoding or None for a quantity)
REQUIRED_FIELDS: Tuple[Tuple[str, str, Optional[int]], ...] = (
    ("currentCoinbase", "current_coinbase", ADDRESS_BYTE_WIDTH),
    ("currentGasLimit", "current_gas_limit", None),
    ("currentNumber", "current_number", None),
    ("currentTimestamp", "current_timestamp", None),
)
OPTIONAL_FIELDS: Tuple[Tuple[str, str, Optional[int]], ...] = (
    ("currentDifficulty", "current_difficulty", None),
    ("currentRandom", "current_random", WORD_BYTE_WIDTH),
    ("currentBaseFee", "current_base_fee", None),
    ("previousHash", "previous_hash", WORD_BYTE_WIDTH),
)
KNOWN_KEYS = {key for key, _, _ in REQUIRED_FIELDS + OPTIONAL_FIELDS} | {"blockHashes"}


def _encode(value: int, width: Optional[int]) -> str:
    if width is None:
        return encode_big_int(value)
    else:
        return encode_big_int(value, width)


class Environment(NamedTuple):
    """
    Block context in which a state test's transaction executes.  Keys this class
    does not model (fork specific roots, withdrawals, blob gas, ...) are kept
    verbatim in ``extra`` so they survive a round trip.
    """

    current_coinbase: int
    current_gas_limit: int
    current_number: int
    current_timestamp: int
    current_difficulty: Optional[int] = None
    current_random: Optional[int] = None
    current_base_fee: Optional[int] = None
    previous_hash: Optional[int] = None
    block_hashes: Mapping[int, int] = EMPTY_MAPPING
    extra: Mapping[str, Any] = EMPTY_MAPPING

    @to_dict
    def to_json(self) -> Iterable[Tuple[str, Any]]:
        for key, field, width in REQUIRED_FIELDS + OPTIONAL_FIELDS:
            value = getattr(self, field)
            if value is not None:
                yield key, _encode(value, width)

        if self.block_hashes:
            yield "blockHashes", {
                str(number): encode_big_int(block_hash, WORD_BYTE_WIDTH)
                for number, block_hash in sorted(self.block_hashes.items())
            }

        yield from self.extra.items()

    def to_t8n_json(self) -> Dict[str, Any]:
        """
        The environment as ``evm t8n`` expects it, which takes the hash of the
        previous block from ``blockHashes`` rather than ``previousHash``.
        """
        env = self.to_json()
        if self.previous_hash is not None and self.current_number > 0:
            block_hashes = dict(env.get("blockHashes", {}))
            block_hashes.setdefault(
                str(self.current_number - 1),
                encode_big_int(self.previous_hash, WORD_BYTE_WIDTH),
            )
            env["blockHashes"] = block_hashes
        if "currentBeaconRoot" in env and "parentBeaconBlockRoot" not in env:
            env["parentBeaconBlockRoot"] = env["currentBeaconRoot"]
        return env

    @classmethod
    def from_json(cls, env: JSONObject) -> "Environment":
        missing = [key for key, _, _ in REQUIRED_FIELDS if key not in env]
        if missing:
            raise MalformedFixture(f"Environment is missing required keys: {', '.join(missing)}")

        fields = {
            field: parse_big_int(env[key])
            for key, field, _ in REQUIRED_FIELDS + OPTIONAL_FIELDS
            if key in env
        }
        block_hashes = {
            int(number): parse_big_int(block_hash)
            for number, block_hash in env.get("blockHashes", {}).items()
        }
        extra = {key: value for key, value in env.items() if key not in KNOWN_KEYS}
        return cls(block_hashes=block_hashes, extra=extra, **fields)
