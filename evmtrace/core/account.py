from collections.abc import (
    Mapping,
)
from typing import (
    Any,
    Dict,
    Iterator,
    NamedTuple,
)

from eth_utils import (
    to_dict,
)
from eth_utils.toolz import (
    keymap,
    valmap,
)

from evmtrace._utils.hexadecimal import (
    encode_big_int,
    encode_hex,
    parse_big_int,
    parse_hex,
)
from evmtrace.constants import (
    ADDRESS_BYTE_WIDTH,
    WORD_BYTE_WIDTH,
)
from evmtrace.exceptions import (
    MalformedFixture,
)
from evmtrace.typing import (
    AccountJSON,
    JSONObject,
    Storage,
)


class Account(NamedTuple):
    balance: int
    nonce: int
    storage: Storage
    code: bytes

    def __hash__(self) -> int:
        return hash((self.balance, self.nonce, frozenset(self.storage.items()), self.code))

    def to_json(self) -> AccountJSON:
        return {
            "balance": encode_big_int(self.balance),
            "nonce": encode_big_int(self.nonce),
            "storage": {
                encode_big_int(slot, WORD_BYTE_WIDTH): encode_big_int(value, WORD_BYTE_WIDTH)
                for slot, value in sorted(self.storage.items())
            },
            "code": encode_hex(self.code),
        }

    @classmethod
    def from_json(cls, account: JSONObject) -> "Account":
        """
        Parse account details in the form used by the ``pre`` section of the
        Ethereum reference tests.
        """
        try:
            return cls(
                balance=parse_big_int(account["balance"]),
                nonce=parse_big_int(account["nonce"]),
                storage=dict(
                    keymap(parse_big_int, valmap(parse_big_int, account.get("storage", {})))
                ),
                code=parse_hex(account["code"]),
            )
        except KeyError as err:
            raise MalformedFixture(f"Account is missing required field {err}") from err


class WorldState(Mapping):
    """
    Read-only mapping from (integer) address to :class:`Account`.
    """

    def __init__(self, accounts: Dict[int, Account]) -> None:
        self._accounts = dict(accounts)

    def __getitem__(self, address: int) -> Account:
        return self._accounts[address]

    def __iter__(self) -> Iterator[int]:
        return iter(self._accounts)

    def __len__(self) -> int:
        return len(self._accounts)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, WorldState):
            return self._accounts == other._accounts
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._accounts.items()))

    def __repr__(self) -> str:
        return f"WorldState({len(self)} accounts)"

    @to_dict
    def to_json(self) -> Iterator[Any]:
        for address, account in sorted(self._accounts.items()):
            yield encode_big_int(address, ADDRESS_BYTE_WIDTH), account.to_json()

    @classmethod
    def from_json(cls, state: JSONObject) -> "WorldState":
        return cls({
            parse_big_int(address): Account.from_json(account)
            for address, account in state.items()
        })
