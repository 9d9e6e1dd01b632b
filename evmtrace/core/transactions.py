from typing import (
    Any,
    ClassVar,
    Dict,
    Iterable,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    Type,
)

from eth_utils import (
    ValidationError,
    to_tuple,
)

from evmtrace._utils.hexadecimal import (
    encode_big_int,
    encode_hex,
    parse_big_int,
    parse_hex,
)
from evmtrace.constants import (
    ADDRESS_BYTE_WIDTH,
    DEFAULT_CHAIN_ID,
    WORD_BYTE_WIDTH,
)
from evmtrace.core.account import (
    WorldState,
)
from evmtrace.exceptions import (
    MalformedFixture,
    UnsupportedTransactionType,
)
from evmtrace.typing import (
    AccessJSON,
    InstanceIndexes,
    JSONObject,
)


class Access(NamedTuple):
    """
    An entry of an EIP-2930 access list.
    """

    address: int
    storage_keys: Tuple[int, ...] = ()

    def to_json(self) -> AccessJSON:
        return {
            "address": encode_big_int(self.address, ADDRESS_BYTE_WIDTH),
            "storageKeys": [encode_big_int(key, WORD_BYTE_WIDTH) for key in self.storage_keys],
        }

    @classmethod
    def from_json(cls, access: JSONObject) -> "Access":
        return cls(
            address=parse_big_int(access["address"]),
            storage_keys=tuple(parse_big_int(key) for key in access["storageKeys"]),
        )


AccessList = Tuple[Access, ...]


def access_list_to_json(access_list: AccessList) -> Sequence[AccessJSON]:
    return [access.to_json() for access in access_list]


@to_tuple
def access_list_from_json(access_list: Optional[Iterable[JSONObject]]) -> Iterable[Access]:
    # fixtures use ``null`` for "no access list" in the per-data lists
    for access in access_list or ():
        yield Access.from_json(access)


def _parse_recipient(transaction: JSONObject) -> Optional[int]:
    to = transaction.get("to", "")
    if to:
        return parse_big_int(to)
    else:
        return None


class Transaction:
    """
    A concrete, unsigned transaction.  Instances are immutable; use
    :meth:`copy` to derive a transaction with some fields replaced.

    A ``to`` of ``None`` denotes contract creation.
    """

    fields: ClassVar[Tuple[str, ...]] = (
        "sender",
        "secret_key",
        "to",
        "nonce",
        "gas_limit",
        "value",
        "data",
        "access_list",
        "chain_id",
    )

    def __init__(
        self,
        sender: int,
        secret_key: int,
        to: Optional[int],
        nonce: int,
        gas_limit: int,
        value: int,
        data: bytes,
        access_list: Optional[AccessList] = None,
        chain_id: int = DEFAULT_CHAIN_ID,
    ) -> None:
        self.sender = sender
        self.secret_key = secret_key
        self.to = to
        self.nonce = nonce
        self.gas_limit = gas_limit
        self.value = value
        self.data = data
        self.access_list = None if access_list is None else tuple(access_list)
        self.chain_id = chain_id

    @property
    def is_create(self) -> bool:
        return self.to is None

    def _field_values(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, field) for field in self.fields)

    def copy(self, **overrides: Any) -> "Transaction":
        unknown = set(overrides) - set(self.fields)
        if unknown:
            raise TypeError(f"Unknown transaction fields: {', '.join(sorted(unknown))}")
        values = dict(zip(self.fields, self._field_values()))
        values.update(overrides)
        return type(self)(**values)

    def __eq__(self, other: Any) -> bool:
        if type(self) is not type(other):
            return False
        return self._field_values() == other._field_values()

    def __hash__(self) -> int:
        return hash((type(self),) + self._field_values())

    def __repr__(self) -> str:
        values = ", ".join(
            f"{field}={value!r}" for field, value in zip(self.fields, self._field_values())
        )
        return f"{type(self).__name__}({values})"

    def get_code(self, world_state: WorldState) -> bytes:
        """
        The code this transaction executes.  For contract creation that is the
        transaction data (initcode), otherwise the code of the recipient.
        """
        if self.to is None:
            return self.data
        elif self.to in world_state:
            return world_state[self.to].code
        else:
            return b""

    def to_json(self) -> Dict[str, Any]:
        transaction: Dict[str, Any] = {
            "chainId": encode_big_int(self.chain_id),
            "sender": encode_big_int(self.sender, ADDRESS_BYTE_WIDTH),
            "secretKey": encode_big_int(self.secret_key, WORD_BYTE_WIDTH),
        }
        if self.to is not None:
            transaction["to"] = encode_big_int(self.to, ADDRESS_BYTE_WIDTH)
        transaction.update({
            "gasLimit": encode_big_int(self.gas_limit),
            "nonce": encode_big_int(self.nonce),
            "value": encode_big_int(self.value),
            "input": encode_hex(self.data),
        })
        if self.access_list is not None:
            transaction["accessList"] = access_list_to_json(self.access_list)
        return transaction

    @classmethod
    def _common_fields_from_json(cls, transaction: JSONObject) -> Dict[str, Any]:
        data = transaction.get("input", transaction.get("data"))
        if data is None:
            raise MalformedFixture("Transaction is missing required key 'input'")
        return {
            "sender": parse_big_int(transaction["sender"]),
            "secret_key": parse_big_int(transaction["secretKey"]),
            "to": _parse_recipient(transaction),
            "nonce": parse_big_int(transaction["nonce"]),
            "gas_limit": parse_big_int(transaction["gasLimit"]),
            "value": parse_big_int(transaction["value"]),
            "data": parse_hex(data),
            "access_list": (
                access_list_from_json(transaction["accessList"])
                if "accessList" in transaction
                else None
            ),
            "chain_id": parse_big_int(transaction.get("chainId", DEFAULT_CHAIN_ID)),
        }

    @classmethod
    def from_json(cls, transaction: JSONObject) -> "Transaction":
        """
        Parse a concrete transaction, choosing the transaction type from the fee
        fields which are present.
        """
        transaction_class = transaction_class_for(transaction)
        try:
            fields = transaction_class._common_fields_from_json(transaction)
            fields.update(transaction_class._fee_fields_from_json(transaction))
        except KeyError as err:
            raise MalformedFixture(f"Transaction is missing required key {err}") from err
        return transaction_class(**fields)

    @classmethod
    def _fee_fields_from_json(cls, transaction: JSONObject) -> Dict[str, Any]:
        raise NotImplementedError("Must be implemented by subclasses")


class LegacyTransaction(Transaction):
    """
    A transaction priced with a single ``gasPrice``.  With an access list this
    is an EIP-2930 (type 1) transaction.
    """

    fields = Transaction.fields + ("gas_price",)

    def __init__(self, *args: Any, gas_price: int, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.gas_price = gas_price

    def to_json(self) -> Dict[str, Any]:
        transaction = super().to_json()
        transaction["gasPrice"] = encode_big_int(self.gas_price)
        if self.access_list is not None:
            transaction["type"] = "0x1"
        return transaction

    @classmethod
    def _fee_fields_from_json(cls, transaction: JSONObject) -> Dict[str, Any]:
        return {"gas_price": parse_big_int(transaction["gasPrice"])}


class DynamicFeeTransaction(Transaction):
    """
    An EIP-1559 (type 2) transaction.
    """

    fields = Transaction.fields + ("max_priority_fee_per_gas", "max_fee_per_gas")

    def __init__(
        self,
        *args: Any,
        max_priority_fee_per_gas: int,
        max_fee_per_gas: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.max_priority_fee_per_gas = max_priority_fee_per_gas
        self.max_fee_per_gas = max_fee_per_gas

    def to_json(self) -> Dict[str, Any]:
        transaction = super().to_json()
        transaction["maxPriorityFeePerGas"] = encode_big_int(self.max_priority_fee_per_gas)
        transaction["maxFeePerGas"] = encode_big_int(self.max_fee_per_gas)
        transaction["type"] = "0x2"
        return transaction

    @classmethod
    def _fee_fields_from_json(cls, transaction: JSONObject) -> Dict[str, Any]:
        return {
            "max_priority_fee_per_gas": parse_big_int(transaction["maxPriorityFeePerGas"]),
            "max_fee_per_gas": parse_big_int(transaction["maxFeePerGas"]),
        }


def transaction_class_for(transaction: JSONObject) -> Type[Transaction]:
    if "gasPrice" in transaction:
        return LegacyTransaction
    elif "maxPriorityFeePerGas" in transaction and "maxFeePerGas" in transaction:
        return DynamicFeeTransaction
    else:
        raise UnsupportedTransactionType(
            f"Transaction has neither gasPrice nor EIP-1559 fee fields: {sorted(transaction)}"
        )


# (transaction field, template index key)
TEMPLATE_PARAMETERS = (
    ("gas_limit", "gas"),
    ("value", "value"),
    ("data", "data"),
)


def _select(name: str, items: Sequence[Any], indexes: InstanceIndexes, key: str) -> Any:
    if key not in indexes:
        raise ValidationError(f"Missing template index {key!r}")
    index = indexes[key]
    if not items:
        raise ValidationError(f"Template has no {name} values to select from")
    elif not 0 <= index < len(items):
        raise ValidationError(
            f"Template index {key}={index} out of range for {len(items)} {name} values"
        )
    return items[index]


class TransactionTemplate:
    """
    A transaction parameterised over ``gasLimit``, ``value`` and ``data`` (and,
    alongside ``data``, the access list).  Each parameter has an array of
    candidate values; a concrete transaction picks one of each by index.
    """

    def __init__(
        self,
        template: Transaction,
        gas_limits: Sequence[int],
        values: Sequence[int],
        datas: Sequence[bytes],
        access_lists: Optional[Sequence[AccessList]] = None,
    ) -> None:
        self.template = template
        self.gas_limits = tuple(gas_limits)
        self.values = tuple(values)
        self.datas = tuple(datas)
        self.access_lists = None if access_lists is None else tuple(access_lists)

    def instantiate(self, indexes: InstanceIndexes) -> Transaction:
        overrides = {
            field: _select(field, getattr(self, field + "s"), indexes, key)
            for field, key in TEMPLATE_PARAMETERS
        }
        if self.access_lists is not None:
            overrides["access_list"] = _select(
                "access_list", self.access_lists, indexes, "data"
            )
        return self.template.copy(**overrides)

    @classmethod
    def from_json(cls, transaction: JSONObject) -> "TransactionTemplate":
        """
        Parse the ``transaction`` section of a state test fixture.
        """
        transaction_class = transaction_class_for(transaction)
        try:
            template = transaction_class(
                sender=parse_big_int(transaction["sender"]),
                secret_key=parse_big_int(transaction["secretKey"]),
                to=_parse_recipient(transaction),
                nonce=parse_big_int(transaction["nonce"]),
                gas_limit=0,
                value=0,
                data=b"",
                **transaction_class._fee_fields_from_json(transaction),
            )
            gas_limits = [parse_big_int(gas) for gas in transaction["gasLimit"]]
            values = [parse_big_int(value) for value in transaction["value"]]
            datas = [parse_hex(data) for data in transaction["data"]]
        except KeyError as err:
            raise MalformedFixture(f"Transaction template is missing required key {err}") from err

        if "accessLists" in transaction:
            access_lists = [
                access_list_from_json(access_list)
                for access_list in transaction["accessLists"]
            ]
        else:
            access_lists = None

        return cls(template, gas_limits, values, datas, access_lists)
