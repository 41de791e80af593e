"""Typed response records for the bitFlyer REST API.

Each dataclass mirrors one JSON object from the exchange, field for field, with
field names equal to the JSON keys. :func:`decode` turns a parsed JSON body into
the expected shape:

* unknown keys are ignored so new exchange fields do not break callers;
* missing keys and ``null`` fall back to the field default;
* an object where an array is expected (or the reverse), a string where a
  number is expected, or a fractional number in an integer field raises
  :class:`ResponseDecodeError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .errors import ResponseDecodeError

R = TypeVar("R", bound="Record")

_HINTS: Dict[type, Dict[str, Any]] = {}


def _kind(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def _decode_value(hint: Any, value: Any, where: str) -> Any:
    if hint is Any:
        return value

    origin = get_origin(hint)
    if origin is Union:
        if value is None:
            return None
        options = [arg for arg in get_args(hint) if arg is not type(None)]
        return _decode_value(options[0], value, where)
    if origin is list:
        if not isinstance(value, list):
            raise TypeError(f"{where}: expected array, got {_kind(value)}")
        (item_hint,) = get_args(hint)
        return [_decode_value(item_hint, item, f"{where}[{index}]") for index, item in enumerate(value)]
    if isinstance(hint, type) and issubclass(hint, Record):
        return hint.from_json(value, where)

    if hint is bool:
        if not isinstance(value, bool):
            raise TypeError(f"{where}: expected boolean, got {_kind(value)}")
        return value
    if hint is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"{where}: expected integer, got {_kind(value)}")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"{where}: expected integer, got {value!r}")
            return int(value)
        return value
    if hint is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"{where}: expected number, got {_kind(value)}")
        return float(value)
    if hint is str:
        if not isinstance(value, str):
            raise TypeError(f"{where}: expected string, got {_kind(value)}")
        return value
    raise TypeError(f"{where}: unsupported field type {hint!r}")


class Record:
    """Base class for decoded response objects."""

    @classmethod
    def from_json(cls: Type[R], payload: Any, where: Optional[str] = None) -> R:
        where = where or cls.__name__
        if not isinstance(payload, dict):
            raise TypeError(f"{where}: expected object, got {_kind(payload)}")

        hints = _HINTS.get(cls)
        if hints is None:
            hints = _HINTS[cls] = get_type_hints(cls)

        values: Dict[str, Any] = {}
        for item in fields(cls):
            raw = payload.get(item.name)
            if raw is None:
                continue
            values[item.name] = _decode_value(hints[item.name], raw, f"{where}.{item.name}")
        return cls(**values)


def decode(hint: Any, payload: Any) -> Any:
    """Decode ``payload`` into ``hint`` (a record type or ``List[...]`` of one)."""

    try:
        return _decode_value(hint, payload, "response")
    except (TypeError, ValueError, OverflowError) as exc:
        raise ResponseDecodeError(f"unexpected response shape: {exc}", cause=exc) from exc


# --- Public market data --------------------------------------------------


@dataclass
class Market(Record):
    product_code: str = ""
    alias: str = ""
    market_type: str = ""


@dataclass
class BoardLevel(Record):
    price: float = 0.0
    size: float = 0.0


@dataclass
class Board(Record):
    """Order book snapshot; bids and asks are ordered best first."""

    mid_price: float = 0.0
    bids: List[BoardLevel] = field(default_factory=list)
    asks: List[BoardLevel] = field(default_factory=list)


@dataclass
class Ticker(Record):
    product_code: str = ""
    state: str = ""
    timestamp: str = ""
    tick_id: int = 0
    best_bid: float = 0.0
    best_ask: float = 0.0
    best_bid_size: float = 0.0
    best_ask_size: float = 0.0
    total_bid_depth: float = 0.0
    total_ask_depth: float = 0.0
    market_bid_size: float = 0.0
    market_ask_size: float = 0.0
    ltp: float = 0.0
    volume: float = 0.0
    volume_by_product: float = 0.0


@dataclass
class Execution(Record):
    """A trade; public history and the account's own fills share this shape."""

    id: int = 0
    child_order_id: str = ""
    side: str = ""
    price: float = 0.0
    size: float = 0.0
    commission: int = 0
    exec_date: str = ""
    buy_child_order_acceptance_id: str = ""
    sell_child_order_acceptance_id: str = ""
    child_order_acceptance_id: str = ""


@dataclass
class Health(Record):
    status: str = ""


@dataclass
class Chat(Record):
    nickname: str = ""
    message: str = ""
    date: str = ""


# --- Account -----------------------------------------------------------------


@dataclass
class Balance(Record):
    currency_code: str = ""
    amount: float = 0.0
    available: float = 0.0


@dataclass
class Collateral(Record):
    collateral: float = 0.0
    open_position_pnl: float = 0.0
    require_collateral: float = 0.0
    keep_rate: float = 0.0


@dataclass
class Address(Record):
    type: str = ""
    currency_code: str = ""
    address: str = ""


@dataclass
class CoinIn(Record):
    id: int = 0
    order_id: str = ""
    currency_code: str = ""
    amount: float = 0.0
    address: str = ""
    tx_hash: str = ""
    status: str = ""
    event_date: str = ""


@dataclass
class CoinOut(Record):
    id: int = 0
    order_id: str = ""
    currency_code: str = ""
    amount: float = 0.0
    address: str = ""
    tx_hash: str = ""
    fee: float = 0.0
    additional_fee: float = 0.0
    status: str = ""
    event_date: str = ""


@dataclass
class BankAccount(Record):
    id: int = 0
    is_verified: bool = False
    bank_name: str = ""
    branch_name: str = ""
    account_type: str = ""
    account_number: str = ""
    account_name: str = ""


@dataclass
class Deposit(Record):
    """Fiat deposit; amounts are whole yen."""

    id: int = 0
    order_id: str = ""
    currency_code: str = ""
    amount: int = 0
    status: str = ""
    event_date: str = ""


@dataclass
class Withdrawal(Record):
    id: int = 0
    order_id: str = ""
    currency_code: str = ""
    amount: int = 0
    status: str = ""
    event_date: str = ""


@dataclass
class WithdrawResult(Record):
    """Answer to a withdrawal request.

    ``data`` has no documented structure and is kept exactly as received.
    """

    message_id: str = ""
    status: int = 0
    error_message: str = ""
    data: Any = None


# --- Trading -----------------------------------------------------------------


@dataclass
class ChildOrderAcceptance(Record):
    child_order_acceptance_id: str = ""


@dataclass
class ParentOrderAcceptance(Record):
    parent_order_acceptance_id: str = ""


@dataclass
class ChildOrder(Record):
    id: int = 0
    child_order_id: str = ""
    product_code: str = ""
    side: str = ""
    child_order_type: str = ""
    price: float = 0.0
    average_price: float = 0.0
    size: float = 0.0
    child_order_state: str = ""
    expire_date: str = ""
    child_order_date: str = ""
    child_order_acceptance_id: str = ""
    outstanding_size: float = 0.0
    cancel_size: float = 0.0
    executed_size: float = 0.0
    total_commission: int = 0


@dataclass
class ParentOrder(Record):
    id: int = 0
    parent_order_id: str = ""
    product_code: str = ""
    side: str = ""
    parent_order_type: str = ""
    price: float = 0.0
    average_price: float = 0.0
    size: float = 0.0
    parent_order_state: str = ""
    expire_date: str = ""
    parent_order_date: str = ""
    parent_order_acceptance_id: str = ""
    outstanding_size: float = 0.0
    cancel_size: float = 0.0
    executed_size: float = 0.0
    total_commission: int = 0


@dataclass
class ParentOrderParameter(Record):
    """One leg of a special order, used both when sending and when reading back."""

    product_code: str = ""
    condition_type: str = ""
    side: str = ""
    size: Optional[float] = None
    price: Optional[float] = None
    trigger_price: Optional[float] = None
    offset: Optional[int] = None


@dataclass
class ParentOrderDetail(Record):
    id: int = 0
    parent_order_id: str = ""
    order_method: str = ""
    expire_date: str = ""
    time_in_force: str = ""
    minute_to_expire: int = 0
    parameters: List[ParentOrderParameter] = field(default_factory=list)
    parent_order_acceptance_id: str = ""


@dataclass
class Position(Record):
    product_code: str = ""
    side: str = ""
    price: float = 0.0
    size: float = 0.0
    commission: int = 0
    swap_point_accumulate: float = 0.0
    require_collateral: float = 0.0
    open_date: str = ""
    leverage: int = 0
    pnl: float = 0.0
    sfd: float = 0.0


@dataclass
class TradingCommission(Record):
    commission_rate: float = 0.0


__all__ = [
    "Record",
    "decode",
    "Market",
    "BoardLevel",
    "Board",
    "Ticker",
    "Execution",
    "Health",
    "Chat",
    "Balance",
    "Collateral",
    "Address",
    "CoinIn",
    "CoinOut",
    "BankAccount",
    "Deposit",
    "Withdrawal",
    "WithdrawResult",
    "ChildOrderAcceptance",
    "ParentOrderAcceptance",
    "ChildOrder",
    "ParentOrder",
    "ParentOrderParameter",
    "ParentOrderDetail",
    "Position",
    "TradingCommission",
]
