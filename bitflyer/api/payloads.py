"""Request bodies for the write endpoints (orders and withdrawals)."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import CallerUsageError
from .models import ParentOrderParameter


def _compact(value: Any) -> Any:
    """Drop ``None`` entries recursively so unset optional fields are not sent."""

    if isinstance(value, dict):
        return {key: _compact(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_compact(item) for item in value]
    return value


@dataclass
class ChildOrderRequest:
    """A simple (child) order.

    ``price`` is mandatory for ``LIMIT`` orders and ignored by the exchange for
    ``MARKET`` orders.
    """

    product_code: str
    child_order_type: str
    side: str
    size: float
    price: Optional[float] = None
    minute_to_expire: Optional[int] = None
    time_in_force: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.product_code:
            raise CallerUsageError("product_code is required")
        if self.child_order_type not in {"LIMIT", "MARKET"}:
            raise CallerUsageError(f"child_order_type must be LIMIT or MARKET, got {self.child_order_type!r}")
        if self.side not in {"BUY", "SELL"}:
            raise CallerUsageError(f"side must be BUY or SELL, got {self.side!r}")
        if self.size <= 0:
            raise CallerUsageError("size must be positive")
        if self.child_order_type == "LIMIT" and self.price is None:
            raise CallerUsageError("price is required for LIMIT orders")

    def to_payload(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class ParentOrderRequest:
    """A special (conditional) order such as IFD, OCO or IFDOCO."""

    order_method: str
    parameters: List[ParentOrderParameter] = field(default_factory=list)
    minute_to_expire: Optional[int] = None
    time_in_force: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.order_method:
            raise CallerUsageError("order_method is required")
        if not self.parameters:
            raise CallerUsageError("a parent order needs at least one parameter")
        for index, parameter in enumerate(self.parameters):
            if not (parameter.product_code and parameter.condition_type and parameter.side):
                raise CallerUsageError(
                    f"parameter {index} needs product_code, condition_type and side"
                )

    def to_payload(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class WithdrawRequest:
    """Fiat withdrawal to a registered bank account; amount in whole yen."""

    bank_account_id: int
    amount: int
    currency_code: str = "JPY"
    code: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise CallerUsageError("amount must be positive")

    def to_payload(self) -> Dict[str, Any]:
        return _compact(asdict(self))


__all__ = ["ChildOrderRequest", "ParentOrderRequest", "ParentOrderParameter", "WithdrawRequest"]
