"""bitFlyer Lightning REST client.

Every endpoint method runs the same sequence through :meth:`BitflyerClient._execute`:
build the request (signed when credentials are configured), send it once over
the ``requests`` session, reject anything but HTTP 200, and decode the JSON body
into the endpoint's record type. Nothing is retried and no state is kept
between calls, so one client can serve many callers.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .endpoint import ClientConfig, PagingParams
from .errors import (
    CallerUsageError,
    DeadlineExceededError,
    NetworkError,
    ResponseDecodeError,
    StatusError,
)
from .models import (
    Address,
    Balance,
    BankAccount,
    Board,
    Chat,
    ChildOrder,
    ChildOrderAcceptance,
    CoinIn,
    CoinOut,
    Collateral,
    Deposit,
    Execution,
    Health,
    Market,
    ParentOrder,
    ParentOrderAcceptance,
    ParentOrderDetail,
    Position,
    Ticker,
    TradingCommission,
    Withdrawal,
    WithdrawResult,
    decode,
)
from .payloads import ChildOrderRequest, ParentOrderRequest, WithdrawRequest
from .signing import SignedRequest, build_request

Params = List[Tuple[str, Any]]

_CHUNK_SIZE = 1024


def _paged(page: Optional[PagingParams], *params: Tuple[str, Any]) -> Params:
    """Return ``params`` followed by the paging cursor, if any."""

    merged: Params = list(params)
    if page is not None:
        merged.extend(page.to_params())
    return merged


class BitflyerClient:
    """Client for bitFlyer public market data and private account/trading calls."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ClientConfig()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._monotonic = monotonic

    @classmethod
    def from_config(cls, config: ClientConfig, session: Optional[requests.Session] = None) -> "BitflyerClient":
        return cls(config=config, session=session)

    def close(self) -> None:
        """Close the HTTP session if this client created it."""

        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "BitflyerClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Public market data ----------------------------------------------
    def get_markets(self, *, timeout: Optional[float] = None) -> List[Market]:
        """List tradable products and their aliases."""

        return self._execute("GET", "markets", List[Market], timeout=timeout)

    def get_board(self, product_code: str = "", *, timeout: Optional[float] = None) -> Board:
        """Return the order book for ``product_code`` (exchange default when empty)."""

        params = [("product_code", product_code)]
        return self._execute("GET", "board", Board, params=params, timeout=timeout)

    def get_ticker(self, product_code: str = "", *, timeout: Optional[float] = None) -> Ticker:
        params = [("product_code", product_code)]
        return self._execute("GET", "ticker", Ticker, params=params, timeout=timeout)

    def get_executions(
        self,
        product_code: str = "",
        page: Optional[PagingParams] = None,
        *,
        timeout: Optional[float] = None,
    ) -> List[Execution]:
        """Return public trade history, newest first."""

        params = _paged(page, ("product_code", product_code))
        return self._execute("GET", "executions", List[Execution], params=params, timeout=timeout)

    def get_health(self, product_code: str = "", *, timeout: Optional[float] = None) -> Health:
        params = [("product_code", product_code)]
        return self._execute("GET", "gethealth", Health, params=params, timeout=timeout)

    def get_chats(self, from_date: str = "", *, timeout: Optional[float] = None) -> List[Chat]:
        """Return chat messages posted since ``from_date`` (exchange default is the last five days)."""

        params = [("from_date", from_date)]
        return self._execute("GET", "getchats", List[Chat], params=params, timeout=timeout)

    # --- Account ---------------------------------------------------------
    def get_permissions(self, *, timeout: Optional[float] = None) -> List[str]:
        """Return the endpoint paths the configured API key may call."""

        return self._execute("GET", "me/getpermissions", List[str], timeout=timeout)

    def get_balance(self, *, timeout: Optional[float] = None) -> List[Balance]:
        return self._execute("GET", "me/getbalance", List[Balance], timeout=timeout)

    def get_collateral(self, *, timeout: Optional[float] = None) -> Collateral:
        return self._execute("GET", "me/getcollateral", Collateral, timeout=timeout)

    def get_addresses(self, *, timeout: Optional[float] = None) -> List[Address]:
        """Return the deposit addresses for crypto assets."""

        return self._execute("GET", "me/getaddresses", List[Address], timeout=timeout)

    def get_coin_ins(self, page: Optional[PagingParams] = None, *, timeout: Optional[float] = None) -> List[CoinIn]:
        return self._execute("GET", "me/getcoinins", List[CoinIn], params=_paged(page), timeout=timeout)

    def get_coin_outs(
        self,
        page: Optional[PagingParams] = None,
        message_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> List[CoinOut]:
        params = _paged(page, ("message_id", message_id))
        return self._execute("GET", "me/getcoinouts", List[CoinOut], params=params, timeout=timeout)

    def get_bank_accounts(self, *, timeout: Optional[float] = None) -> List[BankAccount]:
        return self._execute("GET", "me/getbankaccounts", List[BankAccount], timeout=timeout)

    def get_deposits(self, page: Optional[PagingParams] = None, *, timeout: Optional[float] = None) -> List[Deposit]:
        return self._execute("GET", "me/getdeposits", List[Deposit], params=_paged(page), timeout=timeout)

    def withdraw(self, request: WithdrawRequest, *, timeout: Optional[float] = None) -> WithdrawResult:
        """Request a fiat withdrawal to a registered bank account."""

        return self._execute("POST", "me/withdraw", WithdrawResult, payload=request.to_payload(), timeout=timeout)

    def get_withdrawals(
        self,
        page: Optional[PagingParams] = None,
        message_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> List[Withdrawal]:
        params = _paged(page, ("message_id", message_id))
        return self._execute("GET", "me/getwithdrawals", List[Withdrawal], params=params, timeout=timeout)

    # --- Trading ---------------------------------------------------------
    def send_child_order(self, order: ChildOrderRequest, *, timeout: Optional[float] = None) -> ChildOrderAcceptance:
        """Submit a simple order and return its acceptance ID."""

        return self._execute(
            "POST", "me/sendchildorder", ChildOrderAcceptance, payload=order.to_payload(), timeout=timeout
        )

    def cancel_child_order(
        self,
        product_code: str,
        child_order_id: str = "",
        child_order_acceptance_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Cancel one child order, identified by order ID or acceptance ID."""

        self._require_product_code(product_code)
        payload = {"product_code": product_code}
        payload.update(
            self._one_of(
                ("child_order_id", child_order_id),
                ("child_order_acceptance_id", child_order_acceptance_id),
            )
        )
        self._execute("POST", "me/cancelchildorder", None, payload=payload, timeout=timeout)

    def send_parent_order(
        self, order: ParentOrderRequest, *, timeout: Optional[float] = None
    ) -> ParentOrderAcceptance:
        """Submit a special order (IFD, OCO, IFDOCO, ...) and return its acceptance ID."""

        return self._execute(
            "POST", "me/sendparentorder", ParentOrderAcceptance, payload=order.to_payload(), timeout=timeout
        )

    def cancel_parent_order(
        self,
        product_code: str,
        parent_order_id: str = "",
        parent_order_acceptance_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._require_product_code(product_code)
        payload = {"product_code": product_code}
        payload.update(
            self._one_of(
                ("parent_order_id", parent_order_id),
                ("parent_order_acceptance_id", parent_order_acceptance_id),
            )
        )
        self._execute("POST", "me/cancelparentorder", None, payload=payload, timeout=timeout)

    def cancel_all_child_orders(self, product_code: str, *, timeout: Optional[float] = None) -> None:
        """Cancel every open order for ``product_code``."""

        self._require_product_code(product_code)
        payload = {"product_code": product_code}
        self._execute("POST", "me/cancelallchildorders", None, payload=payload, timeout=timeout)

    def get_child_orders(
        self,
        product_code: str = "",
        page: Optional[PagingParams] = None,
        child_order_state: str = "",
        parent_order_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> List[ChildOrder]:
        params = _paged(page, ("product_code", product_code))
        params.extend([("child_order_state", child_order_state), ("parent_order_id", parent_order_id)])
        return self._execute("GET", "me/getchildorders", List[ChildOrder], params=params, timeout=timeout)

    def get_parent_orders(
        self,
        product_code: str = "",
        page: Optional[PagingParams] = None,
        parent_order_state: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> List[ParentOrder]:
        params = _paged(page, ("product_code", product_code))
        params.append(("parent_order_state", parent_order_state))
        return self._execute("GET", "me/getparentorders", List[ParentOrder], params=params, timeout=timeout)

    def get_parent_order(
        self,
        parent_order_id: str = "",
        parent_order_acceptance_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> ParentOrderDetail:
        """Return one parent order with its parameters."""

        params = list(
            self._one_of(
                ("parent_order_id", parent_order_id),
                ("parent_order_acceptance_id", parent_order_acceptance_id),
            ).items()
        )
        return self._execute("GET", "me/getparentorder", ParentOrderDetail, params=params, timeout=timeout)

    def get_my_executions(
        self,
        product_code: str = "",
        page: Optional[PagingParams] = None,
        child_order_id: str = "",
        child_order_acceptance_id: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> List[Execution]:
        """Return the account's own fills."""

        params = _paged(page, ("product_code", product_code))
        params.extend([("child_order_id", child_order_id), ("child_order_acceptance_id", child_order_acceptance_id)])
        return self._execute("GET", "me/getexecutions", List[Execution], params=params, timeout=timeout)

    def get_positions(self, product_code: str, *, timeout: Optional[float] = None) -> List[Position]:
        """Return open positions for a margin product such as ``FX_BTC_JPY``."""

        self._require_product_code(product_code)
        params = [("product_code", product_code)]
        return self._execute("GET", "me/getpositions", List[Position], params=params, timeout=timeout)

    def get_trading_commission(self, product_code: str, *, timeout: Optional[float] = None) -> TradingCommission:
        self._require_product_code(product_code)
        params = [("product_code", product_code)]
        return self._execute("GET", "me/gettradingcommission", TradingCommission, params=params, timeout=timeout)

    # --- Request helpers --------------------------------------------------
    def _execute(
        self,
        method: str,
        subpath: str,
        shape: Any,
        params: Optional[Params] = None,
        payload: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Build, sign, send and decode one request.

        ``shape`` is the record type (or ``List[...]``) to decode into; ``None``
        means the endpoint answers with an empty body and nothing is decoded.
        """

        request = build_request(
            self.config,
            method,
            subpath,
            params=params,
            payload=payload,
            timestamp=str(int(self._clock())),
        )
        body = self._send(request, timeout)
        if shape is None:
            return None
        return self._decode(request, body, shape)

    def _send(self, request: SignedRequest, timeout: Optional[float]) -> str:
        """Send ``request`` once and return the text of its 200 response body.

        ``timeout`` bounds the whole call, body included. It is passed to
        ``requests`` for the connect and header steps; the body is then streamed
        under a watchdog that shuts the socket down once the deadline passes.
        """

        effective_timeout = self.config.timeout if timeout is None else timeout
        if effective_timeout <= 0:
            raise DeadlineExceededError(f"{request.method} {request.path}: deadline already expired")
        deadline = self._monotonic() + effective_timeout

        self.logger.debug(
            "%s %s",
            request.method,
            request.url,
            extra={"event": "request", "method": request.method, "url": request.url, "signed": request.is_signed},
        )
        data = request.body.encode("utf-8") if request.body else None
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=data,
                timeout=effective_timeout,
                stream=True,
            )
        except requests.Timeout as exc:
            raise self._deadline_exceeded(request, effective_timeout, exc) from exc
        except requests.RequestException as exc:
            self._log_failure(request, "network_error", error=str(exc))
            raise NetworkError(f"{request.method} {request.path} failed: {exc}") from exc

        try:
            raw = self._read_body(request, response, deadline, effective_timeout)
        finally:
            response.close()

        body = raw.decode(response.encoding or "utf-8", errors="replace")
        if response.status_code != 200:
            self._log_failure(request, "status_error", status_code=response.status_code)
            raise StatusError(response.status_code, body, self._error_message(body))
        return body

    def _read_body(
        self, request: SignedRequest, response: requests.Response, deadline: float, timeout: float
    ) -> bytes:
        remaining = deadline - self._monotonic()
        if remaining <= 0:
            raise self._deadline_exceeded(request, timeout)

        watchdog = threading.Timer(remaining, self._abort, args=(response,))
        watchdog.daemon = True
        watchdog.start()
        chunks: List[bytes] = []
        try:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                chunks.append(chunk)
                if self._monotonic() >= deadline:
                    raise self._deadline_exceeded(request, timeout)
        except requests.RequestException as exc:
            if self._monotonic() >= deadline:
                raise self._deadline_exceeded(request, timeout, exc) from exc
            self._log_failure(request, "network_error", error=str(exc))
            raise NetworkError(f"{request.method} {request.path} failed: {exc}") from exc
        finally:
            watchdog.cancel()

        # the watchdog can end the stream early without an error
        if self._monotonic() >= deadline:
            raise self._deadline_exceeded(request, timeout)
        return b"".join(chunks)

    def _abort(self, response: requests.Response) -> None:
        """Shut down the socket under ``response`` so a blocked read returns."""

        connection = getattr(response.raw, "connection", None)
        sock = getattr(connection, "sock", None)
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as exc:
            self.logger.debug("socket already closed: %s", exc, extra={"event": "abort"})

    def _deadline_exceeded(
        self, request: SignedRequest, timeout: float, exc: Optional[BaseException] = None
    ) -> DeadlineExceededError:
        self._log_failure(request, "deadline_exceeded", error=str(exc) if exc else "body still arriving")
        return DeadlineExceededError(f"{request.method} {request.path} timed out after {timeout}s")

    def _decode(self, request: SignedRequest, body: str, shape: Any) -> Any:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            self._log_failure(request, "decode_error", error=str(exc))
            raise ResponseDecodeError(f"invalid JSON from {request.path}: {exc}", cause=exc, body=body) from exc
        try:
            return decode(shape, payload)
        except ResponseDecodeError as exc:
            exc.body = body
            self._log_failure(request, "decode_error", error=str(exc))
            raise

    @staticmethod
    def _error_message(body: str) -> Optional[str]:
        try:
            payload = json.loads(body)
        except ValueError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get("error_message"), str):
            return payload["error_message"]
        return None

    def _log_failure(self, request: SignedRequest, event: str, **details: Any) -> None:
        self.logger.warning(
            "%s %s failed (%s)",
            request.method,
            request.path,
            event,
            extra={"event": event, "method": request.method, "path": request.path, **details},
        )

    @staticmethod
    def _one_of(*candidates: Tuple[str, str]) -> Dict[str, str]:
        """Return the first non-empty identifier as ``{name: value}``."""

        for name, value in candidates:
            if value:
                return {name: value}
        names = " or ".join(name for name, _ in candidates)
        raise CallerUsageError(f"{names} is required")

    @staticmethod
    def _require_product_code(product_code: str) -> None:
        if not product_code:
            raise CallerUsageError("product_code is required")


__all__ = ["BitflyerClient"]
