"""Mock portfolio backend implementing the command API for local runs and e2e tests"""

import json
from collections import deque
from decimal import Decimal, InvalidOperation
from typing import Any, Deque, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from portfolio_assistant.domain.transaction_types import normalize_transaction_type

PORTFOLIO_TYPES = {"BUY", "SELL", "DELIVERY_INBOUND", "DELIVERY_OUTBOUND", "TRANSFER_IN", "TRANSFER_OUT"}
DELIVERY_TYPES = {"BUY": "DELIVERY_INBOUND", "SELL": "DELIVERY_OUTBOUND"}


class CommandFailed(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _payload(args: Dict[str, Any]) -> Dict[str, Any]:
    try:
        data = json.loads(args.get("payload") or "")
    except ValueError:
        raise CommandFailed("Ungültige Nutzlast")
    if not isinstance(data, dict):
        raise CommandFailed("Ungültige Nutzlast")
    return data


class MockPortfolio:
    """In-memory portfolio state shared by all commands of one app"""

    def __init__(self, holdings: Optional[Dict[str, Decimal]] = None):
        self.holdings = dict(holdings or {})  # ISIN -> shares held
        self.transactions: List[Dict[str, Any]] = []
        self.seen: set = set()
        self.chat_replies: Deque[Dict[str, Any]] = deque()
        self.calls: List[str] = []

    def duplicate_key(self, txn: Dict[str, Any]) -> tuple:
        security = (txn.get("isin") or txn.get("security_name") or "").strip().lower()
        return (txn.get("date"), txn.get("txn_type"), _decimal(txn.get("amount")), txn.get("currency"), security)

    def enrich_extracted_transactions(self, args: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = []
        for txn in args.get("transactions", []):
            shares = _decimal(txn.get("shares"))
            held = self.holdings.get((txn.get("isin") or "").upper())
            is_dividend = normalize_transaction_type(txn.get("txn_type") or "") == "DIVIDENDS"
            if is_dividend and (shares is None or shares <= 0) and held is not None:
                rows.append({"shares": str(held), "shares_from_holdings": True})
            else:
                rows.append({"shares": str(shares) if shares is not None else None, "shares_from_holdings": False})
        return rows

    def import_extracted_transactions(self, args: Dict[str, Any]) -> Dict[str, Any]:
        portfolio_id = args.get("portfolio_id")
        delivery_mode = bool(args.get("delivery_mode"))
        imported, errors, duplicates = 0, [], []

        for position, txn in enumerate(args.get("transactions", []), start=1):
            txn = dict(txn)
            if delivery_mode and txn.get("txn_type") in DELIVERY_TYPES:
                txn["txn_type"] = DELIVERY_TYPES[txn["txn_type"]]
            name = txn.get("security_name") or txn.get("isin") or txn.get("txn_type")

            if txn.get("txn_type") in PORTFOLIO_TYPES and portfolio_id is None:
                errors.append(f"#{position} {name}: kein Depot angegeben")
                continue

            key = self.duplicate_key(txn)
            if key in self.seen:
                duplicates.append(f"{txn.get('date')} {name} {txn.get('amount')} {txn.get('currency')}")
                continue

            self.seen.add(key)
            self.transactions.append({**txn, "portfolio_id": portfolio_id})
            imported += 1

        return {"imported_count": imported, "errors": errors, "duplicates": duplicates}

    def execute_confirmed_transaction(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = _payload(args)
        self.transactions.append(data)
        return {"message": "Transaktion erstellt"}

    def execute_confirmed_portfolio_transfer(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = _payload(args)
        if data.get("fromPortfolioId") is None or data.get("toPortfolioId") is None:
            raise CommandFailed("Quell- und Zieldepot erforderlich")
        return {"message": "Depotübertrag ausgeführt"}

    def execute_confirmed_transaction_delete(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = _payload(args)
        if data.get("transactionId") is None:
            raise CommandFailed("transactionId fehlt")
        return {"message": f"Transaktion {data['transactionId']} gelöscht"}

    def execute_confirmed_ai_action(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _payload(args)
        return {"message": f"Aktion {args.get('action_type')} ausgeführt"}

    def chat_with_portfolio_assistant(self, args: Dict[str, Any]) -> Dict[str, Any]:
        if self.chat_replies:
            return self.chat_replies.popleft()
        messages = args.get("messages") or []
        last = messages[-1]["content"] if messages else ""
        return {
            "response": f"Verstanden: {last}",
            "suggestions": [],
            "provider": args.get("provider"),
            "model": args.get("model"),
            "tokens_used": len(messages),
        }


def create_mock_app(portfolio: Optional[MockPortfolio] = None) -> FastAPI:
    portfolio = portfolio or MockPortfolio()
    app = FastAPI(title="Mock Portfolio Backend", version="1.0.0")
    app.state.portfolio = portfolio

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/commands/{name}")
    def run_command(name: str, args: Dict[str, Any]):
        handler = getattr(portfolio, name, None)
        if name.startswith("_") or not callable(handler) or name == "duplicate_key":
            return JSONResponse(status_code=404, content={"message": f"Unbekannter Befehl: {name}"})
        portfolio.calls.append(name)
        try:
            return handler(args)
        except CommandFailed as e:
            return JSONResponse(status_code=e.status_code, content={"message": e.message})

    return app


app = create_mock_app()
