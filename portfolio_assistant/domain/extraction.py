"""Parsing of extracted_transactions payloads produced by the assistant"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from portfolio_assistant.domain.exceptions import MalformedPayloadError
from portfolio_assistant.domain.models import (
    Diagnostic,
    ExtractedPayload,
    ExtractedTransaction,
    Outcome,
)

# (amount field, currency field) pairs that must be present together
FOREIGN_PAIRS = (
    ("grossAmount", "grossCurrency"),
    ("feesForeign", "feesForeignCurrency"),
    ("taxesForeign", "taxesForeignCurrency"),
)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Best-effort number parsing for model output.

    Accepts ints, floats and strings in either notation ("1234.56",
    "1.234,56", "12,5"). Returns None for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).strip().replace(" ", "").replace("\u00a0", "")
    if not text:
        return None
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _upper_text(value: Any) -> Optional[str]:
    text = to_text(value)
    return text.upper() if text else None


def parse_extracted_transaction(
    raw: Dict[str, Any], index: int, base_currency: str = "EUR"
) -> Outcome[ExtractedTransaction]:
    """Build an ExtractedTransaction from one camelCase record, never raising"""
    diagnostics: List[Diagnostic] = []
    data = dict(raw)

    for number_field in (
        "shares", "amount", "grossAmount", "exchangeRate", "pricePerShare",
        "fees", "feesForeign", "taxes", "taxesForeign",
    ):
        value = data.get(number_field)
        parsed = to_decimal(value)
        if value not in (None, "") and parsed is None:
            diagnostics.append(
                Diagnostic("number_unparsed", f"{number_field} ist keine Zahl: {value!r}", index)
            )
        data[number_field] = parsed

    currency = _upper_text(data.get("currency"))
    if currency is None:
        currency = base_currency
        diagnostics.append(
            Diagnostic("currency_defaulted", f"Keine Währung angegeben, {base_currency} angenommen", index)
        )

    for amount_field, currency_field in FOREIGN_PAIRS:
        amount = data.get(amount_field)
        foreign_currency = _upper_text(data.get(currency_field))
        if (amount is None) != (foreign_currency is None):
            diagnostics.append(
                Diagnostic(
                    "foreign_incomplete",
                    f"{amount_field}/{currency_field} unvollständig, Fremdwährung ignoriert",
                    index,
                )
            )
            amount, foreign_currency = None, None
        data[amount_field] = amount
        data[currency_field] = foreign_currency

    exchange_rate = data["exchangeRate"] if data["grossCurrency"] else None

    txn = ExtractedTransaction(
        date=to_text(data.get("date")) or "",
        txn_type=to_text(data.get("txnType")) or "",
        currency=currency,
        security_name=to_text(data.get("securityName")),
        isin=_upper_text(data.get("isin")),
        wkn=_upper_text(data.get("wkn")),
        ticker=to_text(data.get("ticker")),
        shares=data["shares"],
        amount=data["amount"],
        gross_amount=data["grossAmount"],
        gross_currency=data["grossCurrency"],
        exchange_rate=exchange_rate,
        price_per_share=data["pricePerShare"],
        price_per_share_currency=_upper_text(data.get("pricePerShareCurrency")),
        fees=data["fees"],
        fees_foreign=data["feesForeign"],
        fees_foreign_currency=data["feesForeignCurrency"],
        taxes=data["taxes"],
        taxes_foreign=data["taxesForeign"],
        taxes_foreign_currency=data["taxesForeignCurrency"],
        note=to_text(data.get("note")),
        value_date=to_text(data.get("valueDate")),
        order_id=to_text(data.get("orderId")),
    )
    return Outcome(txn, diagnostics)


def load_payload(payload: str | Dict[str, Any]) -> Dict[str, Any]:
    """Decode a suggestion payload into a JSON object"""
    if isinstance(payload, dict):
        return payload
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(f"Payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayloadError("Payload must be a JSON object")
    return data


def parse_extracted_payload(
    payload: str | Dict[str, Any], base_currency: str = "EUR"
) -> Outcome[ExtractedPayload]:
    """
    Parse an extracted_transactions payload.

    Raises:
        MalformedPayloadError: payload is not JSON or has no transactions list.
        Individual bad records degrade to diagnostics instead.
    """
    data = load_payload(payload)
    records = data.get("transactions")
    if not isinstance(records, list):
        raise MalformedPayloadError("Payload has no transactions list")

    diagnostics: List[Diagnostic] = []
    transactions: List[ExtractedTransaction] = []
    # Diagnostic indices refer to rows of the parsed batch; skipped entries get none
    for position, raw in enumerate(records, start=1):
        if not isinstance(raw, dict):
            diagnostics.append(Diagnostic("record_skipped", f"Eintrag {position} ist kein Objekt"))
            continue
        parsed = parse_extracted_transaction(raw, len(transactions), base_currency)
        diagnostics.extend(parsed.diagnostics)
        transactions.append(parsed.value)

    return Outcome(
        ExtractedPayload(
            transactions=transactions,
            source_description=to_text(data.get("sourceDescription")),
        ),
        diagnostics,
    )
