"""
Deal facts: a fixed-order plain-text summary of a transaction.

The rendered text is the grounding document an answering layer retrieves
for a transaction. Every line is always present, in the same order, with
a stable placeholder when the value is missing, so the text only changes
when the underlying field changes. Line breaks inside a value are folded
into spaces.
"""

from decimal import Decimal

from brokerage_ai.store.records import TransactionRecord

PLACEHOLDER = "unspecified"
NO_STIPULATIONS = "(none)"
UNKNOWN_DAYS = "?"

DEAL_FACT_LABELS = (
    "Deal Code",
    "Address",
    "County",
    "Price",
    "Financing",
    "Appraisal",
    "EMD",
    "Closing Date",
    "Form Version",
    "Special Stipulations",
)


def _one_line(value: str) -> str:
    """Collapse line breaks and runs of whitespace so each fact stays on its line."""
    return " ".join(value.split())


def _text(value: str | None) -> str:
    return value if value else PLACEHOLDER


def _money(amount: Decimal | None) -> str:
    if amount is None:
        return PLACEHOLDER
    return f"${amount:,.2f}"


def _address(txn: TransactionRecord) -> str:
    parts = (
        txn.property_address,
        txn.property_unit,
        txn.property_city,
        txn.property_state,
        txn.property_zip,
    )
    if not any(parts):
        return PLACEHOLDER

    street = txn.property_address or ""
    if txn.property_unit:
        street = f"{street} {txn.property_unit}".strip()
    state_zip = " ".join(p for p in (txn.property_state, txn.property_zip) if p)
    return ", ".join(p for p in (street, txn.property_city or "", state_zip) if p)


def _earnest_money(txn: TransactionRecord) -> str:
    due_days = (
        str(txn.earnest_money_due_days)
        if txn.earnest_money_due_days is not None
        else UNKNOWN_DAYS
    )
    holder = _text(txn.earnest_money_holder_name)
    return f"{_money(txn.earnest_money_amount)} due in {due_days} days (Holder: {holder})"


def render_deal_facts(txn: TransactionRecord) -> str:
    """Render the deal facts text for one transaction."""
    stipulations = (
        "; ".join(txn.special_stipulations) if txn.special_stipulations else NO_STIPULATIONS
    )
    values = (
        _text(txn.deal_code),
        _address(txn),
        _text(txn.property_county),
        _money(txn.purchase_price),
        txn.financing.value if txn.financing else PLACEHOLDER,
        txn.appraisal.value if txn.appraisal else PLACEHOLDER,
        _earnest_money(txn),
        txn.closing_date.isoformat() if txn.closing_date else PLACEHOLDER,
        _text(txn.form_version),
        stipulations,
    )
    return "\n".join(
        f"{label}: {_one_line(value)}" for label, value in zip(DEAL_FACT_LABELS, values)
    )
