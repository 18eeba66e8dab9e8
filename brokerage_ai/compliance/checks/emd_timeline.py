"""
emd_timeline: earnest money must be received within N days of binding.

Due date is ``binding_agreement_date + earnest_money_due_days``. Receipt is
evidenced by an extracted receipt field on any of the transaction's
documents.
"""

from datetime import timedelta

from brokerage_ai.compliance.check import Check, CheckOutcome
from brokerage_ai.compliance.context import CheckContext
from brokerage_ai.compliance.registry import register_check
from brokerage_ai.db.enums import FinancingType, PartyRole

RECEIPT_FIELD_NAMES = (
    "earnest_money_receipt",
    "earnest_money_received",
    "earnest_money_received_date",
    "emd_receipt",
    "emd_received_date",
)


def _holder(ctx: CheckContext) -> str | None:
    if ctx.transaction.earnest_money_holder_name:
        return ctx.transaction.earnest_money_holder_name
    holders = ctx.parties_with_role(PartyRole.EARNEST_MONEY_HOLDER)
    return holders[0].full_name if holders else None


@register_check
class EmdTimeline(Check):
    key = "emd_timeline"

    def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        txn = ctx.transaction
        if txn.financing == FinancingType.UNSPECIFIED:
            return CheckOutcome.not_applicable("financing not specified")
        if txn.earnest_money_amount is None and txn.earnest_money_due_days is None:
            return CheckOutcome.not_applicable("earnest money terms not set")

        holder = _holder(ctx)
        if txn.earnest_money_due_days is None:
            return CheckOutcome.pending("earnest_money_due_days missing", holder=holder)
        if txn.binding_agreement_date is None:
            return CheckOutcome.pending("binding_agreement_date missing", holder=holder)

        due_by = txn.binding_agreement_date + timedelta(days=txn.earnest_money_due_days)
        details = {"due_by": due_by.isoformat(), "holder": holder}

        receipts = ctx.find_fields(names=RECEIPT_FIELD_NAMES)
        if receipts:
            return CheckOutcome.passed(document_id=receipts[0].document_id, **details)

        if ctx.today > due_by:
            days_late = (ctx.today - due_by).days
            return CheckOutcome.failed("earnest money receipt missing", days_late=days_late, **details)
        days_left = (due_by - ctx.today).days
        if days_left <= ctx.emd_warn_window_days:
            return CheckOutcome.warning("earnest money due soon", days_left=days_left, **details)
        return CheckOutcome.passed(**details)
