"""cash_proof_letter: a cash purchase needs a proof-of-funds letter on file."""

from brokerage_ai.compliance.check import Check, CheckOutcome
from brokerage_ai.compliance.context import CheckContext
from brokerage_ai.compliance.registry import register_check
from brokerage_ai.db.enums import DocType, FinancingType

PROOF_FIELD_NAMES = ("proof_of_funds", "proof_of_funds_letter", "bank_letter")
PROOF_FIELD_PREFIXES = ("proof_of_funds",)
PROOF_DOC_TYPES = (DocType.DISCLOSURE, DocType.OTHER)


@register_check
class CashProofLetter(Check):
    key = "cash_proof_letter"

    def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        financing = ctx.transaction.financing
        if financing != FinancingType.CASH:
            return CheckOutcome.not_applicable("financing is not cash", financing=financing.value)

        letters = ctx.find_fields(
            names=PROOF_FIELD_NAMES,
            prefixes=PROOF_FIELD_PREFIXES,
            doc_types=PROOF_DOC_TYPES,
        )
        if not letters:
            return CheckOutcome.failed("proof of funds letter missing")
        return CheckOutcome.passed(document_id=letters[0].document_id, field=letters[0].field_name)
