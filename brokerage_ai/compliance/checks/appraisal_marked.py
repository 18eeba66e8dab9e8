"""appraisal_marked: the appraisal contingency box must be marked."""

from brokerage_ai.compliance.check import Check, CheckOutcome
from brokerage_ai.compliance.context import CheckContext
from brokerage_ai.compliance.registry import register_check
from brokerage_ai.db.enums import AppraisalContingency


@register_check
class AppraisalMarked(Check):
    key = "appraisal_marked"

    def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        appraisal = ctx.transaction.appraisal
        if appraisal is None or appraisal == AppraisalContingency.UNSPECIFIED:
            return CheckOutcome.failed("appraisal contingency not marked")
        return CheckOutcome.passed(appraisal=appraisal.value)
