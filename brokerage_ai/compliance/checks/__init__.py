"""Built-in checks. Importing this package registers them."""

from brokerage_ai.compliance.checks.appraisal_marked import AppraisalMarked
from brokerage_ai.compliance.checks.cash_proof_letter import CashProofLetter
from brokerage_ai.compliance.checks.emd_timeline import EmdTimeline

__all__ = ["AppraisalMarked", "CashProofLetter", "EmdTimeline"]
