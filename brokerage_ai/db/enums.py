"""
Controlled vocabulary enums for brokerage transactions and compliance.

This module defines the closed sets used throughout the system:
- Party roles and document types (core records)
- Financing / appraisal terms of a purchase agreement
- Check severity and check outcome status (compliance)
- Transaction lifecycle status (rollup)

The string values match the PostgreSQL enum types created by the initial
migration, so members can be written to and read from the database as-is.
"""

from enum import Enum


class PartyRole(str, Enum):
    """Role a party plays in a transaction. Multiple parties per role are allowed."""

    BUYER = "buyer"
    SELLER = "seller"
    LISTING_AGENT = "listing_agent"
    SELLING_AGENT = "selling_agent"
    CLOSING_AGENCY = "closing_agency"
    EARNEST_MONEY_HOLDER = "earnest_money_holder"
    LENDER = "lender"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid role values."""
        return [member.value for member in cls]


class DocType(str, Enum):
    """Kind of document received for a transaction."""

    PSA = "psa"
    ADDENDUM = "addendum"
    DISCLOSURE = "disclosure"
    INSPECTION = "inspection"
    AUDIT_TRAIL = "audit_trail"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid document type values."""
        return [member.value for member in cls]


class FinancingType(str, Enum):
    """How the buyer is paying for the property."""

    CASH = "cash"
    CONVENTIONAL = "conventional"
    FHA = "fha"
    VA = "va"
    USDA = "usda"
    THDA = "thda"
    OTHER = "other"
    UNSPECIFIED = "unspecified"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid financing values."""
        return [member.value for member in cls]


class AppraisalContingency(str, Enum):
    """Whether the agreement is contingent on appraisal."""

    NOT_CONTINGENT = "not_contingent"
    CONTINGENT = "contingent"
    UNSPECIFIED = "unspecified"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid appraisal values."""
        return [member.value for member in cls]


class IngestSource(str, Enum):
    """Channel a document arrived through."""

    EMAIL = "email"
    UPLOAD = "upload"
    SLACK = "slack"
    FOLDER = "folder"
    CRM = "crm"
    API = "api"
    OTHER = "other"


class CheckSeverity(str, Enum):
    """
    Fixed severity of a check definition.

    Severity belongs to the definition, not to an individual result: a
    ``critical`` check that fails blocks the transaction, any other failing
    check only sends it to human review.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordering key, higher is more severe."""
        return {
            CheckSeverity.LOW: 1,
            CheckSeverity.MEDIUM: 2,
            CheckSeverity.HIGH: 3,
            CheckSeverity.CRITICAL: 4,
        }[self]

    @property
    def is_blocking(self) -> bool:
        """A failure at this severity blocks the transaction outright."""
        return self == CheckSeverity.CRITICAL

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid severity values."""
        return [member.value for member in cls]


class CheckStatus(str, Enum):
    """
    Outcome of evaluating one check against one transaction.

    - PASS: requirement satisfied
    - FAIL: requirement violated
    - WARN: not violated yet, but close (e.g. deadline approaching)
    - NA: the check does not apply to this transaction
    - PENDING: the check could not decide (missing prerequisite data,
      broken evaluator, inconsistent catalog)
    """

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    NA = "na"
    PENDING = "pending"

    @property
    def is_settled(self) -> bool:
        """Pass and n/a are the only outcomes that allow closing."""
        return self in {CheckStatus.PASS, CheckStatus.NA}

    @property
    def requires_details(self) -> bool:
        """Every non-pass outcome must explain itself."""
        return self != CheckStatus.PASS

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid check status values."""
        return [member.value for member in cls]


class TxnStatus(str, Enum):
    """
    Lifecycle status of a transaction.

    Lifecycle::

        DRAFT -> OPEN -> {PENDING_HITL, BLOCKED} <-> OPEN -> READY_TO_CLOSE -> CLOSED
        VOID is reachable from every state

    CLOSED and VOID are terminal. CLOSED is only ever set manually; the
    rollup never computes it.
    """

    DRAFT = "draft"
    OPEN = "open"
    PENDING_HITL = "pending_hitl"
    BLOCKED = "blocked"
    READY_TO_CLOSE = "ready_to_close"
    CLOSED = "closed"
    VOID = "void"

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses are never overwritten by a rollup."""
        return self in {TxnStatus.CLOSED, TxnStatus.VOID}

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all valid lifecycle status values."""
        return [member.value for member in cls]
