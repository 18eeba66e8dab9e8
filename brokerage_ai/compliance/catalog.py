"""
Seed rule catalog.

Reference check definitions and the default Tennessee residential pack.
Seeding is idempotent: definitions and the pack are upserted by key/code.
"""

from decimal import Decimal

from brokerage_ai.core.logging import get_logger
from brokerage_ai.db.enums import CheckSeverity
from brokerage_ai.store.base import FactStore
from brokerage_ai.store.records import CheckDefinitionRecord, RulePackCreate, RulePackRecord

logger = get_logger(__name__)

SEED_DEFINITIONS: tuple[CheckDefinitionRecord, ...] = (
    CheckDefinitionRecord(
        key="emd_timeline",
        title="Earnest Money due on time",
        description="Due N days from binding",
        severity=CheckSeverity.HIGH,
        resolver_hint="Verify receipt and date",
        requires_hitl=True,
    ),
    CheckDefinitionRecord(
        key="cash_proof_letter",
        title="Proof of funds letter attached",
        description="Cash requires bank letter",
        severity=CheckSeverity.MEDIUM,
        resolver_hint="Request letter from buyer",
        requires_hitl=True,
    ),
    CheckDefinitionRecord(
        key="appraisal_marked",
        title="Appraisal contingency marked",
        description="Confirm appraisal selection or addendum",
        severity=CheckSeverity.MEDIUM,
        resolver_hint="Add proper addendum if needed",
        requires_hitl=False,
    ),
)

SEED_PACK = RulePackCreate(
    code="TN_RES_2025",
    title="Tennessee Residential 2025",
    jurisdiction="TN",
    notes="RF401 purchase and sale agreement checks",
    weights={d.key: Decimal("1.0") for d in SEED_DEFINITIONS},
)


async def seed_catalog(store: FactStore) -> RulePackRecord:
    """Upsert the seed definitions and the default rule pack."""
    for definition in SEED_DEFINITIONS:
        await store.upsert_check_definition(definition)
    pack = await store.upsert_rule_pack(SEED_PACK)
    logger.info(
        "Rule catalog seeded",
        definitions=len(SEED_DEFINITIONS),
        pack=pack.code,
    )
    return pack
