"""Initial schema - create all transaction, retrieval, and compliance tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-08-09

This migration creates the complete brokerage schema:
- transactions / parties: deals and the people in them
- documents / doc_fields / esign_events: paperwork and extracted facts
- document_chunks: embedded text slices (pgvector, IVFFlat cosine index)
- check_definitions / rule_packs / rule_pack_checks: the rule catalog
- transaction_rule_packs: pack assignment per transaction
- check_results: append-only evaluation history
- transaction_statuses: current rollup status per transaction
- timeline_events: milestones and status changes

It also creates:
- the vector extension
- ENUM types for roles, document types, terms, severities, and statuses
- the v_last_check_status view (latest result per transaction and check)
- seed check definitions and the TN_RES_2025 rule pack
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

EMBEDDING_DIMENSION = 1536

ENUMS: dict[str, tuple[str, ...]] = {
    "party_role": (
        "buyer", "seller", "listing_agent", "selling_agent",
        "closing_agency", "earnest_money_holder", "lender", "other",
    ),
    "doc_type": ("psa", "addendum", "disclosure", "inspection", "audit_trail", "other"),
    "financing_type": (
        "cash", "conventional", "fha", "va", "usda", "thda", "other", "unspecified",
    ),
    "appraisal_contingency": ("not_contingent", "contingent", "unspecified"),
    "ingest_source": ("email", "upload", "slack", "folder", "crm", "api", "other"),
    "check_severity": ("low", "medium", "high", "critical"),
    "check_status": ("pass", "fail", "warn", "na", "pending"),
    "txn_status": (
        "draft", "open", "pending_hitl", "blocked", "ready_to_close", "closed", "void",
    ),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Create extension, enums, tables, indexes, view, and seed catalog."""

    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # ==========================================================================
    # Create ENUM types
    # ==========================================================================

    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)

    # ==========================================================================
    # Core records
    # ==========================================================================

    op.create_table(
        "transactions",
        sa.Column("id", sa.UUID(), nullable=False, comment="UUID7 primary key"),
        sa.Column("deal_code", sa.String(length=64), nullable=True, comment="Human-facing deal code"),
        sa.Column("property_address", sa.Text(), nullable=True),
        sa.Column("property_unit", sa.Text(), nullable=True),
        sa.Column("property_city", sa.Text(), nullable=True),
        sa.Column("property_state", sa.Text(), nullable=True),
        sa.Column("property_zip", sa.Text(), nullable=True),
        sa.Column("property_county", sa.Text(), nullable=True),
        sa.Column("purchase_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("financing", _enum("financing_type"), server_default="unspecified", nullable=False),
        sa.Column("appraisal", _enum("appraisal_contingency"), server_default="unspecified", nullable=False),
        sa.Column("earnest_money_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("earnest_money_due_days", sa.Integer(), nullable=True),
        sa.Column("earnest_money_holder_name", sa.Text(), nullable=True),
        sa.Column("earnest_money_holder_address", sa.Text(), nullable=True),
        sa.Column("binding_agreement_date", sa.Date(), nullable=True),
        sa.Column("closing_date", sa.Date(), nullable=True),
        sa.Column(
            "form_name",
            sa.Text(),
            server_default="RF401 – Purchase and Sale Agreement",
            nullable=True,
        ),
        sa.Column("form_version", sa.Text(), nullable=True),
        sa.Column(
            "special_stipulations",
            postgresql.ARRAY(sa.Text()),
            nullable=True,
            comment="Each stipulation as one element, in contract order",
        ),
        sa.Column("source_doc_id", sa.UUID(), nullable=True, comment="Initial purchase agreement document"),
        sa.Column("status", _enum("txn_status"), server_default="open", nullable=False),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "purchase_price IS NULL OR purchase_price >= 0",
            name="ck_transactions_purchase_price_non_negative",
        ),
        sa.CheckConstraint(
            "earnest_money_amount IS NULL OR earnest_money_amount >= 0",
            name="ck_transactions_earnest_money_amount_non_negative",
        ),
        sa.CheckConstraint(
            "earnest_money_due_days IS NULL OR earnest_money_due_days >= 0",
            name="ck_transactions_earnest_money_due_days_non_negative",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        sa.UniqueConstraint("deal_code", name="uq_transactions_deal_code"),
    )
    op.create_index(
        "ix_transactions_city_state_zip",
        "transactions",
        ["property_city", "property_state", "property_zip"],
    )
    op.create_index("ix_transactions_purchase_price", "transactions", ["purchase_price"])

    op.create_table(
        "parties",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("transaction_id", sa.UUID(), nullable=False),
        sa.Column("role", _enum("party_role"), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("firm", sa.Text(), nullable=True),
        sa.Column("license_no", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name="fk_parties_transaction_id_transactions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_parties"),
    )
    op.create_index("ix_parties_transaction_id_role", "parties", ["transaction_id", "role"])

    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("transaction_id", sa.UUID(), nullable=True),
        sa.Column("doc_type", _enum("doc_type"), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("storage_url", sa.Text(), nullable=True),
        sa.Column("sha256", sa.Text(), nullable=True),
        sa.Column("page_count", sa.Integer(), nullable=True),
        sa.Column("received_via", _enum("ingest_source"), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("esign_provider", sa.Text(), nullable=True),
        sa.Column("esign_package_id", sa.Text(), nullable=True),
        sa.Column("raw_text", sa.Text(), nullable=True),
        sa.Column("version_no", sa.Integer(), server_default="1", nullable=False),
        sa.Column("supersedes_document_id", sa.UUID(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name="fk_documents_transaction_id_transactions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["supersedes_document_id"],
            ["documents.id"],
            name="fk_documents_supersedes_document_id_documents",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_documents"),
    )
    op.create_index("ix_documents_transaction_id", "documents", ["transaction_id"])
    op.create_index("ix_documents_sha256", "documents", ["sha256"])
    op.create_index("ix_documents_supersedes_document_id", "documents", ["supersedes_document_id"])

    # transactions.source_doc_id closes the transactions <-> documents cycle
    op.create_foreign_key(
        "fk_transactions_source_doc_id_documents",
        "transactions",
        "documents",
        ["source_doc_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "doc_fields",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("page", sa.Integer(), nullable=True),
        sa.Column("field_name", sa.Text(), nullable=False),
        sa.Column("field_value_text", sa.Text(), nullable=True),
        sa.Column("field_value_num", sa.Numeric(), nullable=True),
        sa.Column("field_value_date", sa.Date(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="ck_doc_fields_confidence_range",
        ),
        sa.CheckConstraint(
            "num_nonnulls(field_value_text, field_value_num, field_value_date) = 1",
            name="ck_doc_fields_one_value",
        ),
        sa.ForeignKeyConstraint(
            ["document_id"],
            ["documents.id"],
            name="fk_doc_fields_document_id_documents",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_doc_fields"),
    )
    op.create_index("ix_doc_fields_document_id", "doc_fields", ["document_id"])
    op.create_index("ix_doc_fields_field_name", "doc_fields", ["field_name"])

    op.create_table(
        "esign_events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("signer_name", sa.Text(), nullable=True),
        sa.Column("signer_email", sa.Text(), nullable=True),
        sa.Column("action", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["document_id"],
            ["documents.id"],
            name="fk_esign_events_document_id_documents",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_esign_events"),
    )
    op.create_index("ix_esign_events_document_id", "esign_events", ["document_id"])

    op.create_table(
        "timeline_events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("transaction_id", sa.UUID(), nullable=False),
        sa.Column("event_key", sa.Text(), nullable=False),
        sa.Column("event_title", sa.Text(), nullable=True),
        sa.Column("event_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name="fk_timeline_events_transaction_id_transactions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_timeline_events"),
    )
    op.create_index(
        "ix_timeline_events_transaction_id_event_key",
        "timeline_events",
        ["transaction_id", "event_key"],
    )

    # ==========================================================================
    # Retrieval
    # ==========================================================================

    op.create_table(
        "document_chunks",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSION), nullable=False),
        sa.Column("tokens", sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["document_id"],
            ["documents.id"],
            name="fk_document_chunks_document_id_documents",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_document_chunks"),
        sa.UniqueConstraint(
            "document_id",
            "chunk_index",
            name="uq_document_chunks_document_id_chunk_index",
        ),
    )
    op.create_index("ix_document_chunks_document_id", "document_chunks", ["document_id"])
    op.execute(
        "CREATE INDEX ix_document_chunks_embedding ON document_chunks "
        "USING ivfflat (embedding vector_cosine_ops) WITH (lists = 100)"
    )

    # ==========================================================================
    # Compliance
    # ==========================================================================

    op.create_table(
        "check_definitions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("severity", _enum("check_severity"), server_default="medium", nullable=False),
        sa.Column("resolver_hint", sa.Text(), nullable=True),
        sa.Column(
            "requires_hitl",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
            comment="A pending outcome needs human resolution",
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_check_definitions"),
        sa.UniqueConstraint("key", name="uq_check_definitions_key"),
    )

    op.create_table(
        "rule_packs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("jurisdiction", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_rule_packs"),
        sa.UniqueConstraint("code", name="uq_rule_packs_code"),
    )

    op.create_table(
        "rule_pack_checks",
        sa.Column("rule_pack_id", sa.UUID(), nullable=False),
        sa.Column("check_key", sa.String(length=100), nullable=False),
        sa.Column("weight", sa.Numeric(6, 2), server_default="1.0", nullable=False),
        sa.ForeignKeyConstraint(
            ["rule_pack_id"],
            ["rule_packs.id"],
            name="fk_rule_pack_checks_rule_pack_id_rule_packs",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["check_key"],
            ["check_definitions.key"],
            name="fk_rule_pack_checks_check_key_check_definitions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("rule_pack_id", "check_key", name="pk_rule_pack_checks"),
    )

    op.create_table(
        "transaction_rule_packs",
        sa.Column("transaction_id", sa.UUID(), nullable=False),
        sa.Column("rule_pack_id", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name="fk_transaction_rule_packs_transaction_id_transactions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["rule_pack_id"],
            ["rule_packs.id"],
            name="fk_transaction_rule_packs_rule_pack_id_rule_packs",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("transaction_id", "rule_pack_id", name="pk_transaction_rule_packs"),
    )

    op.create_table(
        "check_results",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("transaction_id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=True),
        sa.Column("check_key", sa.String(length=100), nullable=False),
        sa.Column("status", _enum("check_status"), server_default="pending", nullable=False),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Explanation, e.g. {due_by, holder, reason}",
        ),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name="fk_check_results_transaction_id_transactions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["document_id"],
            ["documents.id"],
            name="fk_check_results_document_id_documents",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["check_key"],
            ["check_definitions.key"],
            name="fk_check_results_check_key_check_definitions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_check_results"),
    )
    op.execute(
        "CREATE INDEX ix_check_results_txn_key_created ON check_results "
        "(transaction_id, check_key, created_at DESC, id DESC)"
    )

    op.create_table(
        "transaction_statuses",
        sa.Column("transaction_id", sa.UUID(), nullable=False),
        sa.Column("status", _enum("txn_status"), server_default="open", nullable=False),
        _updated_at(),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name="fk_transaction_statuses_transaction_id_transactions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("transaction_id", name="pk_transaction_statuses"),
    )

    # ==========================================================================
    # Views
    # ==========================================================================

    op.execute(
        """
        CREATE OR REPLACE VIEW v_last_check_status AS
        SELECT DISTINCT ON (transaction_id, check_key)
            id, transaction_id, document_id, check_key, status, details, created_at
        FROM check_results
        ORDER BY transaction_id, check_key, created_at DESC, id DESC
        """
    )

    # ==========================================================================
    # Seed catalog
    # ==========================================================================

    op.execute(
        """
        INSERT INTO check_definitions (id, key, title, description, severity, resolver_hint, requires_hitl)
        VALUES
          (gen_random_uuid(), 'emd_timeline', 'Earnest Money due on time',
           'Due N days from binding', 'high', 'Verify receipt and date', true),
          (gen_random_uuid(), 'cash_proof_letter', 'Proof of funds letter attached',
           'Cash requires bank letter', 'medium', 'Request letter from buyer', true),
          (gen_random_uuid(), 'appraisal_marked', 'Appraisal contingency marked',
           'Confirm appraisal selection or addendum', 'medium', 'Add proper addendum if needed', false)
        ON CONFLICT (key) DO NOTHING
        """
    )
    op.execute(
        """
        INSERT INTO rule_packs (id, code, title, jurisdiction, notes)
        VALUES (gen_random_uuid(), 'TN_RES_2025', 'Tennessee Residential 2025', 'TN',
                'RF401 purchase and sale agreement checks')
        ON CONFLICT (code) DO NOTHING
        """
    )
    op.execute(
        """
        INSERT INTO rule_pack_checks (rule_pack_id, check_key, weight)
        SELECT rp.id, cd.key, 1.0
        FROM rule_packs rp CROSS JOIN check_definitions cd
        WHERE rp.code = 'TN_RES_2025'
          AND cd.key IN ('emd_timeline', 'cash_proof_letter', 'appraisal_marked')
        ON CONFLICT DO NOTHING
        """
    )


def downgrade() -> None:
    """Drop view, tables, and enums in reverse order."""

    op.execute("DROP VIEW IF EXISTS v_last_check_status")

    op.drop_table("transaction_statuses")
    op.drop_table("check_results")
    op.drop_table("transaction_rule_packs")
    op.drop_table("rule_pack_checks")
    op.drop_table("rule_packs")
    op.drop_table("check_definitions")
    op.drop_table("document_chunks")
    op.drop_table("timeline_events")
    op.drop_table("esign_events")
    op.drop_table("doc_fields")
    op.drop_constraint("fk_transactions_source_doc_id_documents", "transactions", type_="foreignkey")
    op.drop_table("documents")
    op.drop_table("parties")
    op.drop_table("transactions")

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
