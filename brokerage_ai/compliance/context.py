"""
Evaluation context handed to every check.

A CheckContext is a frozen view of one transaction snapshot plus the
definition being evaluated and the evaluation date. Checks read it and
return an outcome; they never write through it.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from brokerage_ai.db.enums import DocType, PartyRole
from brokerage_ai.store.records import (
    CheckDefinitionRecord,
    DocFieldRecord,
    DocumentRecord,
    PartyRecord,
    TransactionRecord,
    TransactionSnapshot,
)


@dataclass(frozen=True)
class CheckContext:
    """Inputs of one check evaluation."""

    transaction: TransactionRecord
    definition: CheckDefinitionRecord
    today: date
    parties: tuple[PartyRecord, ...] = ()
    documents: tuple[DocumentRecord, ...] = ()
    doc_fields: tuple[DocFieldRecord, ...] = ()
    emd_warn_window_days: int = 2
    _documents_by_id: dict = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._documents_by_id.update({d.id: d for d in self.documents})

    @classmethod
    def from_snapshot(
        cls,
        snapshot: TransactionSnapshot,
        definition: CheckDefinitionRecord,
        today: date,
        emd_warn_window_days: int = 2,
    ) -> "CheckContext":
        return cls(
            transaction=snapshot.transaction,
            definition=definition,
            today=today,
            parties=snapshot.parties,
            documents=snapshot.documents,
            doc_fields=snapshot.doc_fields,
            emd_warn_window_days=emd_warn_window_days,
        )

    def parties_with_role(self, role: PartyRole) -> list[PartyRecord]:
        return [p for p in self.parties if p.role == role]

    def document(self, document_id) -> DocumentRecord | None:
        return self._documents_by_id.get(document_id)

    def find_fields(
        self,
        names: Iterable[str] = (),
        prefixes: Iterable[str] = (),
        doc_types: Iterable[DocType] | None = None,
    ) -> list[DocFieldRecord]:
        """
        Extracted fields whose (case-insensitive) name is one of ``names`` or
        starts with one of ``prefixes``, optionally limited to documents of
        the given types. Fields without a value never count as evidence.
        Document order, then field order.
        """
        wanted = {n.lower() for n in names}
        prefix_tuple = tuple(p.lower() for p in prefixes)
        allowed_types = set(doc_types) if doc_types is not None else None

        matches = []
        for doc_field in self.doc_fields:
            if doc_field.value is None:
                continue
            name = doc_field.field_name.lower()
            if name not in wanted and not (prefix_tuple and name.startswith(prefix_tuple)):
                continue
            if allowed_types is not None:
                document = self.document(doc_field.document_id)
                if document is None or document.doc_type not in allowed_types:
                    continue
            matches.append(doc_field)
        return matches
