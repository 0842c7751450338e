"""
Attachment de-duplication and grouping.

The same file is often linked more than once (attached to a question and
re-attached as evidence, or uploaded twice under the same category). A
rendered list shows each (category, stored path) pair once.
"""

from typing import Dict, Iterable, List, Sequence, Tuple

from dataset import AttachmentCategory, AttachmentRecord

# Builder-mode test attachment groups, in display order.
# Both spellings occur in stored data.
TEST_ATTACHMENT_GROUPS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Requisição", (AttachmentCategory.TEST_REQUISICAO.value, "TESTE_REQUISICAO")),
    ("Resposta", (AttachmentCategory.TEST_RESPOSTA.value, "TESTE_RESPOSTA")),
    ("Amostra", (AttachmentCategory.TEST_AMOSTRA.value, "TESTE_AMOSTRA")),
    ("Evidências", (AttachmentCategory.TEST_EVIDENCIAS.value, "TESTE_EVIDENCIAS")),
]


def dedupe(records: Iterable[AttachmentRecord], keep: str = "first") -> List[AttachmentRecord]:
    """
    Collapse records sharing (category, path).

    Postconditions:
        - no two returned records share a dedup key
        - keys appear in the order of their first occurrence in the input

    Args:
        records: Attachment records in display order
        keep: "first" keeps the first-seen record for a key; "last" lets
              later duplicates replace the stored record without moving
              it from its first-seen position

    Returns:
        The de-duplicated records
    """
    if keep not in ("first", "last"):
        raise ValueError(f"keep must be 'first' or 'last', got {keep!r}")

    unique: Dict[str, AttachmentRecord] = {}
    for record in records:
        key = record.dedup_key
        if key in unique and keep == "first":
            continue
        # Re-assigning an existing key keeps its insertion position
        unique[key] = record
    return list(unique.values())


def group_by_category(
    records: Sequence[AttachmentRecord],
    groups: Sequence[Tuple[str, Tuple[str, ...]]] = TEST_ATTACHMENT_GROUPS,
) -> List[Tuple[str, List[AttachmentRecord]]]:
    """Split records into labelled groups, skipping empty groups."""
    grouped = []
    for label, categories in groups:
        members = [r for r in records if (r.category or "").upper() in categories]
        if members:
            grouped.append((label, members))
    return grouped
