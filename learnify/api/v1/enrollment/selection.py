"""Subject picking during student enrollment. Pure functions, no I/O."""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable
from uuid import UUID


@dataclass(frozen=True)
class SubjectSelection:
    class_id: UUID
    compulsory: FrozenSet[UUID] = field(default_factory=frozenset)
    selected: FrozenSet[UUID] = field(default_factory=frozenset)

    @property
    def final_subject_ids(self) -> FrozenSet[UUID]:
        return self.selected | self.compulsory


def start_selection(class_id: UUID, compulsory: Iterable[UUID], selected: Iterable[UUID] = ()) -> SubjectSelection:
    """Compulsory subjects start selected."""
    compulsory_set = frozenset(compulsory)
    return SubjectSelection(
        class_id=class_id,
        compulsory=compulsory_set,
        selected=frozenset(selected) | compulsory_set,
    )


def toggle_subject(selection: SubjectSelection, subject_id: UUID) -> SubjectSelection:
    """Flip one subject in or out of the selection. Compulsory subjects cannot be deselected."""
    if subject_id in selection.compulsory:
        return selection
    if subject_id in selection.selected:
        return replace(selection, selected=selection.selected - {subject_id})
    return replace(selection, selected=selection.selected | {subject_id})
