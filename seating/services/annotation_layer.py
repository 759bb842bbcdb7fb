"""
Free-form floor-plan notes, stored and returned verbatim
"""

from typing import Iterable, List, Optional

from seating.core.errors import NotFoundError
from seating.schemas.annotation import AnnotationRecord

class AnnotationLayer:
    """Text notes pinned on the floor plan of one event"""

    def __init__(self, event_id: str):
        self.event_id = event_id
        self._annotations: List[AnnotationRecord] = []

    def load(self, annotations: Iterable[AnnotationRecord]) -> None:
        self._annotations = list(annotations)

    def list_annotations(self, event_id: Optional[str] = None) -> List[AnnotationRecord]:
        if event_id is not None and event_id != self.event_id:
            raise NotFoundError("Annotations for event", event_id)
        return list(self._annotations)

    def replace_all(self, annotations: Iterable[AnnotationRecord]) -> None:
        """The floor plan saves its notes as one list"""
        self._annotations = list(annotations)

    def add(self, annotation: AnnotationRecord) -> None:
        self._annotations.append(annotation)
