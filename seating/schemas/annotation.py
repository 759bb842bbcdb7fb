"""
Floor-plan annotation schemas
"""

from typing import List, Optional

from .common import RecordModel, WireModel

class AnnotationRecord(RecordModel):
    """Free text pinned to a floor-plan position"""
    id: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    text: str = ""

class AnnotationsReplace(WireModel):
    """Whole annotation list, saved at once"""
    annotations: List[AnnotationRecord]
