from typing import Dict, List, Optional
from pydantic import BaseModel

from .image import CatalogEntry


# Models
class UpdateQuery(BaseModel):
    image: Optional[str] = None
    device: Optional[str] = None
    current_version: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [name for name, value in self.model_dump().items() if not value]

    def is_complete(self) -> bool:
        return not self.missing_fields()

class ConflictReport(BaseModel):
    image_id: str
    device_type: str
    files: List[str]

class CatalogSummary(BaseModel):
    mode: str
    stats: Dict[str, int]
    entries: List[CatalogEntry]
    conflicts: List[ConflictReport]
