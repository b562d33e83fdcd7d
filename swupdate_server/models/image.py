from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Tuple


class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Fields extracted from the filename
    image_id: str = Field(..., min_length=1, description="Identifier of the image / application")
    device_type: str = Field(..., min_length=1, description="Hardware / device type")
    version: str = Field(..., min_length=1, description="Version, compared for equality only")

    # Backing file, relative to the images directory
    file_reference: str = Field(..., min_length=1, description="File name inside the images directory")

    @property
    def key(self) -> Tuple[str, str]:
        """(image_id, device_type) pair the resolver matches on."""
        return (self.image_id, self.device_type)


class FilenameLayout(BaseModel):
    """Where the catalog fields live inside an image filename.

    Positions are zero-based indices into the filename stem after it
    has been split on ``separator``.
    """
    model_config = ConfigDict(frozen=True)

    separator: str = Field(default="_", min_length=1, description="Field separator")
    image_id_field: int = Field(default=0, ge=0, description="Index of the image identifier")
    device_type_field: int = Field(default=1, ge=0, description="Index of the device type")
    version_field: int = Field(default=2, ge=0, description="Index of the version")

    @model_validator(mode="after")
    def _distinct_positions(self) -> "FilenameLayout":
        positions = (self.image_id_field, self.device_type_field, self.version_field)
        if len(set(positions)) != len(positions):
            raise ValueError(f"filename field positions must be distinct, got {positions}")
        return self

    @property
    def required_fields(self) -> int:
        return max(self.image_id_field, self.device_type_field, self.version_field) + 1
