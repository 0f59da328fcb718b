from __future__ import annotations
from typing import Any, Dict, List, Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Records are frozen and serialize with the camelCase field names the store and API use.
class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class CatalogItem(_Record):
    title: str = ""
    sku: str = ""
    vendor: str = "Unknown Brand"
    short_desc: str = ""
    long_desc: str = ""
    attributes: Dict[str, str] = Field(default_factory=dict)
    pricing: Dict[str, float] = Field(default_factory=dict)
    qty_available: int = 1
    weight: str = ""
    dimensions: str = "xx"
    category: str = "Uncategorized"
    pies_segment: str = ""
    pies_base: str = ""
    pies_sub: str = ""
    images: List[str] = Field(default_factory=list)


class FitmentEntry(_Record):
    part_number: str
    make: str
    model: str
    year_from: str
    year_to: str
    part_type: str = ""
    position: str = ""

    @property
    def key(self) -> Tuple[str, str, str, str, str]:
        return (self.part_number, self.year_from, self.year_to, self.make, self.model)
