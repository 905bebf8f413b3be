from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, WithJsonSchema
from pydantic.alias_generators import to_camel


def _two_places(value: Decimal) -> str:
    return format(value.quantize(Decimal("0.01")), "f")


WeightValue = Annotated[
    Decimal,
    Field(ge=0, max_digits=14, decimal_places=2),
    PlainSerializer(_two_places, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^\d{1,12}(?:\.\d{1,2})?$"}, mode="serialization"),
]

PositiveWeight = Annotated[
    Decimal,
    Field(gt=0, max_digits=14, decimal_places=2),
    PlainSerializer(_two_places, return_type=str, when_used="json"),
]

SignedWeight = Annotated[
    Decimal,
    Field(max_digits=14, decimal_places=2),
    PlainSerializer(_two_places, return_type=str, when_used="json"),
]

MoneyValue = Annotated[
    Decimal,
    Field(ge=0, max_digits=14, decimal_places=2),
    PlainSerializer(_two_places, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^\d{1,12}(?:\.\d{2})?$"}, mode="serialization"),
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PageMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


def build_page_meta(*, page: int, limit: int, total: int) -> PageMeta:
    total_pages = (total + limit - 1) // limit if limit else 0
    return PageMeta(page=page, limit=limit, total=total, total_pages=total_pages)
