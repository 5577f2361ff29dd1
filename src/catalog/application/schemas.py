"""Request payload validation.

Raw payloads (decoded JSON, CLI arguments) are checked here with pydantic
before any use case runs. Every problem is reported at once as a
ValidationError whose details name the offending field.
"""

from __future__ import annotations

import re
from typing import Annotated, Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, model_validator

from catalog.domain.exceptions import ValidationError
from catalog.domain.model.cart import CartLine

_PRODUCT_ID = re.compile(r"^[0-9a-f]{32}$")

ProductName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Stock = Annotated[int, Field(ge=0, strict=True)]


class CartLineSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: ProductName
    amount: Annotated[int, Field(gt=0, strict=True)]


CartSchema = TypeAdapter(Annotated[list[CartLineSchema], Field(min_length=1)])


class ProductAddSchema(BaseModel):
    """Any field besides name and amount is kept as a free-form attribute."""

    model_config = ConfigDict(extra="allow")

    name: ProductName
    amount: Stock = 0


class ProductEditSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: ProductName | None = None
    amount: Stock | None = None

    @model_validator(mode="after")
    def _has_changes(self) -> ProductEditSchema:
        if self.name is None and self.amount is None and not self.model_extra:
            raise ValueError("at least one field must be changed")
        return self


def _details(exc: pydantic.ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def _invalid(exc: pydantic.ValidationError) -> ValidationError:
    return ValidationError("input was not valid", _details(exc))


def parse_cart(raw: Any) -> list[CartLine]:
    try:
        lines = CartSchema.validate_python(raw)
    except pydantic.ValidationError as exc:
        raise _invalid(exc) from exc
    return [CartLine.of(line.name, line.amount) for line in lines]


def parse_product_add(raw: Any) -> ProductAddSchema:
    try:
        return ProductAddSchema.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise _invalid(exc) from exc


def parse_product_edit(raw: Any) -> ProductEditSchema:
    try:
        return ProductEditSchema.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise _invalid(exc) from exc


def parse_product_id(raw: Any) -> str:
    if not isinstance(raw, str) or not _PRODUCT_ID.match(raw):
        raise ValidationError(
            "product id not valid",
            [{"field": "id", "message": "must be a 32-character hexadecimal string"}],
        )
    return raw
