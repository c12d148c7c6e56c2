from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator
from pydantic_core import PydanticCustomError


def _coerce_number(value: Any, minimum: float, message: str, optional: bool = False) -> float | None:
    """Accept numbers and numeric strings; ``""``/``None`` count as missing."""
    if value is None or value == "":
        if optional:
            return None
        raise PydanticCustomError("number_required", message)
    if isinstance(value, bool):
        raise PydanticCustomError("number_type", "Expected number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PydanticCustomError("number_type", "Expected number") from None
    if not math.isfinite(number):
        raise PydanticCustomError("number_type", "Expected number")
    if number < minimum:
        raise PydanticCustomError("number_min", message)
    return number


def _required_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise PydanticCustomError("text_required", message)
    return value


class IngredientInput(BaseModel):
    id: float | None = None
    name: str
    original: str | None = None
    amount: float
    unit: str
    image: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> float | None:
        return _coerce_number(v, 0, "Ingredient id must be >= 0", optional=True)

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> str:
        return _required_text(v, "Ingredient name is required")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> float | None:
        return _coerce_number(v, 0, "Amount must be >= 0")

    @field_validator("unit", mode="before")
    @classmethod
    def _unit(cls, v: Any) -> str:
        return _required_text(v, "Unit is required")


class RecipeInput(BaseModel):
    title: str
    summary: str = ""
    image: str | None = None
    prepTime: float
    cookTime: float
    servings: float
    extendedIngredients: list[IngredientInput]
    instructions: str

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        return _required_text(v, "Recipe title is required")

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("prepTime", mode="before")
    @classmethod
    def _prep_time(cls, v: Any) -> float | None:
        return _coerce_number(v, 0, "Prep time must not be negative")

    @field_validator("cookTime", mode="before")
    @classmethod
    def _cook_time(cls, v: Any) -> float | None:
        return _coerce_number(v, 0, "Cook time must not be negative")

    @field_validator("servings", mode="before")
    @classmethod
    def _servings(cls, v: Any) -> float | None:
        return _coerce_number(v, 1, "Total servings must be at least 1")

    @field_validator("extendedIngredients")
    @classmethod
    def _at_least_one(cls, v: list[IngredientInput]) -> list[IngredientInput]:
        if not v:
            raise PydanticCustomError("ingredients_required", "At least one ingredient is required")
        return v

    @field_validator("instructions", mode="before")
    @classmethod
    def _instructions(cls, v: Any) -> str:
        return _required_text(v, "Instructions are required")


def validation_messages(exc: ValidationError) -> list[str]:
    return [e["msg"] for e in exc.errors()] or ["Validation failed"]
