from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class UnitInfo(BaseModel):
    unitType: str
    unitCount: float
    unitCost: float | None = None


class Candidate(BaseModel):
    productId: str | None = None
    description: str | None = None
    brand: str | None = None
    size: str | None = None
    price: float | None = None
    unit: UnitInfo | None = None


class PriceResult(BaseModel):
    found: bool
    term: str
    locationId: str | None = None
    product: Candidate | None = None
    cost: float | None = None
    candidates: list[Candidate] | None = None

    def to_dict(self) -> dict[str, Any]:
        # Candidates are only part of the payload when they were requested.
        exclude = {"candidates"} if self.candidates is None else set()
        return self.model_dump(exclude=exclude)


class PriceBatchRequest(BaseModel):
    terms: Any = None
    locationId: str | None = None
    method: str = "median"
    limit: int = Field(default=5)
