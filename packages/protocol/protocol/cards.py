"""Confirmation cards: one closed variant per mutation kind, tagged by ``type``."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Union

from pydantic import Field, TypeAdapter

from protocol.base import BaseModel


class RiskLevel(str, Enum):
    """Ordered risk tier: LOW < MEDIUM < HIGH."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def raise_to(self, other: "RiskLevel | None") -> "RiskLevel":
        """The stricter of the two tiers; ``None`` never lowers."""
        if other is None:
            return self
        other = RiskLevel(other)
        return other if other.rank > self.rank else self


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


class SummaryField(BaseModel):
    label: str
    value: str


class ChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class DiffChange(BaseModel):
    field: str
    old_value: str
    new_value: str
    change_type: ChangeType


class SummaryCard(BaseModel):
    type: Literal["summary"] = "summary"
    risk_level: RiskLevel = RiskLevel.LOW
    title: str
    resource_type: str
    resource_name: str
    fields: List[SummaryField] = Field(default_factory=list)


class DiffCard(BaseModel):
    type: Literal["diff"] = "diff"
    risk_level: RiskLevel = RiskLevel.MEDIUM
    title: str
    resource_type: str
    resource_name: str
    changes: List[DiffChange] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class NameInputCard(BaseModel):
    type: Literal["name_input"] = "name_input"
    risk_level: RiskLevel = RiskLevel.HIGH
    title: str
    resource_type: str
    resource_name: str
    impact_description: str
    warnings: List[str] = Field(default_factory=list)

    def accepts(self, confirmed_name: str | None) -> bool:
        """Deletion is confirmed only by echoing the resource name verbatim."""
        return confirmed_name == self.resource_name


ConfirmCard = Annotated[
    Union[SummaryCard, DiffCard, NameInputCard],
    Field(discriminator="type"),
]

_CARD_ADAPTER: TypeAdapter = TypeAdapter(ConfirmCard)


def parse_card(data: dict) -> Union[SummaryCard, DiffCard, NameInputCard]:
    return _CARD_ADAPTER.validate_python(data)
