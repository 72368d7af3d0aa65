from enum import Enum
from typing import Annotated, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ============== Share scope ==============
class AllParticipants(_Frozen):
    """Split across whoever is a participant when the engine runs."""
    kind: Literal["all"] = "all"

    def resolve(self, participant_ids: List[int]) -> List[int]:
        return list(participant_ids)


class Subset(_Frozen):
    kind: Literal["subset"] = "subset"
    ids: List[int] = Field(min_length=1)

    @field_validator("ids")
    @classmethod
    def _dedupe(cls, v: List[int]) -> List[int]:
        return list(dict.fromkeys(v))

    def resolve(self, participant_ids: List[int]) -> List[int]:
        return list(self.ids)


ShareScope = Annotated[Union[AllParticipants, Subset], Field(discriminator="kind")]


def share_scope(ids: Optional[Iterable[int]] = None) -> Union[AllParticipants, Subset]:
    """An empty (or missing) id list means everyone."""
    ids = list(ids or [])
    if not ids:
        return AllParticipants()
    return Subset(ids=ids)


# ============== Engine inputs ==============
class ParticipantSnapshot(_Frozen):
    id: int
    name: str = Field(min_length=1)
    payment_info: Optional[str] = None


class ExpenseSnapshot(_Frozen):
    id: int
    description: str = ""
    amount: float = Field(gt=0)
    paid_by: int
    share_scope: ShareScope = Field(default_factory=AllParticipants)
    receipt: Optional[str] = None


# ============== Engine outputs ==============
class Balance(_Frozen):
    id: int
    name: str
    payment_info: Optional[str] = None
    paid: float = 0.0
    owes: float = 0.0

    @computed_field
    @property
    def balance(self) -> float:
        return self.paid - self.owes


class Transaction(_Frozen):
    from_id: int
    from_name: str
    to_id: int
    to_name: str
    amount: int
    to_payment_info: Optional[str] = None

    @computed_field
    @property
    def key(self) -> str:
        # key of the transfer receipt store
        return f"{self.from_id}-{self.to_id}"


class SettlementStatus(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    SETTLED = "settled"
    UNSETTLED = "unsettled"


class SplitResult(_Frozen):
    total_spent: float
    balances: List[Balance]
    transactions: List[Transaction]

    @computed_field
    @property
    def status(self) -> SettlementStatus:
        if self.transactions:
            return SettlementStatus.UNSETTLED
        return SettlementStatus.SETTLED
