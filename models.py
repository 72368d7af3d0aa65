from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime

# ============== Event ==============
class Event(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = ""

# ============== Participants ==============
class ParticipantBase(SQLModel):
    name: str = Field(min_length=1)
    payment_info: Optional[str] = None  # bank alias / account for receiving transfers

class Participant(ParticipantBase, table=True):
    __table_args__ = {"sqlite_autoincrement": True}  # ids are never reused
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ============== Expenses ==============
class ExpenseBase(SQLModel):
    description: str = ""
    amount: float = Field(gt=0)  # whole currency units
    receipt: Optional[str] = None  # opaque attachment (e.g. data URL), never read by the engine

class Expense(ExpenseBase, table=True):
    __table_args__ = {"sqlite_autoincrement": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    paid_by: int = Field(foreign_key="participant.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ============== Shares ==============
# No rows for an expense means it is shared by every participant
class ExpenseShare(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    expense_id: int = Field(foreign_key="expense.id", index=True)
    participant_id: int = Field(foreign_key="participant.id", index=True)

# ============== Transfer receipts ==============
class TransferReceipt(SQLModel, table=True):
    key: str = Field(primary_key=True)  # "<fromId>-<toId>"
    image: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
