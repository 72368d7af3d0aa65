from fastapi import FastAPI, HTTPException, Depends, Path
from fastapi.responses import PlainTextResponse, Response
from sqlmodel import Session, select, SQLModel, create_engine, col, or_
from pydantic import BaseModel, Field
from collections import defaultdict
from typing import List, Optional
import logging
import re
from urllib.parse import quote

import settings
from models import Event, Participant, ParticipantBase, Expense, ExpenseShare, TransferReceipt
from schemas import ParticipantSnapshot, ExpenseSnapshot, SettlementStatus, share_scope
from compute import calculate_splits, settlement_status, round_unit, InvalidReference
from summary import share_text
from export import export_workbook, export_filename

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, echo=False)

app = FastAPI(title="Shared Expense Splitter API")

RECEIPT_KEY = r"^\d+-\d+$"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

def create_db_and_tables():
    SQLModel.metadata.create_all(engine)

@app.on_event("startup")
def on_startup():
    create_db_and_tables()

def get_session():
    with Session(engine) as session:
        yield session

# ========== Snapshot for the engine ==========
def load_snapshot(session: Session):
    """Read participants and expenses (in insertion order) as engine inputs."""
    participants = session.exec(select(Participant).order_by(Participant.id)).all()
    expenses = session.exec(select(Expense).order_by(Expense.id)).all()
    shares = defaultdict(list)
    for s in session.exec(select(ExpenseShare).order_by(ExpenseShare.id)).all():
        shares[s.expense_id].append(s.participant_id)
    return (
        [ParticipantSnapshot(id=p.id, name=p.name, payment_info=p.payment_info) for p in participants],
        [ExpenseSnapshot(
            id=e.id,
            description=e.description,
            amount=e.amount,
            paid_by=e.paid_by,
            share_scope=share_scope(shares[e.id]),
            receipt=e.receipt,
        ) for e in expenses],
    )

def evaluate(session: Session):
    participants, expenses = load_snapshot(session)
    try:
        result = calculate_splits(participants, expenses)
    except InvalidReference as e:
        logger.warning("settlement rejected: %s", e)
        raise HTTPException(status_code=422, detail=str(e))
    return participants, expenses, result

def get_event(session: Session) -> Event:
    event = session.get(Event, 1)
    if event is None:
        event = Event(id=1, name="")
        session.add(event)
        session.commit()
        session.refresh(event)
    return event

# ========== Event endpoints ==========
class EventIn(BaseModel):
    name: str = ""

@app.get("/event")
def read_event(session: Session = Depends(get_session)):
    return {"name": get_event(session).name}

@app.put("/event")
def rename_event(payload: EventIn, session: Session = Depends(get_session)):
    event = get_event(session)
    event.name = payload.name.strip()
    session.add(event)
    session.commit()
    return {"name": event.name}

# ========== Participant endpoints ==========
def get_participant_or_404(session: Session, participant_id: int) -> Participant:
    p = session.get(Participant, participant_id)
    if p is None:
        raise HTTPException(status_code=404, detail=f"Participant {participant_id} not found.")
    return p

@app.post("/participants", response_model=Participant)
def create_participant(payload: ParticipantBase, session: Session = Depends(get_session)):
    p = Participant(name=payload.name.strip(), payment_info=(payload.payment_info or "").strip() or None)
    if not p.name:
        raise HTTPException(status_code=400, detail="Participant name must not be blank.")
    session.add(p)
    session.commit()
    session.refresh(p)
    logger.info("participant %s added (%s)", p.id, p.name)
    return p

@app.get("/participants", response_model=List[Participant])
def list_participants(session: Session = Depends(get_session)):
    return session.exec(select(Participant).order_by(Participant.id)).all()

@app.put("/participants/{participant_id}", response_model=Participant)
def update_participant(participant_id: int, payload: ParticipantBase, session: Session = Depends(get_session)):
    p = get_participant_or_404(session, participant_id)
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Participant name must not be blank.")
    p.name = payload.name.strip()
    p.payment_info = (payload.payment_info or "").strip() or None
    session.add(p)
    session.commit()
    session.refresh(p)
    return p

@app.delete("/participants/{participant_id}")
def delete_participant(participant_id: int, session: Session = Depends(get_session)):
    # Cascade: expenses they paid go away entirely, their shares elsewhere are stripped.
    # An expense whose share list becomes empty is then shared by everyone.
    p = get_participant_or_404(session, participant_id)
    paid = session.exec(select(Expense).where(Expense.paid_by == participant_id)).all()
    paid_ids = [e.id for e in paid]
    shares = session.exec(select(ExpenseShare).where(or_(
        ExpenseShare.participant_id == participant_id,
        col(ExpenseShare.expense_id).in_(paid_ids),
    ))).all()
    for s in shares:
        session.delete(s)
    session.flush()
    for e in paid:
        session.delete(e)
    session.flush()
    # Receipts keyed "<fromId>-<toId>" that mention them
    receipts = session.exec(select(TransferReceipt).where(or_(
        col(TransferReceipt.key).like(f"{participant_id}-%"),
        col(TransferReceipt.key).like(f"%-{participant_id}"),
    ))).all()
    for r in receipts:
        session.delete(r)
    session.delete(p)
    session.commit()
    logger.info("participant %s removed, %d paid expenses and %d receipts deleted",
                participant_id, len(paid_ids), len(receipts))
    return {"deleted": participant_id, "deleted_expenses": paid_ids}

# ========== Expense endpoints ==========
class ExpenseIn(BaseModel):
    description: str = ""
    amount: float = Field(gt=0)
    paid_by: int
    shared_by: List[int] = []  # empty -> everyone, resolved when balances are computed
    receipt: Optional[str] = None

def check_references(session: Session, payload: ExpenseIn):
    if session.get(Participant, payload.paid_by) is None:
        raise HTTPException(status_code=400, detail=f"Unknown payer {payload.paid_by}.")
    for pid in payload.shared_by:
        if session.get(Participant, pid) is None:
            raise HTTPException(status_code=400, detail=f"Unknown participant {pid} in shared_by.")

def replace_shares(session: Session, expense_id: int, shared_by: List[int]):
    for s in session.exec(select(ExpenseShare).where(ExpenseShare.expense_id == expense_id)).all():
        session.delete(s)
    for pid in dict.fromkeys(shared_by):
        session.add(ExpenseShare(expense_id=expense_id, participant_id=pid))

def expense_out(e: Expense, shared_by: List[int]) -> dict:
    return {
        "id": e.id,
        "description": e.description,
        "amount": e.amount,
        "paid_by": e.paid_by,
        "shared_by": shared_by,
        "receipt": e.receipt,
    }

def get_expense_or_404(session: Session, expense_id: int) -> Expense:
    e = session.get(Expense, expense_id)
    if e is None:
        raise HTTPException(status_code=404, detail=f"Expense {expense_id} not found.")
    return e

@app.post("/expenses")
def create_expense(payload: ExpenseIn, session: Session = Depends(get_session)):
    check_references(session, payload)
    e = Expense(
        description=payload.description.strip(),
        amount=payload.amount,
        paid_by=payload.paid_by,
        receipt=payload.receipt,
    )
    session.add(e)
    session.flush()
    replace_shares(session, e.id, payload.shared_by)
    session.commit()
    session.refresh(e)
    logger.info("expense %s added: %s paid by %s", e.id, e.amount, e.paid_by)
    return {"id": e.id}

@app.get("/expenses")
def list_expenses(session: Session = Depends(get_session)):
    expenses = session.exec(select(Expense).order_by(Expense.id)).all()
    results = []
    for e in expenses:
        shares = session.exec(
            select(ExpenseShare).where(ExpenseShare.expense_id == e.id).order_by(ExpenseShare.id)
        ).all()
        results.append(expense_out(e, [s.participant_id for s in shares]))
    return results

@app.put("/expenses/{expense_id}")
def update_expense(expense_id: int, payload: ExpenseIn, session: Session = Depends(get_session)):
    e = get_expense_or_404(session, expense_id)
    check_references(session, payload)
    e.description = payload.description.strip()
    e.amount = payload.amount
    e.paid_by = payload.paid_by
    e.receipt = payload.receipt
    session.add(e)
    replace_shares(session, e.id, payload.shared_by)
    session.commit()
    session.refresh(e)
    return expense_out(e, list(dict.fromkeys(payload.shared_by)))

@app.delete("/expenses/{expense_id}")
def delete_expense(expense_id: int, session: Session = Depends(get_session)):
    e = get_expense_or_404(session, expense_id)
    for s in session.exec(select(ExpenseShare).where(ExpenseShare.expense_id == expense_id)).all():
        session.delete(s)
    session.flush()
    session.delete(e)
    session.commit()
    logger.info("expense %s removed", expense_id)
    return {"deleted": expense_id}

# ========== Settlement endpoints ==========
@app.get("/settlement")
def settlement(session: Session = Depends(get_session)):
    participants, _, result = evaluate(session)
    status = settlement_status(result)
    if result is None:
        return {
            "status": status.value,
            "total_spent": None,
            "average_per_person": None,
            "balances": None,
            "transactions": None,
        }
    return {
        "status": status.value,
        "total_spent": result.total_spent,
        "average_per_person": round_unit(result.total_spent / len(participants)),
        "balances": [b.model_dump() for b in result.balances],
        "transactions": [t.model_dump() for t in result.transactions],
    }

def require_result(result):
    if result is None:
        raise HTTPException(status_code=409, detail=SettlementStatus.INSUFFICIENT_DATA.value)
    return result

@app.get("/summary", response_class=PlainTextResponse)
def summary(session: Session = Depends(get_session)):
    participants, expenses, result = evaluate(session)
    return share_text(participants, expenses, require_result(result), get_event(session).name)

def content_disposition(filename: str) -> str:
    """attachment header with an ASCII fallback and the UTF-8 name (RFC 6266)."""
    filename = re.sub(r'["\r\n]', "", filename)
    fallback = filename.encode("ascii", "ignore").decode("ascii").strip() or "expenses.xlsx"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"

@app.get("/export.xlsx")
def export(session: Session = Depends(get_session)):
    participants, expenses, result = evaluate(session)
    event_name = get_event(session).name
    content = export_workbook(participants, expenses, require_result(result), event_name)
    filename = export_filename(event_name)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": content_disposition(filename)},
    )

# ========== Transfer receipts ==========
class ReceiptIn(BaseModel):
    image: str = Field(min_length=1)

@app.put("/receipts/{key}")
def put_receipt(payload: ReceiptIn, key: str = Path(pattern=RECEIPT_KEY), session: Session = Depends(get_session)):
    r = session.get(TransferReceipt, key)
    if r is None:
        r = TransferReceipt(key=key, image=payload.image)
    else:
        r.image = payload.image
    session.add(r)
    session.commit()
    logger.info("receipt stored for transfer %s", key)
    return {"key": key}

@app.get("/receipts")
def list_receipts(session: Session = Depends(get_session)):
    return {r.key: r.image for r in session.exec(select(TransferReceipt)).all()}

@app.get("/receipts/{key}")
def get_receipt(key: str = Path(pattern=RECEIPT_KEY), session: Session = Depends(get_session)):
    r = session.get(TransferReceipt, key)
    if r is None:
        raise HTTPException(status_code=404, detail=f"No receipt for transfer {key}.")
    return {"key": r.key, "image": r.image}

@app.delete("/receipts/{key}")
def delete_receipt(key: str = Path(pattern=RECEIPT_KEY), session: Session = Depends(get_session)):
    r = session.get(TransferReceipt, key)
    if r is None:
        raise HTTPException(status_code=404, detail=f"No receipt for transfer {key}.")
    session.delete(r)
    session.commit()
    return {"deleted": key}

# ========== Reset ==========
@app.delete("/data")
def clear_all_data(session: Session = Depends(get_session)):
    for model in (ExpenseShare, Expense, Participant, TransferReceipt, Event):
        for row in session.exec(select(model)).all():
            session.delete(row)
        session.flush()
    session.commit()
    logger.info("all data cleared")
    return {"cleared": True}
