import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from auth import NotAuthenticatedError, get_current_user_id
from categorizer import CategorizationService, Classification
from csv_utils import export_filename, export_records
from database import SessionLocal
from models import Record, RecordKind
from schemas import CategorizeIn, payload_schema
from services import (
    RecordNotFound,
    RecordService,
    RecordValidationError,
    SummaryService,
    local_now,
)
from summary import Summary, WindowTotal


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Expense Tracker API", version=APP_VERSION)

API_PREFIX = "/api/v1"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker[Session]:
    return SessionLocal


def get_categorizer() -> CategorizationService:
    return CategorizationService()


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return JSONResponse(
        status_code=401,
        content={"detail": str(exc) or "Not authenticated"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def validation_messages(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())) or "body",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]


def record_payload(record: Record) -> dict[str, object]:
    return {
        "id": record.id,
        "type": record.kind.value,
        record.kind.label_field: record.label,
        "amount_cents": record.amount_cents,
        "date": record.occurred_on.isoformat(),
        "icon": record.icon,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


def window_payload(window: WindowTotal) -> dict[str, object]:
    return {
        "total": window.total,
        "transactions": [record_payload(r) for r in window.transactions],
    }


def summary_payload(summary: Summary) -> dict[str, object]:
    return {
        "total_balance": summary.total_balance,
        "total_income": summary.total_income,
        "total_expenses": summary.total_expenses,
        "last_30_days_expenses": window_payload(summary.last_30_days_expenses),
        "last_60_days_income": window_payload(summary.last_60_days_income),
        "recent_transactions": [record_payload(r) for r in summary.recent_transactions],
    }


def classification_payload(result: Classification) -> dict[str, object]:
    payload: dict[str, object] = {
        "category": result.category,
        "confidence": result.confidence,
        "all_predictions": [
            {"category": p.category, "confidence": p.confidence}
            for p in result.alternatives
        ],
        "auto_fill": result.auto_fill,
    }
    if result.error:
        payload["error"] = result.error
    return payload


@app.get("/health")
def health():
    return {"ok": True, "version": APP_VERSION}


@app.get(f"{API_PREFIX}/summary")
def dashboard_summary(
    user_id: str = Depends(get_current_user_id),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
):
    service = SummaryService(session_factory, user_id)
    try:
        summary = service.compute(local_now())
    except Exception as exc:
        logger.exception(f"summary_failed: user={user_id}")
        raise HTTPException(
            status_code=503, detail="Summary temporarily unavailable"
        ) from exc
    return summary_payload(summary)


@app.post(f"{API_PREFIX}/expense/categorize")
def categorize_expense(
    data: CategorizeIn,
    user_id: str = Depends(get_current_user_id),
    categorizer: CategorizationService = Depends(get_categorizer),
):
    try:
        result = categorizer.classify(data.description)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return classification_payload(result)


@app.post(f"{API_PREFIX}/{{kind}}", status_code=201)
async def create_record(
    kind: RecordKind,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Expected a JSON object")
    try:
        data = payload_schema(kind).model_validate(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=validation_messages(exc)
        ) from exc

    service = RecordService(db, user_id)
    try:
        record = service.create(kind, data.to_record_in())
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return record_payload(record)


@app.get(f"{API_PREFIX}/{{kind}}")
def list_records(
    kind: RecordKind,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    records = RecordService(db, user_id).list_by_owner(kind)
    return [record_payload(r) for r in records]


@app.get(f"{API_PREFIX}/{{kind}}/export")
def export_records_endpoint(
    kind: RecordKind,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    records = RecordService(db, user_id).list_by_owner(kind)
    csv_text = export_records(kind, records)
    filename = export_filename(kind)
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.delete(f"{API_PREFIX}/{{kind}}/{{record_id}}", status_code=204)
def delete_record(
    kind: RecordKind,
    record_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        RecordService(db, user_id).delete(record_id, kind)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)
