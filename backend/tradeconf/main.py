
from fastapi import FastAPI, APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Literal, Optional
from pathlib import Path
import asyncio
import logging
import random
from . import config
from .errors import TradeConfirmError, TradeNotFoundError
from .ingestion import load_csvs, parse_upload
from .models import EquityTrade, FXTrade, TradeIn, TradeFilters, DocumentUpdate
from .notifier import BreakStream
from .persistence import Repository, equity_row, fx_row
from .rules import get_policy
from .store import TradeStore

logger = logging.getLogger(__name__)

TradeKind = Literal["equity", "fx"]


class WorkflowIn(BaseModel):
    trade_id: str
    status: str = "pending"
    priority: Literal["low","medium","high","urgent"] = "medium"
    assigned_to: Optional[str] = None


class WorkflowStepIn(BaseModel):
    workflow_id: int
    step_id: str
    name: str
    description: Optional[str] = None
    status: str = "pending"
    order: int


class ImportIn(BaseModel):
    text: str
    filename: str = ""


def get_store(request: Request) -> TradeStore:
    return request.app.state.store


def get_repo(request: Request) -> Repository:
    return request.app.state.repository


router = APIRouter()

# --- relational CRUD -------------------------------------------------------

@router.get("/api/trades/equity")
def list_equity_trades(repo: Repository = Depends(get_repo)):
    return repo.get_equity_trades()


@router.get("/api/trades/fx")
def list_fx_trades(repo: Repository = Depends(get_repo)):
    return repo.get_fx_trades()


@router.get("/api/trades/{kind}/{trade_id}")
def get_trade_row(kind: TradeKind, trade_id: str, repo: Repository = Depends(get_repo)):
    row = repo.get_equity_trade(trade_id) if kind == "equity" else repo.get_fx_trade(trade_id)
    if row is None:
        raise TradeNotFoundError(trade_id)
    return row


@router.post("/api/trades/equity", status_code=201)
def create_equity_trade(t: EquityTrade, repo: Repository = Depends(get_repo)):
    return repo.create_equity_trade(equity_row(t))


@router.post("/api/trades/fx", status_code=201)
def create_fx_trade(t: FXTrade, repo: Repository = Depends(get_repo)):
    return repo.create_fx_trade(fx_row(t))


@router.patch("/api/trades/{kind}/{trade_id}")
def update_trade_row(kind: TradeKind, trade_id: str, updates: dict, repo: Repository = Depends(get_repo)):
    if kind == "equity":
        row = repo.update_equity_trade(trade_id, updates)
    else:
        row = repo.update_fx_trade(trade_id, updates)
    if row is None:
        raise TradeNotFoundError(trade_id)
    return row


@router.get("/api/workflows")
def list_workflows(repo: Repository = Depends(get_repo)):
    return repo.get_workflows()


@router.post("/api/workflows", status_code=201)
def create_workflow(w: WorkflowIn, repo: Repository = Depends(get_repo)):
    return repo.create_workflow(w.model_dump())


@router.get("/api/workflow-steps")
def list_workflow_steps(repo: Repository = Depends(get_repo)):
    return repo.get_workflow_steps()


@router.post("/api/workflow-steps", status_code=201)
def create_workflow_step(s: WorkflowStepIn, repo: Repository = Depends(get_repo)):
    return repo.create_workflow_step(s.model_dump())


@router.get("/api/stats")
def stats(repo: Repository = Depends(get_repo)):
    return repo.stats()

# --- store views -----------------------------------------------------------

@router.get("/api/view/trades")
async def view_trades(filters: TradeFilters = Depends(), store: TradeStore = Depends(get_store)):
    return jsonable_encoder(store.filtered_trades(filters))


@router.post("/api/view/trades", status_code=201)
async def add_trade(t: TradeIn, store: TradeStore = Depends(get_store)):
    trade = store.add_trade(t)
    await store.publish({"type": "trade", "payload": trade.model_dump()})
    return jsonable_encoder(trade)


@router.get("/api/view/facets")
async def view_facets(store: TradeStore = Depends(get_store)):
    return store.facets()


@router.get("/api/view/workflows")
async def view_workflows(store: TradeStore = Depends(get_store)):
    return jsonable_encoder(store.workflows())


@router.get("/api/view/actions")
async def view_actions(store: TradeStore = Depends(get_store)):
    return jsonable_encoder(store.workflow_actions())


@router.get("/api/view/queue-metrics")
async def view_queue_metrics(store: TradeStore = Depends(get_store)):
    return store.queue_metrics()


@router.get("/api/failures")
async def list_failures(status: str = "", store: TradeStore = Depends(get_store)):
    return jsonable_encoder(store.get_failures(status))


@router.post("/api/failures/{trade_id}/resolve")
async def resolve_failure(trade_id: str, store: TradeStore = Depends(get_store)):
    failure = store.resolve_failure(trade_id)
    await store.publish({"type": "failure", "payload": failure.model_dump()})
    return jsonable_encoder(failure)


@router.post("/api/failures/{trade_id}/escalate")
async def escalate_failure(trade_id: str, store: TradeStore = Depends(get_store)):
    failure = store.escalate_failure(trade_id)
    await store.publish({"type": "failure", "payload": failure.model_dump()})
    return jsonable_encoder(failure)


@router.get("/api/documents/{trade_id}")
async def get_documents(trade_id: str, store: TradeStore = Depends(get_store)):
    return jsonable_encoder(store.get_documents(trade_id))


@router.patch("/api/documents/{trade_id}/{doc_type}")
async def update_document(trade_id: str, doc_type: str, updates: DocumentUpdate,
                          store: TradeStore = Depends(get_store)):
    status = store.update_document(trade_id, doc_type, updates)
    await store.publish({"type": "document", "trade_id": trade_id, "payload": status.model_dump()})
    return jsonable_encoder(status)


@router.get("/api/settlements")
async def list_settlements(store: TradeStore = Depends(get_store)):
    return jsonable_encoder({"ready": store.settlements_ready(), "sent": store.settlements_sent()})


@router.post("/api/settlements/{trade_id}")
async def send_to_settlements(trade_id: str, store: TradeStore = Depends(get_store)):
    trade = store.send_to_settlements(trade_id)
    await store.publish({"type": "settlement", "payload": trade.model_dump()})
    return jsonable_encoder(trade)


@router.post("/api/import")
async def import_csv(body: ImportIn, store: TradeStore = Depends(get_store)):
    trades = parse_upload(body.text)
    logger.info("Parsed %d trades from upload %s", len(trades), body.filename or "<inline>")
    result = store.import_trades(trades)
    await store.publish({"type": "import", "payload": result})
    return result


@router.get("/health")
async def health(store: TradeStore = Depends(get_store)):
    return {"status": "ok",
            "processed": store.stats["processed"],
            "breaks": store.stats["detected_breaks"],
            "rejected": store.stats["rejected"],
            "avg_ingest_ms": store.stats["avg_ingest_ms"],
            "trades": len(store.equity_trades) + len(store.fx_trades)}


@router.websocket("/ws")
async def ws(websocket: WebSocket):
    stream: BreakStream = websocket.app.state.stream
    await stream.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        stream.disconnect(websocket)

# --- errors ----------------------------------------------------------------

def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


async def _not_found(request: Request, exc: TradeNotFoundError):
    return _error(404, str(exc))


async def _bad_request(request: Request, exc: Exception):
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return _error(400, str(exc))


async def _invalid_body(request: Request, exc: RequestValidationError):
    msgs = ["%s: %s" % (".".join(str(p) for p in e["loc"]), e["msg"]) for e in exc.errors()]
    return _error(400, "; ".join(msgs))


async def _unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc) or "Internal server error")

# --- app -------------------------------------------------------------------

def create_app(repository: Repository | None = None, data_dir: Path | None = None,
               load_data: bool = True, persist: bool = config.PERSIST_ON_LOAD,
               rng_seed: int | None = config.RNG_SEED) -> FastAPI:
    app = FastAPI(title="Trade Confirmation Desk")
    app.include_router(router)
    app.add_exception_handler(TradeNotFoundError, _not_found)
    app.add_exception_handler(TradeConfirmError, _bad_request)
    app.add_exception_handler(RequestValidationError, _invalid_body)
    app.add_exception_handler(Exception, _unexpected)

    stream = BreakStream()
    store = TradeStore(streamer=stream, rng=random.Random(rng_seed),
                       policy=get_policy(config.ENRICHMENT_POLICY))
    app.state.stream = stream
    app.state.store = store
    app.state.repository = repository
    app.state.tasks = []

    @app.on_event("startup")
    async def _startup():
        if app.state.repository is None:
            app.state.repository = Repository(config.DB_PATH)
        repo = app.state.repository
        repo.init_schema()
        if persist and repo.stats()["totalTrades"] == 0:
            store.repository = repo
        elif persist:
            logger.info("Repository already holds trades; loaded trades stay in memory only")

        app.state.tasks.append(asyncio.create_task(store.start()))
        if load_data:
            root = Path(data_dir or config.DATA_DIR)
            app.state.tasks.append(asyncio.create_task(
                load_csvs(store.queue, root / config.EQUITY_CSV, root / config.FX_CSV,
                          throttle_ms=config.LOAD_THROTTLE_MS)))

    @app.on_event("shutdown")
    async def _shutdown():
        for task in app.state.tasks:
            task.cancel()
        app.state.repository.close()

    return app


config.setup_logging()
app = create_app()
