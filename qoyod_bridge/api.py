"""
HTTP surface for the operator screen.

Every route answers with a JSON object carrying a `status` discriminator;
ledger failures are reported in the body, never raised.
"""
from __future__ import annotations
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .client import LedgerClient
from .config import BridgeConfig
from .conventions import LedgerClock
from .exceptions import LedgerError
from .lookups import list_payment_accounts, preview
from .models import BusinessType, ReturnType, Status
from .payments import PaymentWorkflow
from .returns import ReturnWorkflow

PASSWORD_HEADER = "x-app-password"


class PreviewRequest(BaseModel):
    type: BusinessType
    ref: str = Field(min_length=1)


class PayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: BusinessType
    ref: str = Field(min_length=1)
    account_id: Union[str, int] = Field(alias="accountId")
    force_amount: Optional[Union[str, float, int]] = Field(default=None, alias="forceAmount")
    force_date: Optional[str] = Field(default=None, alias="forceDate", pattern=r"^\d{4}-\d{2}-\d{2}$")


class ReturnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ref: str = Field(min_length=1)
    return_type: ReturnType = Field(alias="returnType")
    account_id: Optional[Union[str, int]] = Field(default=None, alias="accountId")


def get_client(request: Request) -> LedgerClient:
    return request.app.state.client


def get_config(request: Request) -> BridgeConfig:
    return request.app.state.config


def get_clock(request: Request) -> LedgerClock:
    return request.app.state.clock


def create_app(
    config: Optional[BridgeConfig] = None,
    client: Optional[LedgerClient] = None,
    clock: Optional[LedgerClock] = None,
) -> FastAPI:
    """
    Build the application.

    The ledger client is created once here (or injected) and shared by all
    requests; it is closed on shutdown only when this factory created it.
    """
    config = config or BridgeConfig.from_env()
    owns_client = client is None
    client = client or LedgerClient(config)
    clock = clock or LedgerClock(config.utc_offset_hours)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Qoyod bridge starting, ledger at {config.ledger_base_url}")
        yield
        if owns_client:
            client.close()
        logger.info("Qoyod bridge stopped")

    app = FastAPI(title="Qoyod Bridge", version="1.0.0", lifespan=lifespan)
    app.state.config = config
    app.state.client = client
    app.state.clock = clock

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        logger.warning(f"Rejected {request.method} {request.url.path}: invalid body")
        return JSONResponse(
            status_code=422,
            content={"status": "error", "message": "invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.middleware("http")
    async def password_gate(request: Request, call_next):
        expected = config.app_password
        if not expected:
            return await call_next(request)
        if request.method in ("GET", "HEAD") and not request.url.path.startswith("/api"):
            return await call_next(request)
        if request.headers.get(PASSWORD_HEADER) != expected:
            logger.warning(f"Rejected {request.method} {request.url.path}: bad password header")
            return JSONResponse(status_code=401, content={"status": "error", "message": "invalid password"})
        return await call_next(request)

    # CORS wraps the password gate: 401 responses carry CORS headers and
    # preflight requests are answered before the gate sees them
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/login")
    def login():
        return {"status": Status.SUCCESS.value}

    @app.get("/api/test-connection")
    def test_connection(client: LedgerClient = Depends(get_client)):
        try:
            result = client.test_connection()
        except LedgerError as e:
            return JSONResponse(
                status_code=500,
                content={"status": "error", "message": "could not reach the ledger", "details": e.details},
            )
        return {"status": "success", "message": "connected to the ledger", "count": result["count"]}

    @app.get("/api/accounts")
    def accounts(client: LedgerClient = Depends(get_client)):
        try:
            return list_payment_accounts(client)
        except LedgerError as e:
            return JSONResponse(
                status_code=500,
                content={"status": "error", "message": "could not load accounts", "details": e.details},
            )

    @app.post("/api/preview")
    def preview_record(body: PreviewRequest, client: LedgerClient = Depends(get_client)):
        return preview(client, body.type, body.ref).to_response()

    @app.post("/api/pay")
    def pay(
        body: PayRequest,
        client: LedgerClient = Depends(get_client),
        config: BridgeConfig = Depends(get_config),
        clock: LedgerClock = Depends(get_clock),
    ):
        workflow = PaymentWorkflow(client, clock, paid_status=config.paid_status)
        result = workflow.run(
            body.type,
            body.ref,
            str(body.account_id),
            force_amount=body.force_amount,
            force_date=body.force_date,
        )
        return result.to_response()

    @app.post("/api/return")
    def process_return(
        body: ReturnRequest,
        client: LedgerClient = Depends(get_client),
        config: BridgeConfig = Depends(get_config),
        clock: LedgerClock = Depends(get_clock),
    ):
        workflow = ReturnWorkflow(
            client,
            clock,
            default_inventory_id=config.default_inventory_id,
            link_parent_invoice=config.link_parent_invoice,
        )
        account_id = str(body.account_id) if body.account_id is not None else None
        return workflow.run(body.ref, body.return_type, account_id).to_response()

    static_dir = Path(config.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.debug(f"Static directory {static_dir} not found, serving API only")

    return app
