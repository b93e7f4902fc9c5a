import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth.dependencies import get_settings, get_store, parse_account_id, require_account_owner
from auth.jwt_utils import ACCOUNT_NUMBER_CLAIM, create_access_token
from config import Settings
from database import PostgresStore, Storage
from exceptions import AccountNotFoundError, ConfigurationError, CredentialError, StoreError
from logging_config import setup_logging
from models.accounts import Account, CreateAccountRequest, new_account
from models.errors import ApiError
from models.login import LoginRequest, LoginResponse
from models.transfer import TransferRequest, TransferResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, store: Storage = Depends(get_store), settings: Settings = Depends(get_settings)):
    try:
        account = store.get_account_by_number(data.number)
    except AccountNotFoundError:
        logger.warning("Login failed: no account with number %s", data.number)
        raise HTTPException(status_code=403, detail="not authenticated")

    if not account.validate_password(data.password):
        logger.warning("Login failed: wrong password for account %s", account.id)
        raise HTTPException(status_code=403, detail="not authenticated")

    token = create_access_token(
        {ACCOUNT_NUMBER_CLAIM: account.number},
        settings.jwt_secret,
        timedelta(seconds=settings.jwt_expiry_seconds),
    )
    return LoginResponse(number=account.number, token=token)


@router.get("/accounts", response_model=List[Account])
def list_accounts(store: Storage = Depends(get_store)):
    return store.list_accounts()


@router.post("/accounts", response_model=Account, status_code=201)
def create_account(data: CreateAccountRequest, store: Storage = Depends(get_store)):
    try:
        account = new_account(data.first_name, data.last_name, data.password)
    except CredentialError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    store.create_account(account)
    logger.info("Created account %s with number %s", account.id, account.number)
    return account


@router.get("/accounts/{id}", response_model=Account, dependencies=[Depends(require_account_owner)])
def get_account(id: str, store: Storage = Depends(get_store)):
    # AccountNotFoundError is rendered as 404 by the app-level handler
    return store.get_account_by_id(parse_account_id(id))


@router.delete("/accounts/{id}", status_code=204, dependencies=[Depends(require_account_owner)])
def delete_account(id: str, store: Storage = Depends(get_store)):
    account_id = parse_account_id(id)
    deleted = store.delete_account(account_id)
    if deleted is None:
        raise HTTPException(status_code=404, detail=f"account {account_id} not found")

    logger.info("Deleted account %s", deleted)
    # 204 carries no body, the deleted id is the one in the path
    return Response(status_code=204)


@router.post("/transfer", response_model=TransferResponse)
def transfer(data: TransferRequest, store: Storage = Depends(get_store)):
    account_id = store.transfer(data.to_account, data.amount)
    if account_id is None:
        raise HTTPException(status_code=404, detail=f"account {data.to_account} not found")

    logger.info("Transferred %s to account %s", data.amount, account_id)
    return TransferResponse(transfered=data.amount, to=data.to_account)


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ApiError(error=message).model_dump(), headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return error_response(400, f"method not allowed {request.method}")
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return error_response(400, "; ".join(messages) or "invalid request")


async def not_found_handler(request: Request, exc: AccountNotFoundError):
    return error_response(404, str(exc))


async def store_error_handler(request: Request, exc: StoreError):
    return error_response(400, str(exc))


def open_store(settings: Settings) -> PostgresStore:
    store = PostgresStore(settings.postgres_url, settings.db_pool_min, settings.db_pool_max)
    try:
        store.init()
    except StoreError:
        store.close()
        raise
    return store


def create_app(settings: Optional[Settings] = None, store: Optional[Storage] = None) -> FastAPI:
    """
    Build the API application.

    Without injected settings they are read from the environment and logging is
    configured from them, so `uvicorn --factory main:create_app` behaves like
    `run()`. Without an injected store one is opened when the application
    starts and closed when it stops.
    """
    if settings is None:
        settings = Settings.from_env()
        setup_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_store = getattr(app.state, "store", None) is None
        if owns_store:
            app.state.store = open_store(app.state.settings)
        yield
        if owns_store:
            app.state.store.close()

    app = FastAPI(title="Bank API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(AccountNotFoundError, not_found_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    app.include_router(router)
    return app


def run():
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        setup_logging()
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)

    setup_logging(settings.log_level, settings.log_format)

    try:
        store = open_store(settings)
    except StoreError as exc:
        logger.critical("Could not initialise account store: %s", exc)
        sys.exit(1)

    logger.info("JSON API server running on %s:%s", settings.listen_host, settings.listen_port)
    try:
        uvicorn.run(
            create_app(settings, store),
            host=settings.listen_host,
            port=settings.listen_port,
            log_config=None,
        )
    finally:
        store.close()


if __name__ == "__main__":
    run()
