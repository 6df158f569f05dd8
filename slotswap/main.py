import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import models  # noqa: F401
from .auth import get_user_from_token
from .config import FRONTEND_ORIGINS, LOG_LEVEL
from .database import Base, engine, get_db
from .domain.slots.router import router as slots_router
from .domain.swaps.router import router as swaps_router
from .errors import SlotSwapError, UnauthorizedError, slotswap_error_handler
from .routes.auth import router as auth_router
from .services.notification_service import manager

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("passlib").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="SlotSwap API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(SlotSwapError, slotswap_error_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Swap endpoints report malformed input as a plain 400 with a readable message;
    everything else keeps FastAPI's 422 error list
    """
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")

    if request.url.path.startswith("/swap/"):
        messages = []
        for error in exc.errors():
            field = error.get("loc", ())[-1] if error.get("loc") else "body"
            messages.append(f"{field}: {error.get('msg')}")
        return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})

    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Storage failures are the only errors surfaced as a generic 500"""
    logger.exception(f"❌ Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(auth_router)
app.include_router(slots_router)
app.include_router(swaps_router)


@app.get("/health")
async def health_check():
    return {"status": "OK", "message": "SlotSwap API is running"}


@app.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: str = Query(None),
    db: Session = Depends(get_db),
):
    """
    Live notification channel.

    Authenticates with ?token=<bearer token>, then stays open until the client
    disconnects. Server pushes {"event": name, "data": payload} frames.
    """
    try:
        user_id = (await run_in_threadpool(get_user_from_token, db, token)).id
    except UnauthorizedError as e:
        logger.info(f"🚫 Rejected WebSocket connection: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        # The socket may stay open for hours; don't hold a pooled connection
        db.close()

    await manager.connect(user_id, websocket)
    try:
        await websocket.send_json({"event": "connected", "data": {"userId": user_id}})
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
