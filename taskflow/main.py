# taskflow/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import logging
import os

# ---------------- ENV ----------------
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("taskflow")

app = FastAPI(title="TaskFlow Board Backend")

# ---------------- CORS ----------------
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:9002",
    "http://127.0.0.1:9002",
]

frontend_origin = os.getenv("FRONTEND_ORIGIN")
if frontend_origin:
    origins.append(frontend_origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------- DATABASE INIT ----------------
from taskflow.database import Base, engine  # noqa: E402
from taskflow.auth.auth_router import User  # noqa: E402,F401
from taskflow.models.task import TaskRecord  # noqa: E402,F401
from taskflow.models.column import ColumnRecord  # noqa: E402,F401

logger.info("Checking database models...")
Base.metadata.create_all(bind=engine)
logger.info("Database ready.")

# ---------------- ROUTERS ----------------
from taskflow.auth.auth_router import router as auth_router  # noqa: E402
from taskflow.board.board_router import router as board_router  # noqa: E402
from taskflow.notification.notification_router import router as notification_router  # noqa: E402

app.include_router(auth_router, prefix="/auth")
app.include_router(board_router)
app.include_router(notification_router)


# ---------------- ROOT ----------------
@app.get("/")
def read_root():
    return {"message": "Backend running successfully"}
