"""FastAPI app entrypoint."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from splitbill.config import ALLOWED_ORIGINS, LOG_LEVEL
from splitbill.database import engine, Base, SessionLocal
from splitbill.errors import InvalidExpenseError
from splitbill.routers import auth, groups, expenses, categories
from splitbill.services.categories import seed_default_categories

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)
with SessionLocal() as _db:
    seed_default_categories(_db)

app = FastAPI(
    title="Split Bill API",
    description="Share expenses in groups and see who owes whom.",
    version="1.0.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidExpenseError)
def invalid_expense_handler(request: Request, exc: InvalidExpenseError):
    logger.info("Rejected expense on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api")
app.include_router(groups.router, prefix="/api")
app.include_router(expenses.router, prefix="/api")
app.include_router(categories.router, prefix="/api")


@app.get("/")
def root():
    return {"message": "Split Bill API", "docs": "/docs"}
