import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# ----------------------------------------------------
# 🔐 LOAD .ENV
# ----------------------------------------------------
load_dotenv(override=True)

from app.config import settings
from app.db import engine
from models import Base

# Routers
from routers import checkout, affiliate
from routers import withdrawals, wallet
from routers import admin_withdrawals, admin_settlements

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ----------------------------------------------------
# 🚀 FASTAPI APP
# ----------------------------------------------------
app = FastAPI(
    title="Marketplace Settlement Backend",
    version="1.0.0",
)

# ----------------------------------------------------
# 🌐 CORS CONFIG
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
async def options_handler(path: str, request: Request):
    return Response(status_code=204)

# ----------------------------------------------------
# 🗄️ DB INIT (DEV ONLY)
# ----------------------------------------------------
if settings.env == "dev" and settings.db_auto_create:
    Base.metadata.create_all(bind=engine)

# ----------------------------------------------------
# 🔌 ROUTERS
# ----------------------------------------------------
app.include_router(checkout.router)
app.include_router(affiliate.router)

app.include_router(withdrawals.router)
app.include_router(wallet.router)

app.include_router(admin_withdrawals.router)
app.include_router(admin_settlements.router)

# ----------------------------------------------------
# 🏠 BASE
# ----------------------------------------------------
@app.get("/")
def root():
    return {"message": "Marketplace settlement backend is up."}

@app.get("/health")
def health():
    return {"ok": True}
