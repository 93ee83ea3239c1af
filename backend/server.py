from fastapi import FastAPI, APIRouter
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from database import engine, Base
from routers import (
    auth_delegate,
    committees,
    contact,
    dashboard,
    gallery,
    mailer,
    payments,
    popups,
    pricing,
    public,
    registrations,
    users,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Kumaraguru MUN API", version="1.0.0")
api_router = APIRouter(prefix="/api")

for module in (
    public,
    auth_delegate,
    registrations,
    committees,
    users,
    pricing,
    payments,
    contact,
    popups,
    gallery,
    mailer,
    dashboard,
):
    api_router.include_router(module.router)

# Include router and add middleware
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)
