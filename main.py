from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from db import init_db
from tracker.config import LOG_LEVEL
from tracker.routes import router as tracker_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logging.info("App starting")

app = FastAPI(title="Program Tracker")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()

app.include_router(tracker_router)


@app.get("/")
def root():
    return {"status": "ok", "service": "program-tracker"}
