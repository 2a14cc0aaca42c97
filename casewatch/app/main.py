import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from casewatch.app.api.config import cors_origins, log_level
from casewatch.app.api.routes.alerts import router as alerts_router
from casewatch.app.api.routes.cases import router as cases_router

logging.basicConfig(
    level=log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


app = FastAPI(title="Casewatch API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(alerts_router)
app.include_router(cases_router)
