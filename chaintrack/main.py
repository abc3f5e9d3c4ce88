# chaintrack/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chaintrack.config import settings
from chaintrack.database import init_db
from chaintrack.errors import ChainTrackError
from chaintrack.services import authenticity
from chaintrack.utils.logging_setup import setup_logging

# Router imports
from chaintrack.routes.auth import router as auth_router
from chaintrack.routes.products import router as products_router
from chaintrack.routes.units import router as units_router
from chaintrack.routes.stock import router as stock_router
from chaintrack.routes.orders import router as orders_router
from chaintrack.routes.cart import router as cart_router
from chaintrack.routes.verify import router as verify_router
from chaintrack.routes.logs import router as logs_router

logger = logging.getLogger(__name__)

# Initialisation
setup_logging(settings)
init_db()
authenticity.init_secret(settings.AUTHENTICITY_SECRET)

app = FastAPI(title="ChainTrack API", version="1.0.0")

# CORS: local frontend plus the deployed one, if configured
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors become JSON with the status code of their class
@app.exception_handler(ChainTrackError)
async def chaintrack_error_handler(request: Request, exc: ChainTrackError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Router registration
app.include_router(auth_router)
app.include_router(products_router)
app.include_router(units_router)
app.include_router(stock_router)
app.include_router(orders_router)
app.include_router(cart_router)
app.include_router(verify_router)
app.include_router(logs_router)

@app.get("/")
def read_root():
    return {"message": "ChainTrack API is running"}


def run():
    import uvicorn
    uvicorn.run("chaintrack.main:app", host="0.0.0.0", port=8000)
