from fastapi import FastAPI, APIRouter
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from routes.assignment_routes import router as assignment_router
from routes.student_routes import router as student_router
from services.submission_store import SubmissionStore
from utils.config import CORS_ORIGINS, LOG_LEVEL, PORT
from utils.database import client, db
from version import BUILD_VERSION

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Application starting up...")
    try:
        await SubmissionStore(db).ensure_indexes()
    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}")
    yield
    logger.info("Application shutting down...")
    client.close()


app = FastAPI(lifespan=lifespan)
api_router = APIRouter(prefix="/api")


# Health check endpoint (required for deployment)
@app.get("/health")
async def health_check():
    """Health check endpoint for deployment system"""
    return {
        "status": "healthy",
        "service": "workbook-submissions",
        "version": BUILD_VERSION
    }


@app.get("/")
async def root():
    return {"message": "Workbook Submissions API", "status": "running"}


api_router.include_router(assignment_router)
api_router.include_router(student_router)

app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
