import logging
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Base, SessionLocal, engine, ensure_availability_schema, ensure_consultation_schema
from backend.models import availability, consultation, user  # noqa: F401
from backend.routes import availability_routes, consultation_routes
from backend.services.expiration import ExpirationSweeper
from backend.services.notifications import build_notifier

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(title='Hinahon Consultation Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

sweeper = ExpirationSweeper(
    session_factory=SessionLocal,
    interval_seconds=config.SWEEP_INTERVAL_SECONDS,
    orphan_after=timedelta(seconds=config.ORPHAN_RESERVATION_SECONDS),
    notifier=build_notifier(),
)


@app.on_event('startup')
async def initialize() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_consultation_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')
        return

    if config.SWEEP_ENABLED:
        sweeper.start()


@app.on_event('shutdown')
async def shutdown() -> None:
    await sweeper.stop()


@app.get('/')
def root():
    return {'status': 'Consultation Scheduling API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(consultation_routes.router, prefix='/consultations')
