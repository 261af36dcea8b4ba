import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from cadence.application.queue_builder import (
    QueueConfig,
    calculate_workload,
    generate_daily_queue,
    optimize_queue,
)
from cadence.application.registry import (
    AlgorithmRegistry,
    build_default_registry,
    describe_config_errors,
)
from cadence.application.utils.time import ensure_aware, utc_now
from cadence.consts import VERSION
from cadence.domain.errors import InvalidItemDataError, UnknownAlgorithmError
from cadence.domain.models import Response
from cadence.infrastructure.codec import item_from_record, item_to_record

logger = logging.getLogger("cadence.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Spaced repetition scheduling over HTTP.",
    version=VERSION,
    lifespan=lifespan,
)
app.state.registry = build_default_registry()


def _registry(request: Request) -> AlgorithmRegistry:
    return request.app.state.registry


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class AlgorithmInfo(BaseModel):
    name: str
    display_name: str
    description: str
    version: str
    features: list[str]
    complexity: str
    default_config: dict[str, Any]


@app.get("/algorithms", response_model=list[AlgorithmInfo])
async def list_algorithms(request: Request):
    return [
        AlgorithmInfo(
            name=d.name,
            display_name=d.display_name,
            description=d.description,
            version=d.version,
            features=list(d.features),
            complexity=d.complexity.value,
            default_config=d.default_config,
        )
        for d in _registry(request).available_algorithms()
    ]


@app.post("/algorithms/{name}/validate")
async def validate_algorithm_config(name: str, config: dict[str, Any], request: Request):
    result = _registry(request).validate_config(name, config)
    return {"valid": result.valid, "errors": result.errors, "missing_keys": result.missing_keys}


@app.get("/algorithms/compare")
async def compare_algorithms(first: str, second: str, request: Request):
    try:
        comparison = _registry(request).compare_algorithms(first, second)
    except UnknownAlgorithmError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {
        "complexity": comparison.complexity,
        "unique_to_first": comparison.features.unique_to_first,
        "unique_to_second": comparison.features.unique_to_second,
        "common": comparison.features.common,
        "recommendation": comparison.recommendation,
    }


class ReviewRequest(BaseModel):
    item: dict[str, Any]
    response: Response
    # If None, the algorithm that wrote the item's data is used.
    algorithm: str | None = None
    config: dict[str, Any] | None = None
    now: datetime | None = None


class ReviewResponse(BaseModel):
    item: dict[str, Any]
    graduated_today: bool


@app.post("/review", response_model=ReviewResponse)
async def review_item(req: ReviewRequest, request: Request):
    """Schedule one item after one response. Stateless."""
    registry = _registry(request)
    try:
        item = item_from_record(req.item)
        if req.algorithm:
            strategy = registry.create_algorithm(req.algorithm, req.config)
        else:
            strategy = registry.create_for_item(item, req.config)
        moment = ensure_aware(req.now or utc_now())
        update = strategy.calculate_next_review(item, req.response, moment)
    except UnknownAlgorithmError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidItemDataError as e:
        logger.warning(f"Rejected review request: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValidationError as e:
        errors = describe_config_errors(e)
        logger.warning(f"Rejected review config: {errors}")
        raise HTTPException(status_code=400, detail=errors) from e

    return ReviewResponse(
        item=item_to_record(item.apply(update, moment)),
        graduated_today=update.graduated_today,
    )


class QueueRequest(BaseModel):
    items: list[dict[str, Any]]
    now: datetime | None = None
    max_new_cards_per_day: int | None = None
    max_review_cards_per_day: int | None = None
    learning_ahead_limit: int | None = None
    review_ahead_limit: int | None = None
    max_minutes: float | None = None

    def queue_config(self) -> QueueConfig:
        overrides = {
            "max_new_cards_per_day": self.max_new_cards_per_day,
            "max_review_cards_per_day": self.max_review_cards_per_day,
            "learning_ahead_limit": self.learning_ahead_limit,
            "review_ahead_limit": self.review_ahead_limit,
        }
        return QueueConfig(**{k: v for k, v in overrides.items() if v is not None})


class QueueResponse(BaseModel):
    new_cards: list[str]
    learning_cards: list[str]
    review_cards: list[str]
    total_cards: int
    estimated_study_time: int


@app.post("/queue", response_model=QueueResponse)
async def build_queue(req: QueueRequest):
    try:
        items = [item_from_record(record) for record in req.items]
    except InvalidItemDataError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    queue = generate_daily_queue(items, req.queue_config(), req.now)
    if req.max_minutes is not None:
        queue = optimize_queue(queue, req.max_minutes)

    return QueueResponse(
        new_cards=[item.id for item in queue.new_cards],
        learning_cards=[item.id for item in queue.learning_cards],
        review_cards=[item.id for item in queue.review_cards],
        total_cards=queue.total_cards,
        estimated_study_time=queue.estimated_study_time,
    )


class WorkloadRequest(QueueRequest):
    days: int = Field(default=7, ge=1, le=365)


class WorkloadDay(BaseModel):
    date: date
    new_cards: int
    learning_cards: int
    review_cards: int
    total_cards: int
    estimated_study_time: int


@app.post("/workload", response_model=list[WorkloadDay])
async def workload(req: WorkloadRequest):
    try:
        items = [item_from_record(record) for record in req.items]
    except InvalidItemDataError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    days = calculate_workload(items, req.queue_config(), req.days, req.now)
    return [WorkloadDay(**asdict(day)) for day in days]
