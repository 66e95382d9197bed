from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from edusocial.api import admin_routes, function_routes, routes
from edusocial.config import ALLOWED_ORIGINS
from edusocial.middleware.logging_middleware import LoggingMiddleware
from edusocial.middleware.user_blocking_middleware import UserBlockingMiddleware
from edusocial.services import post_service
from edusocial.services.realtime_service import change_channel, consume_changes, feed_cache
import asyncio
import logging

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="EduSocial API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(UserBlockingMiddleware)
app.add_middleware(LoggingMiddleware)


@app.on_event("startup")
async def startup_event():
    logger.info("EduSocial API starting up...")
    queue = await change_channel.subscribe()
    app.state.change_queue = queue
    app.state.change_consumer = asyncio.create_task(
        consume_changes(queue, feed_cache, refresh=lambda: post_service.fetch_feed(None))
    )


@app.on_event("shutdown")
async def shutdown_event():
    consumer = getattr(app.state, "change_consumer", None)
    if consumer is not None:
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
    queue = getattr(app.state, "change_queue", None)
    if queue is not None:
        await change_channel.unsubscribe(queue)
    logger.info("EduSocial API shut down")


app.include_router(routes.router)
app.include_router(admin_routes.router)
app.include_router(function_routes.router)


@app.get("/")
def root():
    return {"message": "Welcome to the EduSocial API"}
