import logging

from fastapi import FastAPI

from .routers import availability, reservations
from .utils.request_id import request_id_middleware

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="Exam Booking API")
app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(availability.router)
app.include_router(reservations.router)
