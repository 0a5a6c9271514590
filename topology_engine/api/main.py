import logging

from fastapi import FastAPI
from topology_engine.api.routes.topologies import router as topologies_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Topology Engine API")

@app.get("/health")
def health():
    return {"status": "ok"}

app.include_router(topologies_router)


if __name__ == "__main__":
    import uvicorn

    from topology_engine.container import settings

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.info("Starting Topology Engine API on 0.0.0.0:8000")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
