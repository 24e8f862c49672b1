"""FastAPI application for running skills against an in-process graph."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.graph_routes import router as graph_router
from server.skill_routes import router as skill_router
from skillgraph.config import get_settings

settings = get_settings()
logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title="Skillgraph API",
    description="API server for skill execution and validation over a node graph",
    version="0.1.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# include routes
app.include_router(skill_router, prefix="/api")
app.include_router(graph_router, prefix="/api")


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "0.1.0",
        "endpoints": {
            "skills": "/api/skills",
            "execute": "/api/skills/{skill_id}/execute",
            "intents": "/api/intents",
            "graph": "/api/graph",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
