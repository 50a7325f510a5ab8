import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from freshdock.api.v1 import index
from freshdock.api.v1 import auth
from freshdock.api.v1 import businesses
from freshdock.api.v1 import connections
from freshdock.api.v1 import dispatches
from freshdock.api.v1 import growers
from freshdock.api.v1 import intake_links
from freshdock.api.v1 import public
from freshdock.api.v1 import templates

from freshdock.core.config import settings
from freshdock.core.logging import setup_logging

setup_logging()

app = FastAPI(title=settings.app_name)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(
    businesses.router, prefix="/api/v1/businesses", tags=["Businesses"])
app.include_router(
    connections.router, prefix="/api/v1/connections", tags=["Connections"])
app.include_router(
    dispatches.router, prefix="/api/v1/dispatches", tags=["Dispatches"])
app.include_router(
    templates.router, prefix="/api/v1/templates", tags=["Templates"])
app.include_router(
    intake_links.router, prefix="/api/v1/intake-links", tags=["Intake Links"])
app.include_router(growers.router, prefix="/api/v1/growers", tags=["Growers"])
app.include_router(public.router, prefix="/api/v1/public", tags=["Public"])

# Static files serving (uploaded photos and con notes)
app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
