from fastapi import FastAPI
from fastapi.responses import JSONResponse

from momentum.sandbox.repository import BackendRepository, seed_repository
from momentum.sandbox.routes import ai_reports, auth, blockers


def create_app(repository: BackendRepository | None = None) -> FastAPI:
    """Build the reference API; without a repository the demo organisation is loaded."""
    app = FastAPI(title="Momentum Reference API", version="0.1.0")
    app.state.repository = repository if repository is not None else seed_repository()

    app.include_router(auth.router, prefix="/api")
    app.include_router(auth.team_router, prefix="/api")
    app.include_router(blockers.router, prefix="/api")
    app.include_router(ai_reports.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Momentum Reference API",
                "docs": "/docs",
                "health": "/api/auth/me",
            }
        )

    return app
