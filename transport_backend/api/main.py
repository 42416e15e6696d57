"""
FastAPI app for the transport backend.

Run: uvicorn transport_backend.api.main:app --reload
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from transport_backend.api.router import router
from transport_backend.application.config import CORS_ORIGINS, configure_logging, load_settings
from transport_backend.application.wiring import build_store, build_whatsapp
from transport_backend.infrastructure.notifier import Notifier, StoreNotifier
from transport_backend.infrastructure.store import ResourceStore
from transport_backend.infrastructure.whatsapp import WhatsAppSender


def create_app(
    store: Optional[ResourceStore] = None,
    notifier: Optional[Notifier] = None,
    whatsapp: Optional[WhatsAppSender] = None,
) -> FastAPI:
    """Collaborators not passed in are built from the environment."""
    settings = load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Transport API",
        description="Route lifecycle: assignment, safety gate, stops and proof of delivery",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store if store is not None else build_store(settings)
    app.state.notifier = notifier if notifier is not None else StoreNotifier(app.state.store)
    app.state.whatsapp = whatsapp if whatsapp is not None else build_whatsapp(settings)

    @app.get("/")
    def root():
        return {"message": "Transport API", "status": "ok"}

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("transport_backend.api.main:app", host="0.0.0.0", port=8000, reload=False)
