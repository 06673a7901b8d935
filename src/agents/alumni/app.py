import asyncio
import logging

from fastapi import FastAPI, HTTPException

from common.logging import setup_logging

from .config import settings
from .orchestrator import InboundMessage, TurnOrchestrator, build_orchestrator
from .wa_loop import wa_loop

log = logging.getLogger(__name__)


def build_app(orchestrator: TurnOrchestrator | None = None, *, kafka_enabled: bool | None = None) -> FastAPI:
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(title=f"{settings.AGENT_NAME}-agent")
    app.state.orchestrator = orchestrator or build_orchestrator(settings)
    app.state.t = None
    run_kafka = settings.KAFKA_ENABLED if kafka_enabled is None else kafka_enabled

    @app.get("/healthz")
    def healthz(): return {"ok": True}

    @app.post("/agents/alumni/messages")
    async def post_message(msg: InboundMessage):
        if not msg.sender_id.strip() or not msg.text.strip():
            raise HTTPException(status_code=422, detail="sender_id and text are required")
        result = await app.state.orchestrator.handle(msg)
        return {"reply": result.reply, "duplicate": result.duplicate, "denied": result.denied}

    @app.delete("/agents/alumni/sessions/{user_id}")
    async def reset_session(user_id: str):
        await app.state.orchestrator.reset_session(user_id)
        return {"ok": True}

    @app.get("/agents/alumni/users/{user_id}/insights")
    async def insights(user_id: str):
        data = await app.state.orchestrator.insights(user_id)
        if data is None:
            raise HTTPException(status_code=404, detail="unknown user")
        return data

    @app.on_event("startup")
    async def startup():
        if run_kafka:
            app.state.t = asyncio.create_task(wa_loop(app.state.orchestrator))
        else:
            log.info("[APP] Kafka disabled, serving HTTP only")

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.t:
            app.state.t.cancel()

    return app
