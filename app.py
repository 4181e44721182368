import os
import time
from functools import lru_cache
from typing import Any, Dict, Optional
from fastapi import Depends, FastAPI, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from loguru import logger

from config import Settings, configure_logging
from context import PipelineContext, build_context
from domain.errors import InputError, PipelineError
from services.leads import lead_payload

# Initialize FastAPI app
app = FastAPI(
    title="Foreclosure Lead Pipeline",
    description="Foreclosure questionnaire intake, triage, notifications and AI call handling",
    version="1.0.0"
)


@lru_cache()
def get_context() -> PipelineContext:
    """Build the pipeline context once per process."""
    settings = Settings.from_env()
    configure_logging(settings)
    return build_context(settings)


async def _json_body(req: Request) -> Dict[str, Any]:
    try:
        payload = await req.json()
    except ValueError:
        raise InputError("Request body must be valid JSON") from None
    if not isinstance(payload, dict):
        raise InputError("Request body must be a JSON object")
    return payload


@app.post("/webhooks/foreclosure")
async def submit_foreclosure(req: Request, authorization: Optional[str] = Header(None),
                             ctx: PipelineContext = Depends(get_context)):
    """
    Questionnaire intake endpoint.

    Expected payload (all optional except situation_length, payment_status, nod):
    {
        "event_id": "client-generated id for retries",
        "contact_name": "Jane Doe",
        "contact_email": "jane@example.com",
        "missed_payments": "2",
        "nod": "yes",
        ...
    }
    """
    start_time = time.time()
    payload = await _json_body(req)
    result = await run_in_threadpool(ctx.intake.submit, authorization, payload)
    logger.info(f"Submission handled in {time.time() - start_time:.2f}s: {result.get('id', 'duplicate')}")
    return result


@app.post("/notifications")
async def send_notification(req: Request, ctx: PipelineContext = Depends(get_context)):
    """Synchronous dispatch: delivery failures are reported to the caller."""
    payload = await _json_body(req)
    if not payload.get("lead_id") or not payload.get("type"):
        raise InputError("lead_id and type are required")

    custom_data = payload.get("custom_data")
    if custom_data is not None and not isinstance(custom_data, dict):
        raise InputError("custom_data must be an object")

    result = await run_in_threadpool(
        ctx.dispatcher.dispatch,
        str(payload["lead_id"]),
        payload["type"],
        recipient_email=payload.get("recipient_email"),
        custom_data=custom_data,
    )
    return result.to_dict()


@app.post("/jobs/follow-ups")
def run_follow_ups(ctx: PipelineContext = Depends(get_context)):
    """Invoked by an external scheduler; the service has no timer of its own."""
    reminders = ctx.follow_ups.run()
    return {
        "success": True,
        "processed": len(reminders),
        "reminders": [
            {"lead_id": r.lead_id, "days_since": r.days_since, "sent": r.sent, "error": r.error}
            for r in reminders
        ],
    }


@app.post("/webhooks/voice")
async def voice_webhook(req: Request, ctx: PipelineContext = Depends(get_context)):
    """Telephony webhook; answers TwiML."""
    try:
        form = await req.form()
        params = dict(form)
    except Exception as e:
        logger.error(f"Could not read voice webhook form: {e}")
        params = {}

    body = await run_in_threadpool(ctx.voice.handle, params)
    if body == "OK":
        return PlainTextResponse("OK")
    return Response(content=body, media_type="text/xml")


@app.post("/voice-usage")
async def log_voice_usage(req: Request, authorization: Optional[str] = Header(None),
                          ctx: PipelineContext = Depends(get_context)):
    user_id = await run_in_threadpool(ctx.authenticator.user_id, authorization)
    payload = await _json_body(req)
    usage = await run_in_threadpool(ctx.voice_usage.log, user_id, payload)
    return {"success": True, "message": "Voice usage logged successfully", "usage": usage}


@app.get("/voice-usage/summary")
def voice_usage_summary(timeframe: str = "week", authorization: Optional[str] = Header(None),
                        ctx: PipelineContext = Depends(get_context)):
    user_id = ctx.authenticator.user_id(authorization)
    return {"success": True, "summary": ctx.voice_usage.summary(user_id, timeframe)}


@app.get("/analytics/calls")
def call_analytics(action: str = "dashboard", call_id: Optional[str] = None,
                   ctx: PipelineContext = Depends(get_context)):
    return {"success": True, **ctx.analytics.run(action, call_id)}


@app.get("/admin/leads/{lead_id}")
def get_lead(lead_id: str, ctx: PipelineContext = Depends(get_context)):
    """Fetch one stored submission."""
    return {"success": True, "lead": lead_payload(ctx.lead_admin.get(lead_id))}


@app.patch("/admin/leads/{lead_id}")
async def update_lead(lead_id: str, req: Request, ctx: PipelineContext = Depends(get_context)):
    """Update status (forward only), notes or assignee."""
    payload = await _json_body(req)
    result = await run_in_threadpool(ctx.lead_admin.update, lead_id, payload)
    return {"success": True, **result}


@app.get("/health")
def health(ctx: PipelineContext = Depends(get_context)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": "1.0.0",
        "services": {
            "redis": "connected" if ctx.idem.r else "disconnected",
            "email": "configured" if ctx.settings.mailerlite_api_key else "disabled",
            "crm": ctx.crm.name,
            "llm": "configured" if ctx.settings.openai_api_key else "disabled",
        }
    }


# Error handlers
@app.exception_handler(PipelineError)
async def pipeline_exception_handler(request: Request, exc: PipelineError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    # Create logs directory if it doesn't exist
    os.makedirs("logs", exist_ok=True)

    logger.info("Starting Foreclosure Lead Pipeline")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=False,
        log_level="info"
    )
