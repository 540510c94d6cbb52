import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse

from shortform import __version__
from shortform.core import get_settings, limiter
from shortform.core.constants import PAGE_ID_RE
from shortform.schemas import HealthResponse, WebhookAck
from shortform.services.generation import ContentAutomation, get_automation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])

AutomationFactory = Callable[[], ContentAutomation]

_ID_FIELDS = ("page_id", "id", "notion_page_id")


def get_automation_factory() -> AutomationFactory:
    """Resolved lazily inside the background task so config errors are logged, not returned."""
    return get_automation


def _webhook_rate_limit() -> str:
    return get_settings().webhook_rate_limit


def resolve_source_id(body: Any) -> Optional[str]:
    """Page id from data.id, page_id, id, notion_page_id, then any id-shaped top-level string."""
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("id"), str) and data["id"].strip():
        return data["id"].strip()
    for field in _ID_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    for value in body.values():
        if isinstance(value, str) and PAGE_ID_RE.match(value.strip()):
            return value.strip()
    return None


async def run_automation(factory: AutomationFactory, page_id: str) -> None:
    """Background task boundary: failures are logged; the caller already got its 200."""
    try:
        result = await factory().process(page_id)
    except Exception:
        logger.exception("Automation failed for source %s", page_id)
        return
    if result.status == "skipped":
        logger.info("Automation skipped for %s: %s", page_id, result.reason)


@router.get("/", response_model=HealthResponse)
async def health():
    s = get_settings()
    missing = s.missing_required()
    config = {
        "NOTION_TOKEN": "Set" if s.notion_token else "Missing",
        "EMAILS_DATABASE_ID": "Set" if s.emails_database_id else "Missing",
        "SHORTFORM_DATABASE_ID": "Set" if s.shortform_database_id else "Missing",
        "GENERATION_BACKEND": "Set" if s.generation_configured else "Missing",
        "NEWSLETTER_LINK": s.newsletter_link,
        "PROMPT_SOURCE": "Workspace page" if s.prompt_page_id else "Built-in default",
        "MODE": "multi_pass" if s.multi_pass_enabled else f"single_pass ({s.single_pass_format})",
    }
    now = datetime.now(timezone.utc)
    if missing:
        body = HealthResponse(
            message="Short-form automation is misconfigured",
            status="unhealthy",
            version=__version__,
            endpoints={"health": "GET /", "webhook": "POST /webhook"},
            config=config,
            missing=missing,
            timestamp=now,
            error=f"Missing environment variables: {', '.join(missing)}",
        )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump(mode="json"))
    return HealthResponse(
        message="Short-form automation is running",
        status="healthy",
        version=__version__,
        endpoints={"health": "GET /", "webhook": "POST /webhook"},
        config=config,
        timestamp=now,
    )


@router.post("/webhook", response_model=WebhookAck)
@limiter.limit(_webhook_rate_limit)
async def webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    factory: AutomationFactory = Depends(get_automation_factory),
):
    try:
        body = await request.json()
    except ValueError:
        body = None
    page_id = resolve_source_id(body)
    if not page_id:
        received_keys = sorted(body.keys()) if isinstance(body, dict) else []
        logger.warning("Webhook without a page id; keys=%s", received_keys)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No page ID found in webhook payload", "received_keys": received_keys},
        )

    logger.info("Webhook received for page %s", page_id)
    background_tasks.add_task(run_automation, factory, page_id)
    return WebhookAck(
        message="Webhook received, processing started",
        page_id=page_id,
        timestamp=datetime.now(timezone.utc),
    )
