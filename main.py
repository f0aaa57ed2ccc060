import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from config import Settings, configure_logging, log_startup_report
from models import PullRequestContext
from utils.security import WebhookAuthenticator

logger = logging.getLogger(__name__)

TRIGGER_ACTIONS = {"opened", "synchronize"}


def build_orchestrator(settings: Settings):
    """Construct the long-lived service objects once, at process start."""
    from agents.llm_client import GeminiClient
    from agents.review_agent import ReviewAgent
    from services.pull_request_service import PullRequestOrchestrator
    from services.review_publisher import ReviewPublisher
    from utils.github_client import GitHubClient

    github = GitHubClient(
        token=settings.github_token,
        base_url=settings.github_api_url,
        timeout=settings.http_timeout,
    )
    reviewer = ReviewAgent(
        GeminiClient(settings.gemini_api_key, model=settings.gemini_model),
        max_retries=settings.ai_max_retries,
        initial_delay=settings.ai_initial_retry_delay,
        retry_buffer=settings.ai_retry_buffer,
    )
    return PullRequestOrchestrator(
        github,
        reviewer,
        ReviewPublisher(github),
        post_error_notice=settings.post_error_notice,
    )


async def run_review(orchestrator, pr: PullRequestContext) -> None:
    """Background unit of work for one webhook event."""
    try:
        state = await orchestrator.process(pr)
        logger.info(f"Pull request {pr.slug} finished in state '{state.value}'")
    except Exception as e:
        logger.error(f"Error processing pull request {pr.slug}: {e}")


async def github_webhook(request: Request, background_tasks: BackgroundTasks):
    try:
        body = await request.body()
        authenticator: WebhookAuthenticator = request.app.state.authenticator
        signature = request.headers.get("x-hub-signature-256")
        if not authenticator.is_authentic(body, signature):
            return JSONResponse(status_code=401, content={"error": "Invalid signature"})

        try:
            payload = json.loads(body)
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})
        if not isinstance(payload, dict):
            return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})

        event = request.headers.get("x-github-event", "")
        action = payload.get("action")
        if event == "pull_request" and action in TRIGGER_ACTIONS:
            try:
                pr = PullRequestContext.from_webhook(payload)
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Malformed pull_request payload: {e}")
                return JSONResponse(status_code=400, content={"error": "Malformed pull_request payload"})
            logger.info(f"Queued review for {pr.slug} ({action})")
            background_tasks.add_task(run_review, request.app.state.orchestrator, pr)
        else:
            logger.debug(f"Ignoring event '{event}' action '{action}'")

        # Always return 200 to acknowledge receipt
        return {"status": "ok"}
    except Exception:
        logger.exception("Webhook handler error")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None, orchestrator=None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        log_startup_report(settings)
        if app.state.orchestrator is None:
            app.state.orchestrator = build_orchestrator(settings)
        yield

    app = FastAPI(title="PRisma PR Review Bot", lifespan=lifespan)
    app.state.settings = settings
    app.state.authenticator = WebhookAuthenticator(
        settings.webhook_secret,
        allow_unsigned=settings.allow_unsigned_webhooks,
    )
    app.state.orchestrator = orchestrator

    app.add_api_route("/webhook", github_webhook, methods=["POST"])

    @app.get("/")
    def root():
        return {
            "status": "ok",
            "message": "PRisma is running. Use /webhook endpoint for GitHub webhook events.",
        }

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


def run_server():
    settings = app.state.settings
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run_server()
