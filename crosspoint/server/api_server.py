"""FastAPI server exposing the Crosspoint session to the browser page."""

from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
import logging
from typing import Iterator
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
import uvicorn

from crosspoint.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from crosspoint.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    SESSION_COOKIE,
    SESSION_COOKIE_MAX_AGE_SECONDS,
)
from crosspoint.core.errors import (
    FatalStateError,
    NotAuthenticatedError,
    QuestionWriteError,
    UnknownCategoryError,
    VerificationWriteError,
)
from crosspoint.core.markdown_renderer import renderer
from crosspoint.core.session_controller import SessionController, View
from crosspoint.core.session_registry import SessionRegistry
from crosspoint.server.page import render_page

logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (FatalStateError, 503),
    (NotAuthenticatedError, 401),
    (UnknownCategoryError, 404),
    (QuestionWriteError, 502),
    (VerificationWriteError, 502),
    (ValueError, 422),
    (RuntimeError, 409),
)


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except tuple(error for error, _ in _STATUS_BY_ERROR) as exc:
        status = next(code for error, code in _STATUS_BY_ERROR if isinstance(exc, error))
        raise HTTPException(status_code=status, detail=str(exc)) from exc


def _ensure_session_id(request: Request, response: Response) -> str:
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        return session_id
    session_id = uuid4().hex
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        max_age=SESSION_COOKIE_MAX_AGE_SECONDS,
        samesite="lax",
        httponly=True,
    )
    return session_id


class QuestionPayload(BaseModel):
    """Payload schema for a posted question."""

    title: str
    body: str
    category: str


class ViewPayload(BaseModel):
    view: View


class QuizStartPayload(BaseModel):
    category: str


class OptionPayload(BaseModel):
    option: str


def _get_controller_dependency(registry: SessionRegistry):
    def dependency(request: Request, response: Response) -> SessionController:
        session_id = _ensure_session_id(request, response)
        return registry.get_or_create(session_id, origin=str(request.base_url))

    return dependency


def create_api_app(registry: SessionRegistry) -> FastAPI:
    """Create a FastAPI application wired to the provided session registry."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down; closing sessions")
        registry.close_all()

    app = FastAPI(
        title=f"{APP_NAME} API",
        description=APP_ABOUT_TEXT,
        version=APP_VERSION,
        lifespan=lifespan,
    )
    controller_dep = _get_controller_dependency(registry)

    @app.get("/", response_class=HTMLResponse)
    def serve_page(request: Request, response: Response) -> str:
        _ensure_session_id(request, response)
        return render_page()

    @app.get("/state")
    def get_state(controller: SessionController = Depends(controller_dep)) -> dict[str, object]:
        return controller.snapshot()

    @app.get("/categories")
    def get_categories(controller: SessionController = Depends(controller_dep)) -> list[str]:
        return controller.quiz_bank.postable_categories()

    @app.get("/questions")
    def get_questions(
        controller: SessionController = Depends(controller_dep),
    ) -> list[dict[str, object]]:
        if controller.fatal_error is not None:
            raise HTTPException(status_code=503, detail=controller.fatal_error)
        questions = []
        for question in controller.questions():
            payload = question.to_dict()
            payload["body_html"] = renderer.render_fragment(question.body)
            payload["can_answer"] = controller.can_answer(question.category)
            questions.append(payload)
        return questions

    @app.post("/questions", status_code=201)
    def post_question(
        payload: QuestionPayload,
        controller: SessionController = Depends(controller_dep),
    ) -> dict[str, object]:
        with _http_errors():
            question_id = controller.post_question(payload.title, payload.body, payload.category)
        return {"id": question_id}

    @app.post("/view")
    def set_view(
        payload: ViewPayload,
        controller: SessionController = Depends(controller_dep),
    ) -> dict[str, object]:
        with _http_errors():
            controller.show_view(payload.view)
        return {"view": controller.view.value}

    @app.get("/quiz")
    def get_quiz(controller: SessionController = Depends(controller_dep)) -> dict[str, object]:
        if controller.fatal_error is not None:
            raise HTTPException(status_code=503, detail=controller.fatal_error)
        return controller.quiz_snapshot()

    @app.post("/quiz/start", status_code=201)
    def start_quiz(
        payload: QuizStartPayload,
        controller: SessionController = Depends(controller_dep),
    ) -> dict[str, object]:
        with _http_errors():
            session = controller.start_quiz(payload.category)
        return session.to_dict()

    @app.post("/quiz/select")
    def select_option(
        payload: OptionPayload,
        controller: SessionController = Depends(controller_dep),
    ) -> dict[str, object]:
        with _http_errors():
            accepted = controller.select_option(payload.option)
        return {"accepted": accepted}

    @app.post("/quiz/submit")
    def submit_answer(controller: SessionController = Depends(controller_dep)) -> dict[str, object]:
        with _http_errors():
            correct = controller.submit_answer()
        return {"correct": correct}

    @app.post("/quiz/cancel")
    def cancel_quiz(controller: SessionController = Depends(controller_dep)) -> dict[str, object]:
        with _http_errors():
            cancelled = controller.cancel_quiz()
        return {"cancelled": cancelled}

    @app.delete("/banners/{area}")
    def dismiss_banner(
        area: str,
        controller: SessionController = Depends(controller_dep),
    ) -> dict[str, object]:
        if not controller.dismiss_banner(area):
            raise HTTPException(status_code=404, detail=f"No banner for {area}.")
        return {"dismissed": area}

    @app.post("/sign-out")
    def sign_out(request: Request, response: Response) -> dict[str, bool]:
        session_id = request.cookies.get(SESSION_COOKIE)
        controller = registry.get(session_id) if session_id else None
        if controller is None:
            raise HTTPException(status_code=404, detail="No active session.")
        with _http_errors():
            controller.sign_out()
        registry.close(session_id)
        response.delete_cookie(SESSION_COOKIE)
        return {"signed_out": True}

    return app


def run_api_server(
    registry: SessionRegistry,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API in the foreground until interrupted."""
    app = create_api_app(registry)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
