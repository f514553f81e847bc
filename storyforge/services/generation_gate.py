"""Authoritative gate in front of AI story generation.

:func:`handle_generation_request` runs the checks in a fixed order and stops
at the first failure:

1. authentication
2. request shape
3. remaining monthly credits
4. project ownership
5. the generation backend call
6. usage commit (credit increment, then usage log append)

Nothing is written unless step 5 succeeded. The credit increment is a single
conditional ``UPDATE`` so concurrent requests cannot push an account past its
quota; a zero-row update is reported as an exhausted quota. The usage log
append is best effort and never fails a request whose text was generated.
"""

from __future__ import annotations

from typing import Any, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..auth.tokens import load_user_from_authorization
from ..errors import (
    AccessDeniedError,
    AuthenticationError,
    BackendGenerationError,
    PersistenceWarning,
    QuotaExceededError,
)
from ..extensions import db
from ..models import Project, PromptLog, User
from .generation_request import GenerationRequest, validate_generation_payload
from .story_generator import GatewayStoryGenerator, GenerationOutput, build_system_prompt

PROMPT_TYPE = "story_generation"
_GENERATOR_CACHE_KEY = "_STORY_GENERATOR_INSTANCE"


def handle_generation_request(authorization: Optional[str], payload: Any) -> GenerationOutput:
    account = load_user_from_authorization(authorization)
    if account is None:
        raise AuthenticationError("Missing or invalid bearer credential.")

    generation_request = validate_generation_payload(payload)
    check_quota(account)
    check_project_ownership(account, generation_request.project_id)
    output = run_generation(generation_request)
    commit_usage(account, generation_request, output)
    return output


def check_quota(account: User) -> None:
    quota = int(account.monthly_chapter_credits or 0)
    consumed = int(account.credits_used_this_month or 0)
    if consumed >= quota:
        current_app.logger.info("Account %s has used %d/%d credits", account.id, consumed, quota)
        raise QuotaExceededError(quota)


def check_project_ownership(account: User, project_id: str) -> None:
    # Missing and foreign projects raise the same error.
    project = db.session.get(Project, project_id)
    if project is None or project.owner_id != account.id:
        raise AccessDeniedError(f"Account {account.id} cannot use project {project_id}")


def run_generation(generation_request: GenerationRequest) -> GenerationOutput:
    generator = _get_story_generator()
    if generator is None:
        raise BackendGenerationError("Generation backend is not configured.")

    system_prompt = build_system_prompt(generation_request.tone)
    try:
        output = generator.generate(system_prompt, generation_request.prompt)
    except Exception as exc:
        current_app.logger.warning("Story generation failed: %s", exc)
        raise BackendGenerationError("Generation backend call failed.") from exc

    if not output.text or not output.text.strip():
        current_app.logger.warning("Story generation returned an empty response")
        raise BackendGenerationError("Generation backend returned no text.")
    return output


def commit_usage(account: User, generation_request: GenerationRequest, output: GenerationOutput) -> None:
    account_id = account.id
    quota = int(account.monthly_chapter_credits or 0)

    try:
        charged = _increment_consumed(account_id)
    except SQLAlchemyError:
        db.session.rollback()
        # The text is still returned; this generation goes unbilled.
        current_app.logger.exception("Could not record credit use for account %s", account_id)
    else:
        if not charged:
            current_app.logger.info("Account %s ran out of credits while generating", account_id)
            raise QuotaExceededError(quota)

    try:
        _append_usage_log(account_id, generation_request, output)
    except PersistenceWarning as warning:
        current_app.logger.warning(
            "Usage log entry for account %s was not stored: %s", account_id, warning.__cause__ or warning
        )


def _increment_consumed(account_id: str) -> bool:
    stmt = (
        update(User)
        .where(User.id == account_id)
        .where(User.credits_used_this_month < User.monthly_chapter_credits)
        .values(credits_used_this_month=User.credits_used_this_month + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.commit()
    return result.rowcount == 1


def _append_usage_log(account_id: str, generation_request: GenerationRequest, output: GenerationOutput) -> None:
    try:
        entry = PromptLog(
            user_id=account_id,
            project_id=generation_request.project_id,
            prompt_type=PROMPT_TYPE,
            tone=generation_request.tone,
            input_prompt=generation_request.prompt,
            output_text=output.text,
            model_used=output.model,
            tokens_used=output.tokens_used,
        )
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceWarning("Usage log append failed.") from exc


def _get_story_generator() -> Optional[GatewayStoryGenerator]:  # pragma: no cover - integration point
    app = current_app
    if _GENERATOR_CACHE_KEY in app.config:
        return app.config[_GENERATOR_CACHE_KEY]

    api_key = app.config.get("LLM_GATEWAY_API_KEY")
    if not api_key:
        app.logger.error("LLM_GATEWAY_API_KEY not configured; story generation is unavailable.")
        return None

    app.logger.info("Initialising gateway generator for model: %s", app.config["GENERATION_MODEL"])
    generator = GatewayStoryGenerator(
        base_url=app.config["LLM_GATEWAY_URL"],
        api_key=api_key,
        model_name=app.config["GENERATION_MODEL"],
        timeout=app.config["GENERATION_TIMEOUT"],
    )
    app.config[_GENERATOR_CACHE_KEY] = generator
    return generator
