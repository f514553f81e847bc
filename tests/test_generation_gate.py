import logging
import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storyforge import create_app
from storyforge.auth.tokens import issue_access_token
from storyforge.config import TestConfig
from storyforge.extensions import db
from storyforge.models import Project, PromptLog, User
from storyforge.services import generation_gate
from storyforge.services.story_generator import GenerationOutput

GENERIC_FAILURE = {"error": "An error occurred while generating content"}


class DummyGenerator:
    def __init__(self, text="The lighthouse keeper counted the waves.", error=None, on_generate=None):
        self.text = text
        self.error = error
        self.on_generate = on_generate
        self.calls = []

    def generate(self, system_prompt, prompt):
        self.calls.append((system_prompt, prompt))
        if self.on_generate is not None:
            self.on_generate()
        if self.error is not None:
            raise self.error
        return GenerationOutput(text=self.text, model="test/model-1", tokens_used=42)


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    app.config["WTF_CSRF_ENABLED"] = False
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


def _make_user(email, quota=5, used=4):
    user = User(
        email=email,
        display_name=email.split("@")[0],
        subscription_tier="free",
        monthly_chapter_credits=quota,
        credits_used_this_month=used,
    )
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app_instance):
    return _make_user("writer@example.com")


@pytest.fixture
def other_user(app_instance):
    return _make_user("rival@example.com")


@pytest.fixture
def project(user):
    project = Project(title="Tide Song", owner_id=user.id)
    db.session.add(project)
    db.session.commit()
    return project


@pytest.fixture
def foreign_project(other_user):
    project = Project(title="Not Yours", owner_id=other_user.id)
    db.session.add(project)
    db.session.commit()
    return project


@pytest.fixture
def generator(monkeypatch):
    dummy = DummyGenerator()
    monkeypatch.setattr(generation_gate, "_get_story_generator", lambda: dummy)
    return dummy


def _headers(user):
    return {"Authorization": f"Bearer {issue_access_token(user)}"}


def _payload(project_id, **overrides):
    payload = {
        "prompt": "Continue the storm scene at the lighthouse.",
        "tone": "gothic",
        "projectId": project_id,
        "chapterId": str(uuid.uuid4()),
    }
    payload.update(overrides)
    return payload


def _consumed(user_id):
    db.session.expire_all()
    return db.session.get(User, user_id).credits_used_this_month


def test_successful_generation_consumes_one_credit_and_logs(client, user, project, generator):
    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 200
    assert response.get_json() == {"text": "The lighthouse keeper counted the waves."}
    assert _consumed(user.id) == 5

    entries = PromptLog.query.all()
    assert len(entries) == 1
    entry = entries[0]
    assert entry.user_id == user.id
    assert entry.project_id == project.id
    assert entry.input_prompt == "Continue the storm scene at the lighthouse."
    assert entry.output_text == "The lighthouse keeper counted the waves."
    assert entry.model_used == "test/model-1"
    assert entry.tone == "gothic"
    assert entry.prompt_type == "story_generation"
    assert entry.tokens_used == 42


def test_system_instruction_depends_only_on_tone(client, user, project, generator):
    client.post("/api/generate-story", json=_payload(project.id, tone="noir"), headers=_headers(user))

    system_prompt, prompt = generator.calls[0]
    assert "noir-style storytelling" in system_prompt
    assert "storm" not in system_prompt
    assert prompt == "Continue the storm scene at the lighthouse."


def test_exhausted_quota_is_rejected_without_side_effects(client, project, user, generator):
    user.credits_used_this_month = 5
    db.session.commit()

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 403
    body = response.get_json()
    assert body["error"] == "Credit limit reached"
    assert "5 credits" in body["message"]
    assert _consumed(user.id) == 5
    assert generator.calls == []
    assert PromptLog.query.count() == 0


def test_foreign_and_missing_projects_are_indistinguishable(client, user, foreign_project, generator):
    foreign = client.post("/api/generate-story", json=_payload(foreign_project.id), headers=_headers(user))
    missing = client.post("/api/generate-story", json=_payload(str(uuid.uuid4())), headers=_headers(user))

    assert foreign.status_code == missing.status_code == 403
    assert foreign.get_json() == missing.get_json() == {"error": "Project not found or access denied"}
    assert generator.calls == []
    assert _consumed(user.id) == 4
    assert PromptLog.query.count() == 0


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer not-a-token"},
        {"Authorization": "Basic d3JpdGVyOnB3"},
    ],
)
def test_missing_or_invalid_credentials_are_unauthorized(client, project, generator, headers):
    response = client.post("/api/generate-story", json=_payload(project.id), headers=headers)

    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}
    assert generator.calls == []


def test_expired_token_is_unauthorized(app_instance, client, user, project, generator):
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": user.id, "iat": issued, "exp": issued + timedelta(hours=1)},
        app_instance.config["SECRET_KEY"],
        algorithm="HS256",
    )

    response = client.post(
        "/api/generate-story",
        json=_payload(project.id),
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 401


def test_authentication_is_checked_before_validation(client, generator):
    response = client.post("/api/generate-story", json={"prompt": ""})

    assert response.status_code == 401


def test_validation_is_checked_before_quota(client, user, project, generator):
    user.credits_used_this_month = 5
    db.session.commit()

    response = client.post("/api/generate-story", json=_payload(project.id, prompt="  "), headers=_headers(user))

    assert response.status_code == 400


def test_prompt_of_exactly_2000_characters_is_accepted(client, user, project, generator):
    prompt = "  " + "a" * 2000 + "\n"

    response = client.post("/api/generate-story", json=_payload(project.id, prompt=prompt), headers=_headers(user))

    assert response.status_code == 200
    assert generator.calls[0][1] == "a" * 2000


def test_prompt_of_2001_characters_is_rejected(client, user, project, generator):
    response = client.post(
        "/api/generate-story",
        json=_payload(project.id, prompt="a" * 2001),
        headers=_headers(user),
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "Invalid request data"
    assert [item["field"] for item in body["details"]] == ["prompt"]
    assert generator.calls == []


def test_whitespace_prompt_is_rejected_before_backend(client, user, project, generator):
    response = client.post("/api/generate-story", json=_payload(project.id, prompt=" \n\t "), headers=_headers(user))

    assert response.status_code == 400
    assert response.get_json()["details"][0]["field"] == "prompt"
    assert generator.calls == []
    assert PromptLog.query.count() == 0
    assert _consumed(user.id) == 4


def test_validation_reports_every_offending_field(client, user, project, generator):
    response = client.post(
        "/api/generate-story",
        json=_payload(project.id, tone="x" * 51, chapterId="chapter-one"),
        headers=_headers(user),
    )

    assert response.status_code == 400
    fields = {item["field"] for item in response.get_json()["details"]}
    assert fields == {"tone", "chapterId"}


def test_non_json_body_is_a_validation_error(client, user, generator):
    response = client.post(
        "/api/generate-story",
        data="prompt=hello",
        content_type="application/x-www-form-urlencoded",
        headers=_headers(user),
    )

    assert response.status_code == 400
    assert response.get_json()["details"] == [{"field": "body", "message": "Expected a JSON object."}]


def test_backend_failure_leaves_counter_and_log_untouched(monkeypatch, client, user, project):
    failing = DummyGenerator(error=RuntimeError("upstream 502: internal-host-17 exploded"))
    monkeypatch.setattr(generation_gate, "_get_story_generator", lambda: failing)

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 500
    assert response.get_json() == GENERIC_FAILURE
    assert b"internal-host-17" not in response.data
    assert _consumed(user.id) == 4
    assert PromptLog.query.count() == 0


def test_empty_generation_is_a_backend_failure(monkeypatch, client, user, project):
    monkeypatch.setattr(generation_gate, "_get_story_generator", lambda: DummyGenerator(text="   "))

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 500
    assert _consumed(user.id) == 4


def test_unconfigured_backend_is_a_backend_failure(monkeypatch, client, user, project):
    monkeypatch.setattr(generation_gate, "_get_story_generator", lambda: None)

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 500
    assert response.get_json() == GENERIC_FAILURE


def test_log_append_failure_does_not_fail_request(monkeypatch, client, user, project, generator, caplog):
    def exploding_log(**_):
        raise SQLAlchemyError("prompts_log is read-only")

    monkeypatch.setattr(generation_gate, "PromptLog", exploding_log)

    with caplog.at_level(logging.WARNING):
        response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 200
    assert response.get_json()["text"] == generator.text
    assert _consumed(user.id) == 5
    assert PromptLog.query.count() == 0
    assert any("Usage log entry" in record.getMessage() for record in caplog.records)


def test_increment_failure_still_returns_text_and_logs_usage(monkeypatch, client, user, project, generator):
    def broken_increment(_account_id):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(generation_gate, "_increment_consumed", broken_increment)

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 200
    assert _consumed(user.id) == 4
    assert PromptLog.query.count() == 1


def test_concurrent_spend_is_detected_at_commit(monkeypatch, client, user, project):
    user_id = user.id

    def competing_request_finishes():
        db.session.execute(
            update(User).where(User.id == user_id).values(credits_used_this_month=5)
        )
        db.session.commit()

    racing = DummyGenerator(on_generate=competing_request_finishes)
    monkeypatch.setattr(generation_gate, "_get_story_generator", lambda: racing)

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 403
    assert response.get_json()["error"] == "Credit limit reached"
    assert _consumed(user_id) == 5
    assert PromptLog.query.count() == 0


def test_unexpected_errors_map_to_generic_failure(monkeypatch, client, user, project, generator):
    def broken_ownership(*_):
        raise KeyError("projects.owner_id")

    monkeypatch.setattr(generation_gate, "check_project_ownership", broken_ownership)

    response = client.post("/api/generate-story", json=_payload(project.id), headers=_headers(user))

    assert response.status_code == 500
    assert response.get_json() == GENERIC_FAILURE
    assert b"owner_id" not in response.data


def test_subscription_endpoint_reports_counters(client, user):
    response = client.get("/api/subscription", headers=_headers(user))

    assert response.status_code == 200
    body = response.get_json()
    assert body["tier"] == "free"
    assert body["monthlyChapterCredits"] == 5
    assert body["creditsUsedThisMonth"] == 4
    assert body["chapterCreditsRemaining"] == 1


def test_subscription_endpoint_requires_authentication(client):
    response = client.get("/api/subscription")

    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}
