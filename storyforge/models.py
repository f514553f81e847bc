from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager


def _new_id() -> str:
    return str(uuid.uuid4())


SUBSCRIPTION_TIERS = ("free", "pro", "studio")
PROJECT_STATUSES = ("active", "archived", "completed")
CHARACTER_ROLES = ("protagonist", "antagonist", "supporting", "minor")


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)

    subscription_tier = db.Column(db.String(20), nullable=False, default="free")
    monthly_chapter_credits = db.Column(db.Integer, nullable=False, default=5)
    monthly_image_credits = db.Column(db.Integer, nullable=False, default=30)
    credits_used_this_month = db.Column(db.Integer, nullable=False, default=0)
    images_used_this_month = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    projects = db.relationship("Project", backref="owner", lazy=True, cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "subscription_tier": self.subscription_tier,
        }

    def __repr__(self) -> str:  # pragma: no cover - repr for debugging
        return f"<User {self.email}>"


@login_manager.user_loader
def load_user(user_id: str) -> Optional["User"]:
    return db.session.get(User, user_id)


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    genre = db.Column(db.String(80), nullable=True)
    tone = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    chapters = db.relationship(
        "Chapter",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Chapter.chapter_number",
    )
    characters = db.relationship(
        "Character",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Character.name",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "genre": self.genre,
            "tone": self.tone,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Project {self.title} ({self.status})>"


class Chapter(db.Model):
    __tablename__ = "chapters"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=False, index=True)
    chapter_number = db.Column(db.Integer, nullable=False, default=1)
    title = db.Column(db.String(150), nullable=False)
    content = db.Column(db.Text, nullable=True)
    word_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "chapter_number": self.chapter_number,
            "title": self.title,
            "content": self.content or "",
            "word_count": self.word_count,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Chapter {self.chapter_number}: {self.title}>"


class Character(db.Model):
    __tablename__ = "characters"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(20), nullable=True)
    age = db.Column(db.Integer, nullable=True)
    appearance = db.Column(db.Text, nullable=True)
    backstory = db.Column(db.Text, nullable=True)
    personality = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "role": self.role,
            "age": self.age,
            "appearance": self.appearance,
            "backstory": self.backstory,
            "personality": self.personality,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Character {self.name}>"


class PromptLog(db.Model):
    """Append-only record of one successful generation."""

    __tablename__ = "prompts_log"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=True, index=True)
    prompt_type = db.Column(db.String(50), nullable=False)
    tone = db.Column(db.String(50), nullable=True)
    input_prompt = db.Column(db.Text, nullable=False)
    output_text = db.Column(db.Text, nullable=True)
    model_used = db.Column(db.String(120), nullable=True)
    tokens_used = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<PromptLog {self.prompt_type} for user {self.user_id}>"
