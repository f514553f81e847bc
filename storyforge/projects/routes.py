from __future__ import annotations

from flask import abort, current_app, jsonify, request
from flask_login import current_user, login_required

from ..extensions import db
from ..json_forms import bind_json_form, form_error_details
from ..models import Chapter, Character, Project
from ..services.writing_stats import build_writing_stats, count_words
from . import bp
from .forms import ChapterForm, CharacterForm, ProjectForm, ProjectUpdateForm

DEFAULT_PROJECT_TONE = "anime"


def _get_owned_project_or_404(project_id: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None or project.owner_id != current_user.id:
        abort(404)
    return project


def _clean(value):
    return (value or "").strip() or None


def _invalid(form, message: str):
    return jsonify({"error": message, "details": form_error_details(form)}), 400


@bp.route("", methods=["GET"])
@login_required
def index():
    projects = (
        Project.query.filter_by(owner_id=current_user.id)
        .order_by(Project.updated_at.desc())
        .all()
    )
    return jsonify({"projects": [project.to_dict() for project in projects]})


@bp.route("", methods=["POST"])
@login_required
def create():
    form = bind_json_form(ProjectForm)
    if not form.validate():
        return _invalid(form, "Invalid project details")

    project = Project(
        title=form.title.data.strip(),
        description=_clean(form.description.data),
        genre=_clean(form.genre.data),
        tone=_clean(form.tone.data) or DEFAULT_PROJECT_TONE,
        owner_id=current_user.id,
    )
    db.session.add(project)
    db.session.commit()
    current_app.logger.info("Account %s created project %s", current_user.id, project.id)
    return jsonify({"project": project.to_dict()}), 201


@bp.route("/<project_id>", methods=["GET"])
@login_required
def detail(project_id: str):
    project = _get_owned_project_or_404(project_id)
    return jsonify(
        {
            "project": project.to_dict(),
            "chapters": [chapter.to_dict() for chapter in project.chapters],
            "characters": [character.to_dict() for character in project.characters],
            "stats": build_writing_stats(project.chapters).to_dict(),
        }
    )


@bp.route("/<project_id>", methods=["PATCH"])
@login_required
def update(project_id: str):
    project = _get_owned_project_or_404(project_id)
    payload = request.get_json(silent=True) or {}
    form = bind_json_form(ProjectUpdateForm, payload)
    if not form.validate():
        return _invalid(form, "Invalid project details")

    if "title" in payload:
        title = _clean(form.title.data)
        if not title:
            details = [{"field": "title", "message": "This field is required."}]
            return jsonify({"error": "Invalid project details", "details": details}), 400
        project.title = title
    if "description" in payload:
        project.description = _clean(form.description.data)
    if "genre" in payload:
        project.genre = _clean(form.genre.data)
    if "tone" in payload:
        project.tone = _clean(form.tone.data) or DEFAULT_PROJECT_TONE
    if form.status.data:
        project.status = form.status.data
    db.session.commit()
    return jsonify({"project": project.to_dict()})


@bp.route("/<project_id>/chapters", methods=["POST"])
@login_required
def create_chapter(project_id: str):
    project = _get_owned_project_or_404(project_id)
    next_number = len(project.chapters) + 1
    chapter = Chapter(
        project=project,
        title=f"Chapter {next_number}",
        content="",
        chapter_number=next_number,
        word_count=0,
    )
    db.session.add(chapter)
    db.session.commit()
    return jsonify({"chapter": chapter.to_dict()}), 201


@bp.route("/<project_id>/chapters/<chapter_id>", methods=["PATCH"])
@login_required
def update_chapter(project_id: str, chapter_id: str):
    project = _get_owned_project_or_404(project_id)
    chapter = Chapter.query.filter_by(id=chapter_id, project_id=project.id).first()
    if not chapter:
        return jsonify({"error": "We couldn't find the selected chapter."}), 404

    payload = request.get_json(silent=True) or {}
    form = bind_json_form(ChapterForm, payload)
    if not form.validate():
        return _invalid(form, "Invalid chapter details")

    if "title" in payload and _clean(form.title.data):
        chapter.title = form.title.data.strip()
    if "content" in payload:
        chapter.content = form.content.data or ""
        chapter.word_count = count_words(chapter.content)
    db.session.commit()
    return jsonify({"chapter": chapter.to_dict()})


@bp.route("/<project_id>/characters", methods=["GET"])
@login_required
def characters(project_id: str):
    project = _get_owned_project_or_404(project_id)
    return jsonify({"characters": [character.to_dict() for character in project.characters]})


@bp.route("/<project_id>/characters", methods=["POST"])
@login_required
def create_character(project_id: str):
    project = _get_owned_project_or_404(project_id)
    form = bind_json_form(CharacterForm)
    if not form.validate():
        return _invalid(form, "Invalid character details")

    character = Character(
        project=project,
        name=form.name.data.strip(),
        role=_clean(form.role.data),
        age=form.age.data,
        appearance=_clean(form.appearance.data),
        backstory=_clean(form.backstory.data),
        personality=_clean(form.personality.data),
    )
    db.session.add(character)
    db.session.commit()
    return jsonify({"character": character.to_dict()}), 201
