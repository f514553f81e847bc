from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, InputRequired, Length, NumberRange, Optional

from ..models import CHARACTER_ROLES, PROJECT_STATUSES


class ProjectForm(FlaskForm):
    title = StringField("Project title", validators=[InputRequired(), Length(max=150)])
    description = TextAreaField("Short description", validators=[Optional(), Length(max=500)])
    genre = StringField("Genre", validators=[Optional(), Length(max=80)])
    tone = StringField("Tone", validators=[Optional(), Length(max=50)])


class ProjectUpdateForm(FlaskForm):
    title = StringField("Project title", validators=[Optional(), Length(max=150)])
    description = TextAreaField("Short description", validators=[Optional(), Length(max=500)])
    genre = StringField("Genre", validators=[Optional(), Length(max=80)])
    tone = StringField("Tone", validators=[Optional(), Length(max=50)])
    status = StringField("Status", validators=[Optional(), AnyOf(PROJECT_STATUSES)])


class ChapterForm(FlaskForm):
    title = StringField("Chapter title", validators=[Optional(), Length(max=150)])
    content = TextAreaField("Chapter content", validators=[Optional()])


class CharacterForm(FlaskForm):
    name = StringField("Name", validators=[InputRequired(), Length(max=120)])
    role = StringField("Story role", validators=[Optional(), AnyOf(CHARACTER_ROLES)])
    age = IntegerField("Age", validators=[Optional(), NumberRange(min=0, max=10000)])
    appearance = TextAreaField("Appearance", validators=[Optional()])
    backstory = TextAreaField("Backstory", validators=[Optional()])
    personality = TextAreaField("Personality", validators=[Optional()])
