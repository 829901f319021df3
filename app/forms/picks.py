from flask_wtf import FlaskForm
from wtforms import HiddenField, IntegerField, SubmitField
from wtforms.validators import DataRequired, InputRequired, NumberRange


class MakePickForm(FlaskForm):
    game_id = HiddenField(validators=[DataRequired()])
    selected_team = HiddenField(validators=[DataRequired()])
    submit = SubmitField("Pick")


class MondayTotalForm(FlaskForm):
    game_id = HiddenField(validators=[DataRequired()])
    total_points = IntegerField(
        "Total Points",
        validators=[
            InputRequired(),
            NumberRange(min=0, message="Total points cannot be negative"),
        ],
    )
    submit = SubmitField("Save Total")
