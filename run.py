# Eventlet monkey patching MUST be first before any other imports
import eventlet

eventlet.monkey_patch()

from app import create_app, db, socketio  # noqa: E402
from app.models import Game, Pick, Season, User, WeeklyPayment, WeeklyWinner  # noqa: E402

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Season": Season,
        "Game": Game,
        "Pick": Pick,
        "WeeklyPayment": WeeklyPayment,
        "WeeklyWinner": WeeklyWinner,
    }


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
