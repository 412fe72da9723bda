from pickem import create_app, db
from pickem.models import Game, League, LeagueMembership, Pick, Team

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "Game": Game,
        "League": League,
        "LeagueMembership": LeagueMembership,
        "Pick": Pick,
        "Team": Team,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
