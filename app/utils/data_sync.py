import logging
from datetime import datetime, timezone

import pytz
import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import Game
from app.models.game import STATUS_FINAL, STATUS_IN_PROGRESS, STATUS_SCHEDULED
from app.utils.scoring import determine_active_week, is_bye_game

logger = logging.getLogger(__name__)

# Scoreboard abbreviations that differ from the ones stored on games
TEAM_ABBREVIATION_FIXES = {"WSH": "WAS"}

SCOREBOARD_STATES = {
    "pre": STATUS_SCHEDULED,
    "in": STATUS_IN_PROGRESS,
}

EASTERN = pytz.timezone("US/Eastern")


def normalize_team(abbreviation):
    abbreviation = (abbreviation or "").upper()
    return TEAM_ABBREVIATION_FIXES.get(abbreviation, abbreviation)


def parse_score(value):
    """Integer score, or None when missing or not numeric"""
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_schedule_kickoff(entry):
    """
    Kickoff in naive UTC from a schedule entry.

    DateTimeUTC is already UTC; DateTime and Date are US Eastern.
    """
    if entry.get("DateTimeUTC"):
        value = datetime.fromisoformat(entry["DateTimeUTC"].replace("Z", "+00:00"))
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    for key in ("DateTime", "Date"):
        if entry.get(key):
            value = datetime.fromisoformat(entry[key])
            if value.tzinfo is None:
                value = EASTERN.localize(value)
            return value.astimezone(timezone.utc).replace(tzinfo=None)

    return None


def group_games_by_week(games):
    """{"Week N": [game dicts sorted by kickoff]} in week order"""
    weeks = {}
    for game in sorted(games, key=lambda g: (g.week, g.start_time)):
        weeks.setdefault(f"Week {game.week}", []).append(game.to_dict())
    return weeks


class DataSync:
    """
    Pulls the season schedule and weekly scoreboards from the score feeds
    and writes them onto Game rows.
    """

    def __init__(
        self, espn_base_url=None, sportsdata_base_url=None, sportsdata_api_key=None
    ):
        self.espn_base_url = espn_base_url or current_app.config.get(
            "ESPN_API_BASE_URL",
            "https://site.api.espn.com/apis/site/v2/sports/football/nfl",
        )
        self.sportsdata_base_url = sportsdata_base_url or current_app.config.get(
            "SPORTSDATA_API_BASE_URL", "https://api.sportsdata.io/v3/nfl/scores/json"
        )
        self.sportsdata_api_key = sportsdata_api_key or current_app.config.get(
            "SPORTSDATA_API_KEY"
        )
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "MNF-Pickem-App/1.0"})
        self.request_count = 0

    def _make_api_request(self, url, params=None, headers=None):
        """Single GET; failures propagate to the caller"""
        self.request_count += 1
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=30)
            response.raise_for_status()
            return response
        except requests.exceptions.Timeout:
            logger.warning(f"Request timeout for {url}")
            raise
        except requests.exceptions.ConnectionError:
            logger.warning(f"Connection error for {url}")
            raise
        except requests.exceptions.HTTPError as e:
            logger.error(f"HTTP error {e.response.status_code}: {url}")
            raise

    def sync_schedule(self, year):
        """Upsert the season schedule keyed by the provider game key"""
        if not self.sportsdata_api_key:
            return False, "SPORTSDATA_API_KEY is not configured"

        try:
            logger.info(f"Starting schedule sync for {year} season")
            url = f"{self.sportsdata_base_url}/SchedulesBasic/{year}"
            response = self._make_api_request(
                url, headers={"Ocp-Apim-Subscription-Key": self.sportsdata_api_key}
            )

            created = 0
            updated = 0
            skipped = 0

            for entry in response.json() or []:
                game_key = entry.get("GameKey")
                kickoff = parse_schedule_kickoff(entry)
                if not game_key or kickoff is None or entry.get("Week") is None:
                    skipped += 1
                    continue

                game = Game.query.filter_by(external_id=str(game_key)).first()
                if game is None:
                    game = Game(
                        external_id=str(game_key),
                        home_score=None,
                        away_score=None,
                        winner=None,
                        status=STATUS_SCHEDULED,
                    )
                    db.session.add(game)
                    created += 1
                else:
                    updated += 1

                game.season = year
                game.week = int(entry["Week"])
                game.home_team = (entry.get("HomeTeam") or "").upper()
                game.away_team = (entry.get("AwayTeam") or "").upper()

                # Final games keep their recorded kickoff and results
                if not game.is_final:
                    game.start_time = kickoff

            db.session.flush()
            self._mark_monday_night_games(year)
            db.session.commit()

            logger.info(
                f"Schedule sync for {year}: {created} created, {updated} updated, {skipped} skipped"
            )
            return True, f"Synced {created + updated} games ({created} new)"

        except requests.exceptions.RequestException as e:
            db.session.rollback()
            logger.error(f"Error fetching schedule for {year}: {str(e)}", exc_info=True)
            return False, "Failed to fetch NFL schedule"
        except (SQLAlchemyError, ValueError) as e:
            db.session.rollback()
            logger.error(f"Error saving schedule for {year}: {str(e)}", exc_info=True)
            return False, "Failed to save NFL schedule"

    def _mark_monday_night_games(self, year):
        """Flag the last Monday (US Eastern) kickoff of each week as the tie-breaker game"""
        latest_monday = {}
        for game in Game.get_all_for_season(year):
            eastern = game.kickoff_utc.astimezone(EASTERN)
            if eastern.weekday() != 0:
                continue
            current = latest_monday.get(game.week)
            if current is None or game.kickoff_utc > current.kickoff_utc:
                latest_monday[game.week] = game

        for week, mnf in latest_monday.items():
            if mnf.is_monday_night:
                continue
            Game.query.filter(
                Game.season == year, Game.week == week, Game.id != mnf.id
            ).update({"is_monday_night": False}, synchronize_session=False)
            mnf.is_monday_night = True

    def get_current_week(self, season):
        """Active week for score updates, or None when no games are stored"""
        games = Game.get_all_for_season(season)
        if not games:
            return None
        return determine_active_week(games)

    def update_scores(self, season=None):
        """
        Pull the current week's scoreboard and update matching games.

        Returns (success, result) where result carries ``message``,
        ``updated_count``, ``monday_night_game_updated``, ``week`` and the
        ids of the games that changed.
        """
        season = season or current_app.config.get("SEASON_YEAR")
        try:
            week = self.get_current_week(season)
            if week is None:
                logger.warning("Could not determine current week")
                return True, self._score_result("No current week found")

            url = f"{self.espn_base_url}/scoreboard"
            response = self._make_api_request(url, params={"week": week})
            events = response.json().get("events", [])
            if not events:
                logger.warning(f"No scoreboard events for week {week}")
                return True, self._score_result(
                    "No games found for current week", week=week
                )

            updated_count = 0
            monday_night_updated = False
            changed_ids = []

            for event in events:
                outcome = self._apply_event(event, season, week)
                if outcome is None:
                    continue
                game, changed, mnf_total_written = outcome
                updated_count += 1
                if mnf_total_written:
                    monday_night_updated = True
                if changed:
                    changed_ids.append(game.id)

            db.session.commit()

            logger.info(f"Updated {updated_count} games for week {week}")
            if monday_night_updated:
                logger.info("Monday night game total points updated")

            return True, self._score_result(
                f"Scores for week {week} updated!",
                updated_count=updated_count,
                monday_night_game_updated=monday_night_updated,
                week=week,
                updated_game_ids=changed_ids,
            )

        except requests.exceptions.RequestException as e:
            db.session.rollback()
            logger.error(f"Error fetching scoreboard: {str(e)}", exc_info=True)
            return False, self._score_result("Failed to update scores")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error saving scores: {str(e)}", exc_info=True)
            return False, self._score_result("Failed to update scores")

    @staticmethod
    def _score_result(
        message,
        updated_count=0,
        monday_night_game_updated=False,
        week=None,
        updated_game_ids=None,
    ):
        return {
            "message": message,
            "updated_count": updated_count,
            "monday_night_game_updated": monday_night_game_updated,
            "week": week,
            "updated_game_ids": updated_game_ids or [],
        }

    def _apply_event(self, event, season, week):
        """Write one scoreboard event onto its game; None if no game matched"""
        competitions = event.get("competitions") or [{}]
        competitors = competitions[0].get("competitors", [])
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if not home or not away:
            logger.warning(f"Skipping event, missing home/away team: {event.get('name')}")
            return None

        home_score = parse_score(home.get("score"))
        away_score = parse_score(away.get("score"))
        home_team = normalize_team(home.get("team", {}).get("abbreviation"))
        away_team = normalize_team(away.get("team", {}).get("abbreviation"))

        winner = None
        if home_score is not None and away_score is not None and home_score != away_score:
            winner = home_team if home_score > away_score else away_team

        state = event.get("status", {}).get("type", {}).get("state")
        status = SCOREBOARD_STATES.get(state, STATUS_FINAL)

        game = self._find_game(season, week, home_team, away_team)
        if game is None:
            game = self._find_game(season, week, away_team, home_team)
            if game is None:
                logger.info(
                    f"No game found for {away_team} @ {home_team} in week {week}"
                )
                return None
            # Stored with teams reversed, keep scores attached to the right side
            home_score, away_score = away_score, home_score

        before = (game.home_score, game.away_score, game.winner, game.status)

        game.home_score = home_score
        game.away_score = away_score
        game.winner = winner
        game.status = status
        # The MNF flag belongs to schedule sync, which reads kickoffs in US Eastern
        actual_total = None
        if (
            game.is_monday_night
            and status == STATUS_FINAL
            and home_score is not None
            and away_score is not None
        ):
            actual_total = home_score + away_score
            game.actual_total_points = actual_total

        changed = before != (game.home_score, game.away_score, game.winner, game.status)
        logger.debug(
            f"{away_team} @ {home_team}: {away_score}-{home_score} {status} winner={winner}"
        )
        return game, changed, actual_total is not None

    @staticmethod
    def _find_game(season, week, home_team, away_team):
        game = Game.query.filter_by(
            season=season, week=week, home_team=home_team, away_team=away_team
        ).first()
        if game is not None and is_bye_game(game):
            return None
        return game
