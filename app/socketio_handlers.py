"""
SocketIO Event Handlers for Real-time Updates

Browsers viewing a week join that week's room on the /scores namespace and
receive score changes and stored winners as they happen.
"""

import logging

from flask import request
from flask_login import current_user
from flask_socketio import emit, join_room, leave_room

from app import socketio
from app.models import Game, Season

logger = logging.getLogger(__name__)

NAMESPACE = "/scores"

# Track connected clients and their week subscriptions
connected_users = {}


def week_room(season, week):
    return f"week_{season}_{week}"


@socketio.on("connect", namespace=NAMESPACE)
def on_connect():
    """Handle client connection to scores namespace"""
    user_id = current_user.id if current_user.is_authenticated else None
    client_id = request.sid

    logger.info(f"Client connected to /scores: {client_id} (user: {user_id})")
    connected_users[client_id] = {"user_id": user_id, "subscriptions": set()}


@socketio.on("disconnect", namespace=NAMESPACE)
def on_disconnect(*args):
    """Handle client disconnection from scores namespace"""
    client = connected_users.pop(request.sid, None)
    if client:
        logger.info(
            f"Client disconnected from /scores: {request.sid} (user: {client['user_id']})"
        )


@socketio.on("subscribe_week", namespace=NAMESPACE)
def on_subscribe_week(data):
    """Join a week's room and send its current games"""
    client_id = request.sid
    week = (data or {}).get("week")
    season = (data or {}).get("season")
    if client_id not in connected_users or not week:
        return

    if not season:
        current_season = Season.get_current_season()
        if not current_season:
            return
        season = current_season.year

    room_name = week_room(season, week)
    if room_name in connected_users[client_id]["subscriptions"]:
        return

    connected_users[client_id]["subscriptions"].add(room_name)
    join_room(room_name)

    games = Game.get_games_for_week(season, week)
    emit("week_games", {"week": week, "games": [g.to_dict() for g in games]})
    logger.debug(f"Client {client_id} subscribed to {room_name}")


@socketio.on("unsubscribe_week", namespace=NAMESPACE)
def on_unsubscribe_week(data):
    client_id = request.sid
    week = (data or {}).get("week")
    season = (data or {}).get("season")
    if client_id not in connected_users or not week or not season:
        return

    room_name = week_room(season, week)
    connected_users[client_id]["subscriptions"].discard(room_name)
    leave_room(room_name)


# Broadcast functions (called from the scheduler and admin endpoints)
def broadcast_score_update(game):
    """Broadcast a game's new score to everyone viewing its week"""
    try:
        socketio.emit(
            "score_update",
            game.to_dict(),
            room=week_room(game.season, game.week),
            namespace=NAMESPACE,
        )
        logger.debug(f"Broadcasted score update for game {game.id}")
    except Exception as e:
        logger.error(f"Error broadcasting score update: {e}")


def broadcast_winners_stored(season, week, winners):
    """Tell viewers of a week that its winners were recorded"""
    try:
        socketio.emit(
            "winners_stored",
            {"season": season, "week": week, "winners": [w.to_dict() for w in winners]},
            room=week_room(season, week),
            namespace=NAMESPACE,
        )
        logger.info(f"Broadcasted stored winners for {season} week {week}")
    except Exception as e:
        logger.error(f"Error broadcasting winners: {e}")


def get_connection_stats():
    """Get connection statistics"""
    return {
        "total_connections": len(connected_users),
        "authenticated_users": len(
            [u for u in connected_users.values() if u["user_id"]]
        ),
        "total_subscriptions": sum(
            len(u["subscriptions"]) for u in connected_users.values()
        ),
    }
