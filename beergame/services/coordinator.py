"""
Session registry and coordinator.

The coordinator is the only entry point clients use to reach a game. It looks
the session up, serializes every command against it with a per-session lock,
checks the admin credential for admin-only commands, and publishes the new
state to subscribers once the command has been applied.
"""
from __future__ import annotations

import logging
import random
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from beergame.core.exceptions import BeerGameError, GameNotFound, NotGameAdmin
from beergame.schemas.websocket import EventType, GameEvent

from .game_session import CommandResult, GameConfig, GameSession

logger = logging.getLogger(__name__)

#: Channel used for lobby-wide events (game ids are always prefixed with "game-").
LOBBY_CHANNEL = "lobby"


class Publisher(Protocol):
    """Narrow capability the transport gateway implements."""

    def publish(self, channel: str, event: Dict[str, Any]) -> None:
        """Deliver ``event`` to every current subscriber of ``channel``."""

    def evict(self, channel: str) -> None:
        """Disconnect every subscriber of ``channel``."""


class NullPublisher:
    """Publisher used when no gateway is attached."""

    def publish(self, channel: str, event: Dict[str, Any]) -> None:
        return None

    def evict(self, channel: str) -> None:
        return None


@dataclass
class RegisteredSession:
    session: GameSession
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionRegistry:
    """Owns the live sessions of one server. Sessions live in memory only."""

    def __init__(self) -> None:
        self._sessions: Dict[str, RegisteredSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, game_id: object) -> bool:
        with self._lock:
            return game_id in self._sessions

    def _new_game_id(self) -> str:
        # Caller holds self._lock
        stamp = int(time.time() * 1000)
        game_id = f"game-{stamp}"
        while game_id in self._sessions:
            stamp += 1
            game_id = f"game-{stamp}"
            logger.warning(f"Game id collision detected, regenerating: {game_id}")
        return game_id

    def create(self, build: Callable[[str], GameSession]) -> RegisteredSession:
        """Mint a ``game-<epoch ms>`` id and register the session ``build`` makes for it."""
        with self._lock:
            game_id = self._new_game_id()
            entry = RegisteredSession(build(game_id))
            self._sessions[game_id] = entry
        return entry

    def get(self, game_id: str) -> Optional[RegisteredSession]:
        with self._lock:
            return self._sessions.get(game_id)

    def remove(self, game_id: str) -> Optional[RegisteredSession]:
        with self._lock:
            return self._sessions.pop(game_id, None)

    def entries(self) -> List[RegisteredSession]:
        with self._lock:
            return list(self._sessions.values())


class GameCoordinator:
    """Serializes commands per session, enforces admin-only commands and publishes changes."""

    def __init__(
        self,
        registry: SessionRegistry,
        publisher: Optional[Publisher] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.registry = registry
        self.publisher: Publisher = publisher or NullPublisher()
        self._rng = rng
        self._lobby_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    def _publish(self, channel: str, event_type: EventType, data: Any = None) -> None:
        game_id = None if channel == LOBBY_CHANNEL else channel
        event = GameEvent(type=event_type, game_id=game_id, data=data)
        try:
            self.publisher.publish(channel, event.to_message())
        except Exception as e:
            # Delivery is the gateway's concern; a failed send never undoes a committed command
            logger.error(f"Error publishing {event_type.value} for {channel}: {e}", exc_info=True)

    def _publish_lobby(self) -> None:
        with self._lobby_lock:
            self._publish(LOBBY_CHANNEL, EventType.GAMES_LIST_UPDATED, self.list_games())

    def _execute(
        self,
        game_id: str,
        command: Callable[[GameSession], CommandResult],
        *,
        admin_token: Optional[str] = None,
        admin_only: bool = False,
        action: str = "",
    ) -> CommandResult:
        """Run ``command`` against the session while holding that session's lock."""
        entry = self.registry.get(game_id)
        if entry is None:
            return CommandResult.failure(GameNotFound(game_id))

        with entry.lock:
            session = entry.session
            try:
                if session.is_deleted:
                    raise GameNotFound(game_id)
                if admin_only and not session.is_admin(admin_token):
                    logger.warning(f"Rejected unauthorized {action or 'admin command'} on game {game_id}")
                    raise NotGameAdmin(game_id)
            except BeerGameError as exc:
                return CommandResult.failure(exc)
            return command(session)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def create_game(self, config: GameConfig) -> CommandResult:
        admin_token = secrets.token_urlsafe(24)
        entry = self.registry.create(lambda game_id: GameSession(game_id, admin_token, config, rng=self._rng))
        session = entry.session
        game_id = session.id
        logger.info(
            f"Created game {game_id}: pattern={session.demand_pattern.value} "
            f"max_rounds={session.max_rounds} delivery_delay={session.delivery_delay}"
        )
        self._publish_lobby()
        return CommandResult.success(
            {"game_id": game_id, "admin_token": admin_token, "snapshot": session.snapshot()}
        )

    def join_game(self, game_id: str, participant_id: str, name: str, role: Any) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.add_or_replace_participant(participant_id, name, role)
            if result.ok:
                evicted = result.data.get("evicted_id")
                logger.info(
                    f"Participant {participant_id} joined game {game_id} as {result.data['participant']['role']}"
                    + (f" (evicted {evicted})" if evicted else "")
                )
                snapshot = session.snapshot()
                self._publish(game_id, EventType.SNAPSHOT_UPDATED, snapshot)
                result.data = {**result.data, "snapshot": snapshot}
            return result

        result = self._execute(game_id, command)
        if result.ok:
            self._publish_lobby()
        return result

    def start_game(self, game_id: str, admin_token: Optional[str]) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.start()
            if result.ok:
                logger.info(f"Game {game_id} started")
                self._publish(game_id, EventType.GAME_STARTED, session.snapshot())
            return result

        result = self._execute(game_id, command, admin_token=admin_token, admin_only=True, action="start")
        if result.ok:
            self._publish_lobby()
        return result

    def place_order(self, game_id: str, participant_id: str, quantity: Any) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.place_order(participant_id, quantity)
            if result.ok:
                self._publish(game_id, EventType.SNAPSHOT_UPDATED, session.snapshot())
                if result.data["all_ordered"]:
                    self._publish(game_id, EventType.ALL_PLAYERS_ORDERED, {"round": session.round})
            return result

        return self._execute(game_id, command)

    def process_round(self, game_id: str, admin_token: Optional[str]) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.process_round()
            if result.ok:
                logger.info(f"Game {game_id} processed round {result.data['round_processed']}")
                self._publish(game_id, EventType.ROUND_PROCESSED, session.snapshot())
                if session.is_ended:
                    logger.info(f"Game {game_id} ended after round {result.data['round_processed']}")
                    self._publish(game_id, EventType.GAME_ENDED, session.results())
            return result

        result = self._execute(game_id, command, admin_token=admin_token, admin_only=True, action="process_round")
        if result.ok:
            self._publish_lobby()
        return result

    def override_future_demand(
        self, game_id: str, admin_token: Optional[str], round_index: Any, value: Any
    ) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.override_future_demand(round_index, value)
            if result.ok:
                self._publish(game_id, EventType.SNAPSHOT_UPDATED, session.snapshot())
            return result

        return self._execute(
            game_id, command, admin_token=admin_token, admin_only=True, action="update_demand"
        )

    def force_end(self, game_id: str, admin_token: Optional[str]) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.force_end()
            if result.ok:
                logger.info(f"Game {game_id} force-ended at round {session.round}")
                self._publish(game_id, EventType.SNAPSHOT_UPDATED, session.snapshot())
                self._publish(game_id, EventType.GAME_ENDED, session.results())
            return result

        result = self._execute(game_id, command, admin_token=admin_token, admin_only=True, action="force_end")
        if result.ok:
            self._publish_lobby()
        return result

    def remove_participant(self, game_id: str, admin_token: Optional[str], participant_id: str) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            result = session.remove_participant(participant_id)
            if result.ok:
                logger.info(f"Participant {participant_id} removed from game {game_id}")
                self._publish(game_id, EventType.SNAPSHOT_UPDATED, session.snapshot())
                self._publish(game_id, EventType.PARTICIPANT_REMOVED, result.data)
            return result

        result = self._execute(
            game_id, command, admin_token=admin_token, admin_only=True, action="remove_participant"
        )
        if result.ok:
            self._publish_lobby()
        return result

    def delete_game(self, game_id: str, admin_token: Optional[str]) -> CommandResult:
        def command(session: GameSession) -> CommandResult:
            session.mark_deleted()
            self.registry.remove(game_id)
            logger.info(f"Game {game_id} deleted")
            self._publish(game_id, EventType.GAME_DELETED, {"game_id": game_id})
            try:
                self.publisher.evict(game_id)
            except Exception as e:
                logger.error(f"Error evicting subscribers of {game_id}: {e}", exc_info=True)
            return CommandResult.success({"game_id": game_id})

        result = self._execute(game_id, command, admin_token=admin_token, admin_only=True, action="delete")
        if result.ok:
            self._publish_lobby()
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_games(self) -> List[Dict[str, Any]]:
        games = []
        for entry in self.registry.entries():
            with entry.lock:
                if not entry.session.is_deleted:
                    games.append(entry.session.summary())
        return games

    def get_snapshot(self, game_id: str) -> CommandResult:
        return self._execute(game_id, lambda session: CommandResult.success(session.snapshot()))

    def get_history(self, game_id: str, since_round: int = 0) -> CommandResult:
        return self._execute(
            game_id, lambda session: CommandResult.success(session.history_records(since_round))
        )

    def get_results(self, game_id: str) -> CommandResult:
        return self._execute(game_id, lambda session: session.compute_results())
