import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from beergame.core.exceptions import ErrorCode
from beergame.schemas.websocket import RequestType, WebSocketReply, WebSocketRequest
from beergame.services.coordinator import LOBBY_CHANNEL, GameCoordinator
from beergame.services.game_session import CommandResult
from beergame.websockets import ConnectionManager, Subscriber

router = APIRouter()
logger = logging.getLogger(__name__)


def dispatch(coordinator: GameCoordinator, game_id: str, request: WebSocketRequest) -> CommandResult:
    """Route one socket request to the matching coordinator command."""
    token = request.admin_token
    if request.type == RequestType.GET_STATE:
        return coordinator.get_snapshot(game_id)
    if request.type == RequestType.JOIN:
        return coordinator.join_game(game_id, request.participant_id, request.name, request.role)
    if request.type == RequestType.PLACE_ORDER:
        return coordinator.place_order(game_id, request.participant_id, request.quantity)
    if request.type == RequestType.START:
        return coordinator.start_game(game_id, token)
    if request.type == RequestType.PROCESS_ROUND:
        return coordinator.process_round(game_id, token)
    if request.type == RequestType.UPDATE_DEMAND:
        return coordinator.override_future_demand(game_id, token, request.round_index, request.value)
    if request.type == RequestType.FORCE_END:
        return coordinator.force_end(game_id, token)
    if request.type == RequestType.REMOVE_PARTICIPANT:
        return coordinator.remove_participant(game_id, token, request.participant_id)
    if request.type == RequestType.DELETE:
        return coordinator.delete_game(game_id, token)
    # RequestType.PING
    return CommandResult.success({"pong": True})


async def _receive_requests(
    websocket: WebSocket,
    manager: ConnectionManager,
    coordinator: GameCoordinator,
    subscriber: Subscriber,
    game_id: str,
):
    while True:
        try:
            raw = await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(f"Client {subscriber.client_id} disconnected from {game_id}")
            return

        try:
            request = WebSocketRequest.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            manager.send_personal_message(subscriber, WebSocketReply(
                ok=False,
                error=ErrorCode.INVALID_ARGUMENT.value,
                message=f"Invalid request: {e}",
            ).model_dump(mode="json"))
            continue

        # Commands take the session lock, so they run off the event loop. Broadcasts
        # they cause are queued before this reply, and eviction waits for it.
        manager.begin_request(subscriber)
        result = await run_in_threadpool(dispatch, coordinator, game_id, request)
        manager.end_request(subscriber, WebSocketReply(
            request_id=request.request_id,
            ok=result.ok,
            error=result.error.value if result.error else None,
            message=result.message,
            data=result.data,
        ).model_dump(mode="json"))


async def _serve(manager: ConnectionManager, subscriber: Subscriber, receiver):
    """Run the receive loop and the sender side by side until either one stops."""
    sender = asyncio.create_task(manager.pump(subscriber))
    receiving = asyncio.create_task(receiver)
    try:
        done, _ = await asyncio.wait({sender, receiving}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"WebSocket error: {task.exception()}", exc_info=task.exception())
    finally:
        sender.cancel()
        receiving.cancel()
        manager.disconnect(subscriber.channel, subscriber.client_id)


@router.websocket("/ws/games/{game_id}")
async def game_socket(websocket: WebSocket, game_id: str):
    """
    Live channel for one game.

    - Subscribes the socket to every broadcast of the game
    - Sends the current snapshot right after connecting
    - Accepts request messages and replies on the same socket
    """
    coordinator: GameCoordinator = websocket.app.state.coordinator
    manager: ConnectionManager = websocket.app.state.connection_manager

    if coordinator.registry.get(game_id) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="game not found")
        return

    # Subscribe first so no broadcast falls between the snapshot and the subscription
    subscriber = await manager.connect(websocket, game_id)
    snapshot = await run_in_threadpool(coordinator.get_snapshot, game_id)
    if not snapshot.ok:
        manager.disconnect(game_id, subscriber.client_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="game not found")
        return
    manager.send_personal_message(subscriber, {"type": "game_state", "game_id": game_id, "data": snapshot.data})

    await _serve(
        manager,
        subscriber,
        _receive_requests(websocket, manager, coordinator, subscriber, game_id),
    )


async def _receive_pings(websocket: WebSocket, manager: ConnectionManager, subscriber: Subscriber):
    while True:
        try:
            raw = await websocket.receive_text()
        except WebSocketDisconnect:
            return
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            message = {"type": raw.strip()}
        if isinstance(message, dict) and message.get("type") == "ping":
            manager.send_personal_message(subscriber, {"type": "pong"})


@router.websocket("/ws/lobby")
async def lobby_socket(websocket: WebSocket):
    """Streams the list of live games whenever it changes."""
    coordinator: GameCoordinator = websocket.app.state.coordinator
    manager: ConnectionManager = websocket.app.state.connection_manager

    subscriber = await manager.connect(websocket, LOBBY_CHANNEL)
    games = await run_in_threadpool(coordinator.list_games)
    manager.send_personal_message(subscriber, {"type": "games-list", "data": games})
    await _serve(manager, subscriber, _receive_pings(websocket, manager, subscriber))
