import random

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from beergame.main import create_app

from .conftest import ROLES

API = "/api/v1"


@pytest.fixture()
def client():
    with TestClient(create_app(rng=random.Random(11))) as test_client:
        yield test_client


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def create_game(client, **overrides):
    body = {"maxRounds": 24, "inventoryCostPerUnit": 0.5, "stockoutCostPerUnit": 1.0, "deliveryDelay": 2}
    body.update(overrides)
    response = client.post(f"{API}/games", json=body)
    assert response.status_code == 201
    return response.json()


def seat_all(client, game_id):
    for role in ROLES:
        response = client.post(
            f"{API}/games/{game_id}/join",
            json={"participantId": f"p-{role.value}", "name": role.value.title(), "role": role.value},
        )
        assert response.status_code == 200


@pytest.fixture()
def started_game(client):
    created = create_game(client)
    game_id, token = created["game_id"], created["admin_token"]
    seat_all(client, game_id)
    assert client.post(f"{API}/games/{game_id}/start", headers=auth(token)).status_code == 200
    return game_id, token


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["games"] == 0


def test_create_game(client):
    created = create_game(client, demandPattern="increasing")

    assert created["game_id"].startswith("game-")
    assert created["admin_token"]
    snapshot = created["snapshot"]
    assert snapshot["status"] == "lobby"
    assert snapshot["customer_demand"][8:12] == [12, 12, 12, 12]
    assert created["admin_token"] not in str(client.get(f"{API}/games/{created['game_id']}").json())


def test_create_game_uses_defaults(client):
    response = client.post(f"{API}/games", json={})
    assert response.status_code == 201
    snapshot = response.json()["snapshot"]
    assert snapshot["max_rounds"] == 24
    assert snapshot["delivery_delay"] == 2
    assert snapshot["initial_inventory"] == 12


@pytest.mark.parametrize(
    "body",
    [
        {"maxRounds": 0},
        {"maxRounds": 10_000},
        {"deliveryDelay": 0},
        {"inventoryCostPerUnit": -1},
        {"demandPattern": "custom", "customDemand": [4, -1]},
    ],
)
def test_create_game_rejects_invalid_config(client, body):
    assert client.post(f"{API}/games", json=body).status_code == 422


def test_list_games(client):
    created = create_game(client)
    seat_all(client, created["game_id"])

    games = client.get(f"{API}/games").json()

    assert [game["id"] for game in games] == [created["game_id"]]
    assert len(games[0]["participants"]) == 4
    assert "inventory" not in games[0]["participants"][0]


def test_unknown_game_is_404(client):
    response = client.get(f"{API}/games/game-0")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"


def test_start_with_missing_roles_is_409(client):
    created = create_game(client)
    client.post(
        f"{API}/games/{created['game_id']}/join",
        json={"participantId": "alice", "name": "Alice", "role": "retailer"},
    )

    response = client.post(f"{API}/games/{created['game_id']}/start", headers=auth(created["admin_token"]))

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "invalid_state"


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nope"}])
def test_admin_routes_need_the_admin_token(client, started_game, headers):
    game_id, _ = started_game

    response = client.post(f"{API}/games/{game_id}/rounds", headers=headers)

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "unauthorized"
    assert client.get(f"{API}/games/{game_id}").json()["round"] == 1


def test_play_a_round(client, started_game):
    game_id, token = started_game
    for role in ROLES:
        response = client.post(
            f"{API}/games/{game_id}/orders",
            json={"participantId": f"p-{role.value}", "quantity": 4},
        )
        assert response.status_code == 200
    assert response.json()["data"] == {"all_ordered": True}

    response = client.post(f"{API}/games/{game_id}/rounds", headers=auth(token))

    assert response.status_code == 200
    assert response.json()["data"] == {"round_processed": 1, "is_ended": False}
    snapshot = client.get(f"{API}/games/{game_id}").json()
    assert snapshot["round"] == 2
    retailer = snapshot["participants"][0]
    assert retailer["inventory"] == 8
    assert retailer["incoming_deliveries"] == [4]
    history = client.get(f"{API}/games/{game_id}/history").json()
    assert [record["round"] for record in history] == [1]


def test_negative_order_is_422(client, started_game):
    game_id, _ = started_game
    response = client.post(f"{API}/games/{game_id}/orders", json={"participantId": "p-retailer", "quantity": -1})
    assert response.status_code == 422


def test_order_from_unknown_participant_is_404(client, started_game):
    game_id, _ = started_game
    response = client.post(f"{API}/games/{game_id}/orders", json={"participantId": "ghost", "quantity": 1})
    assert response.status_code == 404


def test_override_demand(client, started_game):
    game_id, token = started_game

    response = client.put(f"{API}/games/{game_id}/demand/10", json={"value": 25}, headers=auth(token))
    assert response.status_code == 200
    assert client.get(f"{API}/games/{game_id}").json()["customer_demand"][10] == 25

    response = client.put(f"{API}/games/{game_id}/demand/0", json={"value": 25}, headers=auth(token))
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "invalid_argument"


def test_results_after_force_end(client, started_game):
    game_id, token = started_game
    assert client.get(f"{API}/games/{game_id}/results").status_code == 409

    assert client.post(f"{API}/games/{game_id}/end", headers=auth(token)).status_code == 200

    results = client.get(f"{API}/games/{game_id}/results").json()
    assert results["game_id"] == game_id
    assert [score["rank"] for score in results["final_scores"]] == [1, 2, 3, 4]
    assert results["bullwhip_index"] == 0


def test_remove_participant(client, started_game):
    game_id, token = started_game

    response = client.delete(f"{API}/games/{game_id}/participants/p-factory", headers=auth(token))

    assert response.status_code == 200
    roles = [p["role"] for p in client.get(f"{API}/games/{game_id}").json()["participants"]]
    assert "factory" not in roles


def test_delete_game(client, started_game):
    game_id, token = started_game

    assert client.delete(f"{API}/games/{game_id}", headers=auth(token)).status_code == 200

    assert client.get(f"{API}/games/{game_id}").status_code == 404
    assert client.get(f"{API}/games").json() == []


# WebSocket channel

def test_socket_sends_state_on_connect(client):
    created = create_game(client)
    with client.websocket_connect(f"/ws/games/{created['game_id']}") as ws:
        message = ws.receive_json()
    assert message["type"] == "game_state"
    assert message["data"]["id"] == created["game_id"]


def test_socket_to_unknown_game_is_closed(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws/games/game-0") as ws:
            ws.receive_json()
    assert excinfo.value.code == 1008


def test_socket_receives_rest_broadcasts(client):
    created = create_game(client)
    game_id = created["game_id"]
    with client.websocket_connect(f"/ws/games/{game_id}") as ws:
        ws.receive_json()
        client.post(f"{API}/games/{game_id}/join", json={"participantId": "alice", "name": "Alice", "role": "retailer"})

        event = ws.receive_json()

    assert event["type"] == "snapshot-updated"
    assert event["game_id"] == game_id
    assert event["data"]["participants"][0]["id"] == "alice"


def test_socket_commands_broadcast_before_reply(client):
    created = create_game(client)
    game_id = created["game_id"]
    with client.websocket_connect(f"/ws/games/{game_id}") as ws:
        ws.receive_json()
        ws.send_json({"type": "join", "request_id": "r1", "participant_id": "alice", "name": "Alice", "role": "retailer"})

        broadcast = ws.receive_json()
        reply = ws.receive_json()

    assert broadcast["type"] == "snapshot-updated"
    assert reply["type"] == "reply"
    assert reply["request_id"] == "r1"
    assert reply["ok"] is True


def test_socket_admin_command_without_token_is_refused(client):
    created = create_game(client)
    game_id = created["game_id"]
    seat_all(client, game_id)
    with client.websocket_connect(f"/ws/games/{game_id}") as ws:
        ws.receive_json()
        ws.send_json({"type": "start", "request_id": "r1"})
        refused = ws.receive_json()
        ws.send_json({"type": "start", "request_id": "r2", "admin_token": created["admin_token"]})
        started = ws.receive_json()
        accepted = ws.receive_json()

    assert refused == {
        "type": "reply",
        "request_id": "r1",
        "ok": False,
        "error": "unauthorized",
        "message": refused["message"],
        "data": None,
    }
    assert started["type"] == "game-started"
    assert accepted["ok"] is True


def test_socket_rejects_malformed_requests(client):
    created = create_game(client)
    with client.websocket_connect(f"/ws/games/{created['game_id']}") as ws:
        ws.receive_json()
        ws.send_text("not json")
        bad_json = ws.receive_json()
        ws.send_json({"type": "fly"})
        bad_type = ws.receive_json()
        ws.send_json({"type": "ping", "request_id": "p"})
        pong = ws.receive_json()

    assert bad_json["ok"] is False and bad_json["error"] == "invalid_argument"
    assert bad_type["ok"] is False and bad_type["error"] == "invalid_argument"
    assert pong["ok"] is True and pong["request_id"] == "p"


def test_socket_is_closed_when_game_is_deleted(client):
    created = create_game(client)
    game_id = created["game_id"]
    with client.websocket_connect(f"/ws/games/{game_id}") as ws:
        ws.receive_json()
        client.delete(f"{API}/games/{game_id}", headers=auth(created["admin_token"]))

        event = ws.receive_json()
        assert event["type"] == "game-deleted"
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_json()
    assert excinfo.value.code == 1000


def test_lobby_socket(client):
    with client.websocket_connect("/ws/lobby") as ws:
        initial = ws.receive_json()
        created = create_game(client)
        update = ws.receive_json()
        ws.send_json({"type": "ping"})
        pong = ws.receive_json()

    assert initial == {"type": "games-list", "data": []}
    assert update["type"] == "games-list-updated"
    assert [game["id"] for game in update["data"]] == [created["game_id"]]
    assert pong == {"type": "pong"}


def test_socket_delete_is_answered_before_close(client):
    created = create_game(client)
    game_id = created["game_id"]
    with client.websocket_connect(f"/ws/games/{game_id}") as observer:
        observer.receive_json()
        with client.websocket_connect(f"/ws/games/{game_id}") as ws:
            ws.receive_json()
            ws.send_json({"type": "delete", "request_id": "d1", "admin_token": created["admin_token"]})

            event = ws.receive_json()
            reply = ws.receive_json()
            with pytest.raises(WebSocketDisconnect) as closed:
                ws.receive_json()

        assert observer.receive_json()["type"] == "game-deleted"
        with pytest.raises(WebSocketDisconnect) as observer_closed:
            observer.receive_json()

    assert event["type"] == "game-deleted"
    assert reply["type"] == "reply"
    assert reply["request_id"] == "d1"
    assert reply["ok"] is True
    assert closed.value.code == 1000
    assert observer_closed.value.code == 1000
    assert client.get(f"{API}/games/{game_id}").status_code == 404


def test_socket_command_waiting_on_a_game_leaves_other_sockets_responsive(client):
    created = create_game(client)
    game_id = created["game_id"]
    entry = client.app.state.coordinator.registry.get(game_id)
    with client.websocket_connect("/ws/lobby") as lobby, client.websocket_connect(f"/ws/games/{game_id}") as ws:
        lobby.receive_json()
        ws.receive_json()

        entry.lock.acquire()
        try:
            ws.send_json({"type": "join", "request_id": "j1", "participant_id": "alice", "name": "Alice", "role": "retailer"})
            lobby.send_json({"type": "ping"})
            pong = lobby.receive_json()
        finally:
            entry.lock.release()

        broadcast = ws.receive_json()
        reply = ws.receive_json()
        update = lobby.receive_json()

    assert pong == {"type": "pong"}
    assert broadcast["type"] == "snapshot-updated"
    assert reply["request_id"] == "j1" and reply["ok"] is True
    assert update["type"] == "games-list-updated"
