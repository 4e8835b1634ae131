import uuid

import jwt
from fastapi.testclient import TestClient

from config import settings
from main import app

client = TestClient(app)

DAY = "2026-10-17"


def anon_headers():
    return {"X-Anonymous-Id": f"test-{uuid.uuid4().hex}"}


def guess_body(correct=False, subject_id=949):
    return {"title": "Heat", "subjectId": subject_id, "mediaKind": "movie", "correct": correct}


def test_missing_day_is_unplayed():
    response = client.get(f"/game-state/{DAY}", headers=anon_headers())
    assert response.status_code == 200
    body = response.json()
    assert body["state"] is None
    assert body["status"] == "unplayed"
    assert body["info"]["status"] == "unplayed"
    assert body["info"]["displayText"] == "Not started"
    assert body["progress"] == 0
    assert body["resumeMessage"] == ""


def test_put_repairs_and_persists_legacy_state():
    headers = anon_headers()
    legacy = {
        "attempts": 1,
        "maxAttempts": 3,
        "guesses": [{"id": "a", "title": "X", "tmdbId": 5, "mediaType": "movie", "correct": False, "timestamp": 1000}],
        "completed": False,
        "won": False,
        "currentHintLevel": 1,
    }

    response = client.put(f"/game-state/{DAY}", json=legacy, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["isValid"] is False
    assert body["wasFixed"] is True
    assert body["issues"]
    assert body["validatedState"]["currentHintLevel"] == 2
    assert body["validatedState"]["attemptLog"][0]["subjectId"] == 5

    loaded = client.get(f"/game-state/{DAY}", headers=headers).json()
    assert loaded["status"] == "in-progress"
    assert loaded["info"]["canResume"] is True
    assert loaded["resumeMessage"] == "Continue from scene 2. 2 attempts remaining."
    assert loaded["state"]["attempts"] == 1
    assert loaded["state"]["date"] == DAY
    assert "guesses" not in loaded["state"]


def test_guess_and_skip_flow():
    headers = anon_headers()

    body = client.post(f"/game-state/{DAY}/guess", json=guess_body(correct=False), headers=headers).json()
    assert body["state"]["attempts"] == 1
    assert body["state"]["currentHintLevel"] == 2
    assert body["status"] == "in-progress"

    body = client.post(f"/game-state/{DAY}/skip", headers=headers).json()
    assert body["state"]["attempts"] == 2
    assert body["state"]["currentHintLevel"] == 3
    assert body["state"]["attemptLog"][-1]["kind"] == "skip"

    body = client.post(f"/game-state/{DAY}/guess", json=guess_body(correct=True), headers=headers).json()
    assert body["status"] == "completed-won"
    assert body["state"]["won"] is True
    assert body["state"]["currentHintLevel"] == 3

    # partida terminada: más intentos no cambian nada
    body = client.post(f"/game-state/{DAY}/skip", headers=headers).json()
    assert body["state"]["attempts"] == 3
    assert body["status"] == "completed-won"


def test_validate_is_a_dry_run():
    headers = anon_headers()
    response = client.post("/game-state/validate", json={"attempts": 7}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["isValid"] is False
    assert body["validatedState"]["completed"] is True

    missing = client.post("/game-state/validate").json()
    assert missing["isValid"] is False
    assert missing["wasFixed"] is False
    assert missing["validatedState"] is None


def test_list_game_states():
    headers = anon_headers()
    client.post("/game-state/2026-10-16/skip", headers=headers)
    client.post(f"/game-state/{DAY}/guess", json=guess_body(correct=True), headers=headers)

    body = client.get("/game-state", headers=headers).json()
    assert body["dates"] == ["2026-10-16", DAY]
    assert body["summary"] == {"games": 2, "completed": 1, "inProgress": 1}


def test_identity_is_required():
    response = client.get(f"/game-state/{DAY}")
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == 400
    assert body["path"] == f"/game-state/{DAY}"

    response = client.get(f"/game-state/{DAY}", headers={"X-Anonymous-Id": "bad id!"})
    assert response.status_code == 400


def test_bearer_token_scopes_state_to_user():
    token = jwt.encode({"sub": "42"}, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)
    auth = {"Authorization": f"Bearer {token}"}

    client.post(f"/game-state/{DAY}/skip", headers=auth)

    assert client.get(f"/game-state/{DAY}", headers=auth).json()["state"]["attempts"] == 1
    assert client.get(f"/game-state/{DAY}", headers=anon_headers()).json()["state"] is None


def test_invalid_date_is_422():
    response = client.get("/game-state/not-a-date", headers=anon_headers())
    assert response.status_code == 422
    assert response.json()["error"] == 422


def test_stats_record_finished_day():
    headers = anon_headers()

    response = client.post(f"/stats/me/{DAY}", headers=headers)
    assert response.status_code == 409

    client.post(f"/game-state/{DAY}/guess", json=guess_body(correct=True), headers=headers)
    stats = client.post(f"/stats/me/{DAY}", headers=headers).json()
    assert stats["gamesPlayed"] == 1
    assert stats["gamesWon"] == 1
    assert stats["currentStreak"] == 1
    assert client.get("/stats/me", headers=headers).json() == stats


def test_cleanup_export_import():
    headers = anon_headers()
    client.post("/game-state/2026-01-01/skip", headers=headers)
    client.post(f"/game-state/{DAY}/skip", headers=headers)

    exported = client.get("/maintenance/export", headers=headers).json()
    assert set(exported) == {"frameguessr-2026-01-01", f"frameguessr-{DAY}"}

    response = client.post("/maintenance/cleanup", params={"today": DAY}, headers=headers)
    assert response.json() == {"deleted": 1}
    assert client.get("/game-state", headers=headers).json()["dates"] == [DAY]

    other = anon_headers()
    assert client.post("/maintenance/import", json=exported, headers=other).json() == {"imported": True}
    assert client.get("/game-state", headers=other).json()["dates"] == ["2026-01-01", DAY]

    response = client.post("/maintenance/import", json=[1, 2], headers=other)
    assert response.status_code == 400


def test_health():
    assert client.get("/health/live").json() == {"status": "ok"}
    assert client.get("/health/ready").json() == {"status": "ok"}


def test_put_blank_state_keeps_stored_game():
    headers = anon_headers()
    client.post(f"/game-state/{DAY}/skip", headers=headers)

    blank = {"attempts": 0, "maxAttempts": 3, "attemptLog": [], "completed": False, "won": False, "currentHintLevel": 1}
    response = client.put(f"/game-state/{DAY}", json=blank, headers=headers)
    assert response.status_code == 200

    assert client.get(f"/game-state/{DAY}", headers=headers).json()["state"]["attempts"] == 1


def test_reset_game_state():
    headers = anon_headers()
    client.post(f"/game-state/{DAY}/guess", json=guess_body(correct=True), headers=headers)

    body = client.delete(f"/game-state/{DAY}", headers=headers).json()
    assert body["state"] is None
    assert body["status"] == "unplayed"

    assert client.get(f"/game-state/{DAY}", headers=headers).json()["state"] is None
    assert client.get("/game-state", headers=headers).json()["dates"] == []


def test_sync_keeps_the_most_advanced_game():
    headers = anon_headers()
    client.post(f"/game-state/{DAY}/guess", json=guess_body(correct=True), headers=headers)

    local = {"attempts": 2, "maxAttempts": 3, "completed": False, "won": False, "currentHintLevel": 3,
             "attemptLog": [{"id": "s1", "kind": "skip", "correct": False, "timestamp": 1},
                            {"id": "s2", "kind": "skip", "correct": False, "timestamp": 2}]}
    body = client.post(f"/game-state/{DAY}/sync", json=local, headers=headers).json()
    assert body["imported"] is False
    assert body["status"] == "completed-won"
    assert body["state"]["attempts"] == 1


def test_sync_imports_local_progress():
    headers = anon_headers()
    client.post(f"/game-state/{DAY}/skip", headers=headers)

    local = {"attempts": 1, "maxAttempts": 3, "completed": True, "won": True, "currentHintLevel": 1,
             "attemptLog": [{"id": "g1", "kind": "guess", "correct": True, "title": "Heat",
                             "subjectId": 949, "mediaKind": "movie", "timestamp": 1}]}
    body = client.post(f"/game-state/{DAY}/sync", json=local, headers=headers).json()
    assert body["imported"] is True
    assert body["status"] == "completed-won"
    assert body["progress"] == 100

    assert client.get(f"/game-state/{DAY}", headers=headers).json()["state"]["won"] is True


def test_sync_ignores_blank_local_state():
    headers = anon_headers()
    body = client.post(f"/game-state/{DAY}/sync", json={"attempts": 0}, headers=headers).json()
    assert body["imported"] is False
    assert body["state"] is None
    assert client.get("/game-state", headers=headers).json()["dates"] == []


def test_player_settings():
    headers = anon_headers()
    assert client.get("/settings/me", headers=headers).json() == {}

    assert client.put("/settings/me", json={"darkMode": True}, headers=headers).json() == {"darkMode": True}
    body = client.put("/settings/me", json={"highContrast": False}, headers=headers).json()
    assert body == {"darkMode": True, "highContrast": False}

    assert client.get("/settings/me", headers=headers).json() == body


def test_invalid_bearer_token_falls_back_to_anonymous_id():
    headers = anon_headers()
    client.post(f"/game-state/{DAY}/skip", headers=headers)

    for authorization in ("Bearer not-a-jwt", "Basic dXNlcjpwYXNz"):
        response = client.get(f"/game-state/{DAY}", headers={**headers, "Authorization": authorization})
        assert response.status_code == 200
        assert response.json()["state"]["attempts"] == 1

    response = client.get(f"/game-state/{DAY}", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 400
