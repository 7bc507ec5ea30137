import datetime

from travello.llm.backends import KEYWORD_REPLIES
from travello.memory.models import AiTurn, UserTurn
from travello.tests.conftest import USER_ID, ScriptedBackend


def test_chat_new_session(client, recording_store):
    resp = client.post("/chat", json={"message": "Rekomendasi wisata di Bali"})
    assert resp.status_code == 200, resp.text
    body = resp.json()

    assert body["success"] is True
    data = body["data"]
    assert data["sessionId"].startswith(f"session_{USER_ID}_")
    assert data["response"] in KEYWORD_REPLIES["wisata"]
    assert "Bali" in data["response"]
    assert data["timestamp"]
    assert len(data["suggestions"]) == 3

    assert recording_store.count_by_session(data["sessionId"]) == 2


def test_chat_keeps_given_session(client):
    first = client.post("/chat", json={"message": "Hotel di Bali", "sessionId": "trip-1"}).json()
    second = client.post("/chat", json={"message": "Kalau kuliner?", "sessionId": "trip-1"}).json()
    assert first["data"]["sessionId"] == second["data"]["sessionId"] == "trip-1"

    history = client.get("/chat/history", params={"sessionId": "trip-1"}).json()["data"]
    assert [h["role"] for h in history["history"]] == ["user", "ai", "user", "ai"]
    assert history["pagination"]["total"] == 4


def test_chat_rejects_empty_message(client, recording_store):
    for payload in ({"message": ""}, {"message": "   "}, {}):
        resp = client.post("/chat", json=payload)
        assert resp.status_code == 400, resp.text
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "Pesan tidak boleh kosong"
    assert recording_store.appended == []


def test_chat_rejects_oversized_message(client):
    resp = client.post("/chat", json={"message": "a" * 4001})
    assert resp.status_code == 400
    assert "4000" in resp.json()["error"]


def test_chat_generation_failure(make_client, recording_store):
    client = make_client(ScriptedBackend(PermissionError("invalid api key")))

    resp = client.post("/chat", json={"message": "Halo", "sessionId": "s-fail"})
    assert resp.status_code == 500
    body = resp.json()
    assert body == {"success": False, "error": "Maaf, gagal menghasilkan respons. Silakan coba lagi."}
    assert "invalid api key" not in resp.text

    assert recording_store.appended == []
    assert recording_store.count_by_session("s-fail") == 0


def test_routes_require_a_user(make_client):
    client = make_client(headers={})

    assert client.post("/chat", json={"message": "Halo"}).status_code == 401
    assert client.get("/chat/history", params={"sessionId": "s1"}).status_code == 401
    assert client.get("/chat/suggestions").status_code == 401
    assert client.delete("/chat/clear", params={"sessionId": "s1"}).status_code == 401

    resp = client.get("/chat/stats")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "User not authenticated"}


def test_clear_then_history(client, recording_store):
    recording_store.append(UserTurn(session_id="s1", text="Ke Bali", user_id=USER_ID))
    recording_store.append(AiTurn(session_id="s1", text="Bali indah", user_id=USER_ID))
    recording_store.append(UserTurn(session_id="s1", text="Hotelnya?", user_id=USER_ID))

    resp = client.delete("/chat/clear", params={"sessionId": "s1"})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"deletedCount": 3, "sessionId": "s1"}

    again = client.delete("/chat/clear", params={"sessionId": "s1"})
    assert again.json()["data"]["deletedCount"] == 0

    history = client.get("/chat/history", params={"sessionId": "s1"}).json()["data"]
    assert history["history"] == []
    assert history["pagination"]["total"] == 0


def test_clear_requires_session_id(client):
    resp = client.delete("/chat/clear")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_history_pagination(client, recording_store):
    for i in range(5):
        recording_store.append(UserTurn(session_id="s1", text=f"pesan {i}", user_id=USER_ID))

    data = client.get("/chat/history", params={"sessionId": "s1", "page": 1, "limit": 2}).json()["data"]
    assert [h["content"] for h in data["history"]] == ["pesan 3", "pesan 4"]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 5, "totalPages": 3}
    entry = data["history"][0]
    assert set(entry) == {"id", "role", "content", "timestamp", "sessionId"}

    last = client.get("/chat/history", params={"sessionId": "s1", "page": 3, "limit": 2}).json()["data"]
    assert [h["content"] for h in last["history"]] == ["pesan 0"]


def test_history_without_session_lists_user_turns(client, recording_store):
    earlier = datetime.datetime(2025, 6, 13, 9, 0, tzinfo=datetime.timezone.utc)
    later = earlier + datetime.timedelta(minutes=5)
    recording_store.append(UserTurn(session_id="a", text="satu", user_id=USER_ID, timestamp=earlier))
    recording_store.append(UserTurn(session_id="b", text="dua", user_id=USER_ID, timestamp=later))
    recording_store.append(UserTurn(session_id="c", text="bukan milikku", user_id="someone-else"))

    data = client.get("/chat/history").json()["data"]
    assert [h["content"] for h in data["history"]] == ["satu", "dua"]
    assert data["sessionId"] is None


def test_history_rejects_bad_paging(client):
    resp = client.get("/chat/history", params={"sessionId": "s1", "page": 0})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_suggestions(client, recording_store):
    default = client.get("/chat/suggestions", params={"sessionId": "empty"}).json()["data"]
    assert default["suggestions"] == ["Destinasi populer", "Hotel terdekat", "Tips traveling"]

    recording_store.append(AiTurn(session_id="s1", text="Yogyakarta punya banyak candi", user_id=USER_ID))
    data = client.get("/chat/suggestions", params={"sessionId": "s1"}).json()["data"]
    assert data["suggestions"][0] == "Candi Borobudur"
    assert data["sessionId"] == "s1"


def test_health_is_public(make_client):
    client = make_client(headers={})
    resp = client.get("/chat/health")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "Healthy"
    assert data["backend"] == "keyword"
    assert data["service"] == "Travello Chat Assistant"


def test_health_reports_broken_backend(make_client, recording_store):
    client = make_client(ScriptedBackend(PermissionError("no key")))
    resp = client.get("/chat/health")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Unhealthy"
    assert recording_store.appended == []


def test_stats(client):
    client.post("/chat", json={"message": "Wisata di Bali", "sessionId": "a"})
    client.post("/chat", json={"message": "Hotel di Lombok", "sessionId": "b"})

    data = client.get("/chat/stats").json()["data"]
    assert data["totalChats"] == 4
    assert data["totalSessions"] == 2
    assert data["averageResponseTime"] >= 0
    assert data["uptime"] >= 0


def test_foreign_role_rows_do_not_break_the_session(client, recording_store):
    from travello.tests.conftest import seed_raw_row

    seed_raw_row(recording_store, "s1", "assistant", "Bali itu indah", user_id=USER_ID)

    resp = client.post("/chat", json={"message": "Halo", "sessionId": "s1"})
    assert resp.status_code == 200, resp.text

    suggestions = client.get("/chat/suggestions", params={"sessionId": "other"}).json()
    assert suggestions["data"]["suggestions"] == ["Destinasi populer", "Hotel terdekat", "Tips traveling"]

    history = client.get("/chat/history", params={"sessionId": "s1"})
    assert history.status_code == 200
    assert [h["role"] for h in history.json()["data"]["history"]] == ["user", "ai"]


def test_suggestions_ignore_foreign_role_rows(client, recording_store):
    from travello.tests.conftest import seed_raw_row

    seed_raw_row(recording_store, "s2", "assistant", "Hotel murah di Bali", user_id=USER_ID)

    resp = client.get("/chat/suggestions", params={"sessionId": "s2"})
    assert resp.status_code == 200
    assert resp.json()["data"]["suggestions"] == ["Destinasi populer", "Hotel terdekat", "Tips traveling"]


def test_unexpected_errors_keep_the_envelope(store, make_generation):
    from fastapi.testclient import TestClient

    from travello.backend.app import create_app
    from travello.memory.crud import MessageStore

    class BrokenCountStore(MessageStore):
        def count_by_session(self, session_id):
            raise RuntimeError("lost the connection pool")

    broken = BrokenCountStore(store._session_factory)
    client = TestClient(
        create_app(store=broken, generation=make_generation()),
        raise_server_exceptions=False,
    )
    client.headers.update({"X-User-Id": USER_ID})

    resp = client.get("/chat/history", params={"sessionId": "s1"})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Terjadi kesalahan pada server."}
    assert "connection pool" not in resp.text


def test_overlong_user_id_is_not_trusted(make_client, recording_store):
    client = make_client(headers={"X-User-Id": "u" * 65})

    resp = client.post("/chat", json={"message": "Halo"})
    assert resp.status_code == 401
    assert recording_store.appended == []
