from collections import Counter

import pytest

from conftest import ADMIN_EMAIL, register


def buy(client, gateway, headers, product="exam"):
    r = client.post("/api/create-payment-intent", json={"product": product}, headers=headers)
    assert r.status_code == 200, r.text
    intent_id = r.json()["clientSecret"].rsplit("_secret", 1)[0]
    gateway.succeed(intent_id)
    return intent_id


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["questions"] > 0


# ---- Questions ----

def test_practice_questions_are_public(client):
    r = client.get("/api/questions", params={"mode": "practice", "count": 10})
    assert r.status_code == 200
    questions = r.json()
    assert len(questions) == 10
    assert {"id", "topic", "question", "optionA", "optionB", "optionC", "optionD", "answer", "scenarioId"} <= set(questions[0])


def test_unknown_mode_is_a_bad_request(client):
    r = client.get("/api/questions", params={"mode": "marathon"})
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "validation_error"


@pytest.mark.parametrize("mode", ["exam", "scenario"])
def test_paid_modes_need_a_session(client, mode):
    r = client.get("/api/questions", params={"mode": mode})
    assert r.status_code == 401
    assert r.json()["error"]["status_code"] == 401


@pytest.mark.parametrize("mode", ["exam", "scenario"])
def test_paid_modes_need_an_entitlement(client, student, mode):
    _, headers = student
    r = client.get("/api/questions", params={"mode": mode}, headers=headers)
    assert r.status_code == 403


def test_exam_access_after_payment(client, gateway, student):
    _, headers = student
    intent_id = buy(client, gateway, headers, "exam")
    r = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["verified"] is True
    assert r.json()["product"] == "exam"

    r = client.get("/api/questions", params={"mode": "exam"}, headers=headers)
    assert r.status_code == 200
    questions = r.json()
    assert len(questions) == 50
    assert not any(q["scenarioId"] for q in questions)

    # An exam purchase does not unlock scenarios
    assert client.get("/api/questions", params={"mode": "scenario"}, headers=headers).status_code == 403


def test_bundle_unlocks_both_modes(client, gateway, student):
    _, headers = student
    intent_id = buy(client, gateway, headers, "bundle")
    r = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers)
    assert r.json()["expiresAt"] is not None

    r = client.get("/api/questions", params={"mode": "scenario"}, headers=headers)
    assert r.status_code == 200
    sizes = Counter(q["scenarioId"] for q in r.json())
    assert len(sizes) == 10 and set(sizes.values()) == {5}

    assert client.get("/api/check-exam-access", headers=headers).json() == {"hasAccess": True}
    assert client.get("/api/check-scenario-access", headers=headers).json() == {"hasAccess": True}


def test_topics_and_topic_exams(client):
    topics = client.get("/api/topics").json()
    assert topics == sorted(topics)
    assert "UK Taxation" in topics

    exams = client.get("/api/topic-exams").json()
    assert {"slug": "uk-taxation", "title": "UK Taxation", "topics": ["UK Taxation"], "questionCount": 16} in exams

    r = client.get("/api/topic-exams/uk-taxation")
    assert r.status_code == 200
    body = r.json()
    assert body["config"]["slug"] == "uk-taxation"
    assert len(body["questions"]) == 16
    assert {q["topic"] for q in body["questions"]} == {"UK Taxation"}

    r = client.get("/api/questions", params={"mode": "topic", "topic": "mortgage-law"})
    assert r.status_code == 200
    assert {q["topic"] for q in r.json()} == {"Mortgage Law"}


def test_unknown_topic_is_not_found(client):
    assert client.get("/api/topic-exams/astrology").status_code == 404
    assert client.get("/api/questions", params={"mode": "topic", "topic": "astrology"}).status_code == 404


def test_topic_mode_without_topic_is_a_bad_request(client):
    assert client.get("/api/questions", params={"mode": "topic"}).status_code == 400


def test_grade_quiz(client):
    payload = {
        "mode": "practice",
        "questions": [
            {"id": "q1", "topic": "UK Taxation", "answer": "A"},
            {"id": "q2", "topic": "UK Taxation", "answer": "B"},
            {"id": "q3", "topic": "Mortgage Law", "answer": "C"},
            {"id": "q4", "topic": "Mortgage Law", "answer": "D"},
            {"id": "q5", "topic": "Mortgage Law", "answer": "A"},
        ],
        "answers": {"q1": "A", "q2": "B", "q3": "C", "q4": "D", "q5": "B"},
    }
    r = client.post("/api/quiz/grade", json=payload)
    assert r.status_code == 200
    body = r.json()
    assert body["score"] == 4
    assert body["passMark"] == 4
    assert body["passed"] is True
    assert body["topicBreakdown"]["Mortgage Law"] == {"correct": 2, "total": 3}


# ---- Accounts ----

def test_register_login_me(client):
    user, headers = register(client, email="new@cemap-trainer.co.uk")
    assert user["isAdmin"] is False

    r = client.post("/api/login", json={"email": "NEW@cemap-trainer.co.uk", "password": "correct-horse"})
    assert r.status_code == 200
    assert r.json()["tokenType"] == "bearer"

    r = client.get("/api/me", headers=headers)
    assert r.json()["email"] == "new@cemap-trainer.co.uk"


def test_duplicate_registration_conflicts(client, student):
    r = client.post("/api/register", json={"email": "STUDENT@cemap-trainer.co.uk", "password": "another-pass", "name": "Sam Again"})
    assert r.status_code == 409
    assert r.json()["error"]["type"] == "conflict"


def test_bad_login(client, student):
    r = client.post("/api/login", json={"email": "student@cemap-trainer.co.uk", "password": "wrong-password"})
    assert r.status_code == 401


def test_invalid_registration_is_422(client):
    r = client.post("/api/register", json={"email": "not-an-email", "password": "short", "name": "X"})
    assert r.status_code == 422
    assert r.json()["error"]["message"] == "Validation error"


def test_garbage_token_is_rejected(client):
    r = client.get("/api/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401


def test_profile_lists_tokens(client, gateway, student):
    _, headers = student
    intent_id = buy(client, gateway, headers, "scenario")
    client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers)

    body = client.get("/api/profile", headers=headers).json()
    assert [t["product"] for t in body["tokens"]] == ["scenario"]
    assert body["hasScenarioAccess"] is True
    assert body["hasExamAccess"] is False


def test_delete_account(client, student):
    _, headers = student
    assert client.delete("/api/me", headers=headers).status_code == 204
    assert client.get("/api/me", headers=headers).status_code == 401


# ---- Payments ----

def test_replayed_verification_returns_the_same_token(client, gateway, student):
    _, headers = student
    intent_id = buy(client, gateway, headers)
    first = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers).json()
    second = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers).json()
    assert first["accessToken"] == second["accessToken"]


def test_unpaid_intent_is_rejected(client, gateway, student):
    _, headers = student
    client.post("/api/create-payment-intent", json={"product": "exam"}, headers=headers)
    intent_id = next(iter(gateway.intents))
    r = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "payment_error"
    assert client.get("/api/check-exam-access", headers=headers).json() == {"hasAccess": False}


def test_tampered_amount_is_rejected(client, gateway, student):
    _, headers = student
    intent_id = buy(client, gateway, headers, "bundle")
    gateway.intents[intent_id].amount = 1
    r = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=headers)
    assert r.status_code == 400


def test_foreign_payment_is_rejected(client, gateway, student):
    _, owner_headers = student
    intent_id = buy(client, gateway, owner_headers)
    _, other_headers = register(client, email="other@cemap-trainer.co.uk")
    r = client.post("/api/verify-payment", json={"paymentIntentId": intent_id}, headers=other_headers)
    assert r.status_code == 400


def test_unknown_product_is_422(client, student):
    _, headers = student
    r = client.post("/api/create-payment-intent", json={"product": "lifetime"}, headers=headers)
    assert r.status_code == 422


def test_payments_disabled_without_stripe(settings, engine, rng, clock):
    from fastapi.testclient import TestClient
    from cemap_trainer.main import create_app

    app = create_app(settings, engine=engine, rng=rng, clock=clock)
    with TestClient(app) as c:
        _, headers = register(c, email="nopay@cemap-trainer.co.uk")
        r = c.post("/api/create-payment-intent", json={"product": "exam"}, headers=headers)
    assert r.status_code == 503


# ---- Leaderboard ----

def test_leaderboard_flow(client, clock):
    r = client.post("/api/high-scores", json={"name": "A", "score": 49, "total": 50, "mode": "exam"})
    assert r.status_code == 201
    assert r.json()["id"] > 0
    clock.advance(minutes=1)
    client.post("/api/high-scores", json={"name": "B", "score": 45, "total": 50, "mode": "exam"})

    assert client.get("/api/all-time-high-score", params={"mode": "exam"}).json()["name"] == "A"
    weekly = client.get("/api/high-scores", params={"mode": "exam", "limit": 10}).json()
    assert [s["name"] for s in weekly] == ["B"]

    assert client.get("/api/all-time-high-score", params={"mode": "scenario"}).json() is None


@pytest.mark.parametrize("payload", [
    {"name": "A", "score": 51, "total": 50, "mode": "exam"},
    {"name": "A", "score": 1, "total": 0, "mode": "exam"},
    {"name": "A", "score": -1, "total": 50, "mode": "exam"},
    {"name": "", "score": 1, "total": 50, "mode": "exam"},
    {"name": "A" * 51, "score": 1, "total": 50, "mode": "exam"},
    {"name": "A", "score": 1, "total": 50, "mode": "practice"},
])
def test_invalid_scores_are_rejected(client, payload):
    assert client.post("/api/high-scores", json=payload).status_code == 422


def test_leaderboard_limit_bounds(client):
    assert client.get("/api/high-scores", params={"limit": 0}).status_code == 422
    assert client.get("/api/high-scores", params={"limit": 51}).status_code == 422


# ---- Admin ----

def test_admin_endpoints_require_admin(client, student):
    _, headers = student
    assert client.get("/api/admin/users").status_code == 401
    assert client.get("/api/admin/users", headers=headers).status_code == 403


def test_admin_grant_and_stats(client, admin, student):
    _, admin_headers = admin
    user, user_headers = student

    users = client.get("/api/admin/users", headers=admin_headers).json()
    assert {u["email"] for u in users} == {ADMIN_EMAIL, "student@cemap-trainer.co.uk"}

    r = client.post("/api/admin/grant-premium", json={"userId": user["id"], "daysValid": 7}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["product"] == "bundle"
    assert client.get("/api/check-exam-access", headers=user_headers).json() == {"hasAccess": True}

    stats = client.get("/api/admin/stats", headers=admin_headers).json()
    assert stats["users"] == 2
    assert stats["tokensByProduct"]["bundle"] == 1


def test_admin_grant_unknown_user(client, admin):
    _, admin_headers = admin
    r = client.post("/api/admin/grant-premium", json={"userId": "nobody", "daysValid": 7}, headers=admin_headers)
    assert r.status_code == 404


def test_admin_delete_user(client, admin, student):
    _, admin_headers = admin
    user, user_headers = student
    assert client.delete(f"/api/admin/users/{user['id']}", headers=admin_headers).status_code == 204
    assert client.get("/api/me", headers=user_headers).status_code == 401
