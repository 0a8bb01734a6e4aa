from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import openai

from teamkb.core import deps as core_deps
from teamkb.models.article_models import Article
from teamkb.models.team_models import TeamMembership, TeamRole
from teamkb.services.embeddings import Embedder


def _article(author_id, article_id=1, team_id=None, title="Sample"):
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    return Article(
        id=article_id,
        title=title,
        content="Body text",
        meta={"category": "howto"},
        author_id=author_id,
        team_id=team_id,
        created_at=now,
        updated_at=now,
    )


def test_create_article_returns_camel_case_row(client, user, memberships):
    resp = client.post(
        "/api/articles",
        json={"title": "Deploy", "content": "Steps", "metadata": {"category": "ops"}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "Deploy"
    assert body["metadata"] == {"category": "ops"}
    assert body["authorId"] == str(user.id)
    assert body["teamId"] is None
    assert {"id", "createdAt", "updatedAt"}.issubset(body.keys())
    assert "embedding" not in body


def test_create_article_missing_fields_is_400(client, memberships):
    resp = client.post("/api/articles", json={"title": "Only title"})
    assert resp.status_code == 400
    assert "content" in resp.json()["message"]

    resp = client.post("/api/articles", json={"title": "  ", "content": "x"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Title is required"


def test_create_article_for_foreign_team_is_403(client, memberships):
    resp = client.post("/api/articles", json={"title": "T", "content": "C", "teamId": 42})
    assert resp.status_code == 403
    assert resp.json()["message"] == "Not a member of this team"


def test_create_article_embedding_failure_is_json_500(client, session, memberships, caplog):
    async def create(**kwargs):
        raise openai.OpenAIError("upstream unavailable")

    embedder = Embedder("text-embedding-3-small", None, client=SimpleNamespace(embeddings=SimpleNamespace(create=create)))
    client.app.dependency_overrides[core_deps.get_embedder] = lambda: embedder

    with caplog.at_level("ERROR", logger="teamkb.embeddings"):
        resp = client.post("/api/articles", json={"title": "Deploy", "content": "Steps"})

    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to create embedding"}
    assert session.added == []
    failures = [r for r in caplog.records if getattr(r, "event", None) == "embedding_failed"]
    assert failures and failures[0].exc_info is not None


def test_create_article_unauthenticated_is_401(anon_client):
    resp = anon_client.post("/api/articles", json={"title": "T", "content": "C"})
    assert resp.status_code == 401
    assert "message" in resp.json()


def test_list_articles_anonymous_is_empty(anon_client, session):
    session.results.append([_article(uuid.uuid4())])
    resp = anon_client.get("/api/articles?teamId=3")
    assert resp.status_code == 200
    assert resp.json() == []
    assert session.statements == []


def test_list_articles_with_invalid_token_is_empty(anon_client):
    resp = anon_client.get("/api/articles", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_list_team_articles_requires_membership(client, user, session, memberships):
    resp = client.get("/api/articles?teamId=3")
    assert resp.status_code == 403

    memberships.append(TeamMembership(team_id=3, user_id=user.id, role=TeamRole.MEMBER))
    session.results.append([_article(uuid.uuid4(), team_id=3)])
    resp = client.get("/api/articles?teamId=3")
    assert resp.status_code == 200
    assert [a["teamId"] for a in resp.json()] == [3]


def test_search_requires_query(client):
    resp = client.get("/api/articles/search")
    assert resp.status_code == 400
    resp = client.get("/api/articles/search?q=%20%20")
    assert resp.status_code == 400
    assert "message" in resp.json()


def test_search_without_query_is_400_even_for_foreign_team(client, memberships):
    resp = client.get("/api/articles/search?teamId=8")
    assert resp.status_code == 400
    assert "q" in resp.json()["message"]


def test_search_returns_matches(client, user, session, memberships):
    session.results.append([_article(user.id, 2, title="Deploy"), _article(user.id, 1, title="deploy v1")])
    resp = client.get("/api/articles/search?q=deploy")
    assert resp.status_code == 200
    assert [a["id"] for a in resp.json()] == [2, 1]


def test_search_anonymous_is_empty(anon_client):
    resp = anon_client.get("/api/articles/search?q=deploy")
    assert resp.status_code == 200
    assert resp.json() == []


def test_search_foreign_team_is_403(client, memberships):
    resp = client.get("/api/articles/search?q=deploy&teamId=8")
    assert resp.status_code == 403


def test_get_article_404_and_200(client, user, session, memberships):
    resp = client.get("/api/articles/12345")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Article not found"}

    session.seed(_article(user.id))
    resp = client.get("/api/articles/1")
    assert resp.status_code == 200
    assert resp.json()["content"] == "Body text"


def test_get_article_anonymous_never_leaks_content(anon_client, session):
    session.seed(_article(uuid.uuid4()))
    resp = anon_client.get("/api/articles/1")
    assert resp.status_code == 401
    assert "Body text" not in resp.text


def test_get_other_users_article_is_403(client, session, memberships):
    session.seed(_article(uuid.uuid4()))
    resp = client.get("/api/articles/1")
    assert resp.status_code == 403
    assert "Body text" not in resp.text


def test_update_article(client, user, session, memberships):
    original = _article(user.id)
    session.seed(original)
    resp = client.put("/api/articles/1", json={"title": "New", "content": "Changed"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "New"
    assert body["metadata"] == {"category": "howto"}
    assert body["updatedAt"] > body["createdAt"]


def test_update_article_explicit_null_metadata_clears_it(client, user, session, memberships):
    session.seed(_article(user.id))
    resp = client.put("/api/articles/1", json={"title": "New", "content": "Changed", "metadata": None})
    assert resp.status_code == 200
    assert resp.json()["metadata"] is None


def test_update_article_errors(client, memberships):
    assert client.put("/api/articles/77", json={"title": "T", "content": "C"}).status_code == 404
    assert client.put("/api/articles/77", json={"title": "T"}).status_code == 400


def test_update_article_unauthenticated(anon_client):
    assert anon_client.put("/api/articles/77", json={"title": "T", "content": "C"}).status_code == 401


def test_delete_article_twice(client, session):
    first = client.delete("/api/articles/5")
    second = client.delete("/api/articles/5")
    assert first.status_code == second.status_code == 200
    assert first.content == b""
    assert len(session.statements) == 2


def test_delete_article_unauthenticated(anon_client):
    assert anon_client.delete("/api/articles/5").status_code == 401
