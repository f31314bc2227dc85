"""
couchmodel — Application Tests
=================================

What:  Tests for the FastAPI app built by create_app().
How:   The app is called in-process through HTTPX's ASGITransport with a
       model over the in-memory FakeCouchDB.

What we test:
    ✅ The model's dispatcher is mounted and answers REST paths
    ✅ /health is answered by the app, not the dispatcher (200 / 503)
    ✅ X-Request-ID is generated or echoed
    ✅ Without REST options nothing but /health is served
"""

import httpx
import pytest

from couchmodel.exceptions import BackendFailure, ConflictError
from couchmodel.main import create_app


class TestMountedModel:

    @pytest.mark.asyncio
    async def test_rest_paths_reach_dispatcher(self, article_model, rest_client):
        app = create_app(article_model)

        async with rest_client(app) as client:
            found = await client.get("/by_slug/test_article_one_slug")
            forbidden = await client.get("/")

        expected = await article_model.find_one_by_slug("test_article_one_slug")
        assert found.status_code == 200
        assert found.json() == expected.to_value_object()
        assert forbidden.status_code == 403

    @pytest.mark.asyncio
    async def test_prefixed_model(self, make_model, article_views, articles, rest_client):
        model = make_model(views=article_views, restapi={"prefix": "/articles", "byID": True})
        for article in articles:
            await model.create(article).save()
        app = create_app(model)

        async with rest_client(app) as client:
            inside = await client.get("/articles/1")
            outside = await client.get("/1")

        assert inside.status_code == 200
        assert inside.json()["slug"] == "test_article_one_slug"
        assert outside.status_code == 404

    @pytest.mark.asyncio
    async def test_health_not_shadowed(self, make_model, rest_client):
        """A document called "health" never hides the health endpoint."""
        model = make_model(restapi={"byID": True})
        await model.create({"_id": "health", "status": "document"}).save()
        app = create_app(model)

        async with rest_client(app) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["rest_api"] == "mounted"

    @pytest.mark.asyncio
    async def test_prefix_makes_health_document_reachable(self, make_model, rest_client):
        model = make_model(restapi={"prefix": "/db", "byID": True})
        await model.create({"_id": "health", "status": "document"}).save()
        app = create_app(model)

        async with rest_client(app) as client:
            document = await client.get("/db/health")
            endpoint = await client.get("/health")

        assert document.status_code == 200
        assert document.json()["status"] == "document"
        assert endpoint.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_encoded_slash_through_app(self, make_model, store, rest_client):
        model = make_model(restapi={"byID": True})
        await model.create({"_id": "a/b"}).save()
        app = create_app(model)

        async with rest_client(app) as client:
            response = await client.get("/a%2Fb")

        assert response.status_code == 200
        assert response.json() == await store.get_by_id("a/b")


class TestHealth:

    @pytest.mark.asyncio
    async def test_unhealthy_when_database_unreachable(self, make_model, fake_couch, rest_client):
        app = create_app(make_model())
        fake_couch.transport_error = httpx.ConnectError("connection refused")

        async with rest_client(app) as client:
            response = await client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["database"] == "disconnected"
        assert body["rest_api"] == "disabled"

    @pytest.mark.asyncio
    async def test_no_rest_surface_without_options(self, make_model, rest_client):
        app = create_app(make_model())

        async with rest_client(app) as client:
            response = await client.get("/")

        assert response.status_code == 404


class TestRequestId:

    @pytest.mark.asyncio
    async def test_generated(self, make_model, rest_client):
        app = create_app(make_model(restapi={}))

        async with rest_client(app) as client:
            response = await client.get("/")

        assert response.status_code == 403
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_echoed(self, make_model, rest_client):
        app = create_app(make_model())

        async with rest_client(app) as client:
            response = await client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"


class TestExceptionHandlers:
    """Errors raised inside the application's own routes."""

    @pytest.mark.asyncio
    async def test_couchmodel_error_keeps_status(self, make_model, rest_client):
        app = create_app(make_model())

        @app.get("/conflict")
        async def conflict():
            raise ConflictError(context={"resource_id": "a"})

        async with rest_client(app) as client:
            response = await client.get("/conflict")

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "conflict"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_backend_failure_message_is_generic(self, make_model, rest_client):
        app = create_app(make_model())

        @app.get("/broken")
        async def broken():
            raise BackendFailure(message="CouchDB answered 500", context={"body": "secret"})

        async with rest_client(app) as client:
            response = await client.get("/broken")

        assert response.status_code == 500
        assert "secret" not in response.text
        assert "CouchDB answered" not in response.text
