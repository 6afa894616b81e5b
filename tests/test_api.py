from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from catalog.api.v1 import actresses, cron, performers, products, sales, search
from catalog.config import Settings
from catalog.core import auth
from catalog.db.database import get_db
from catalog.main import app
from catalog.services import favorite_lists
from catalog.services.product_queries import ProductPage


class FakeSession:
    async def commit(self):
        pass

    async def refresh(self, obj):
        pass


async def fake_db():
    yield FakeSession()


@pytest.fixture
def client(monkeypatch, fake_cache):
    for module in (products, actresses, search, performers):
        monkeypatch.setattr(module, "get_cache", lambda: fake_cache)
    app.dependency_overrides[get_db] = fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _favorite_list(user_id="owner", is_public=True):
    return SimpleNamespace(
        id=1, user_id=user_id, title="List", description=None, is_public=is_public,
        view_count=0, like_count=0, created_at=None, updated_at=None,
    )


# ---- envelope ----

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}


def test_correlation_id_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc123"})
    assert response.headers["X-Correlation-ID"] == "abc123"


# ---- products ----

def test_products_limit_out_of_range_is_400(client):
    response = client.get("/api/products", params={"limit": 5})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "limit" in body["error"]


def test_products_negative_offset_is_400(client):
    assert client.get("/api/products", params={"offset": -1}).status_code == 400


def test_products_ids_force_page_shape(client, monkeypatch):
    calls = {}

    async def fake_get_products(db, options, sort, limit, offset):
        calls.update(options=options, sort=sort, limit=limit, offset=offset)
        return ProductPage(products=[], total=0, limit=limit, offset=offset)

    monkeypatch.setattr(products, "get_products", fake_get_products)
    response = client.get("/api/products", params={"ids": "3,x,5", "offset": 40, "sort": "bogus"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "products": [], "total": 0, "limit": 2, "offset": 0}
    assert calls["options"].ids == [3, 5]
    assert calls["sort"] == "releaseDateDesc"
    assert "s-maxage=3600" in response.headers["Cache-Control"]


def test_products_page_converts_to_offset_and_filters_are_lenient(client, monkeypatch):
    calls = {}

    async def fake_get_products(db, options, sort, limit, offset):
        calls.update(options=options, limit=limit, offset=offset)
        return ProductPage(products=[], total=0, limit=limit, offset=offset)

    monkeypatch.setattr(products, "get_products", fake_get_products)
    response = client.get("/api/products", params={
        "page": "3", "limit": 20, "minPrice": "abc", "priceRange": "500-2000",
        "query": "summer", "includeAsp": "fanza,mgs", "performerType": "nonsense",
    })

    assert response.status_code == 200
    assert calls["offset"] == 40
    assert calls["options"].min_price == 500
    assert calls["options"].max_price == 2000
    assert calls["options"].providers == ["fanza", "mgs"]
    assert calls["options"].performer_type is None
    assert "s-maxage=60" in response.headers["Cache-Control"]


def test_products_served_from_cache(client, monkeypatch, fake_cache):
    async def fail(*args, **kwargs):
        raise AssertionError("should not query")

    monkeypatch.setattr(products, "get_products", fail)
    options = products.build_filter_options(site_mode=products.settings.site_mode)
    key = products.CacheService.products_key({
        "options": options.__dict__, "sort": "releaseDateDesc", "limit": 96, "offset": 0,
    })
    fake_cache.store[key] = {"success": True, "products": [], "total": 7, "limit": 96, "offset": 0}

    assert client.get("/api/products").json()["total"] == 7


def test_products_single_provider_kept_apart_from_provider_list(client, monkeypatch):
    calls = {}

    async def fake_get_products(db, options, sort, limit, offset):
        calls.update(options=options)
        return ProductPage(products=[], total=0, limit=limit, offset=offset)

    monkeypatch.setattr(products, "get_products", fake_get_products)
    response = client.get("/api/products", params={"provider": "mgs", "providers": "fanza"})

    assert response.status_code == 200
    assert calls["options"].provider == "mgs"
    assert calls["options"].providers == ["fanza"]


def test_products_listing_scoped_to_configured_site_mode(client, monkeypatch):
    calls = {}

    async def fake_get_products(db, options, sort, limit, offset):
        calls.update(options=options)
        return ProductPage(products=[], total=0, limit=limit, offset=offset)

    monkeypatch.setattr(products, "get_products", fake_get_products)
    monkeypatch.setattr(products.settings, "site_mode", "fanza-only")

    assert client.get("/api/products").status_code == 200
    assert calls["options"].site_mode == "fanza-only"


def test_products_random_sort_is_never_cached(client, monkeypatch, fake_cache):
    calls = []

    async def fake_get_products(db, options, sort, limit, offset):
        calls.append(sort)
        return ProductPage(products=[], total=len(calls), limit=limit, offset=offset)

    monkeypatch.setattr(products, "get_products", fake_get_products)

    first = client.get("/api/products", params={"sort": "random"})
    second = client.get("/api/products", params={"sort": "random"})

    assert calls == ["random", "random"]
    assert first.json()["total"] == 1
    assert second.json()["total"] == 2
    assert fake_cache.store == {}


def test_products_service_error_is_500(client, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(products, "get_products", boom)
    response = client.get("/api/products")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to fetch products"}


# ---- search ----

def test_autocomplete_short_query_returns_empty(client):
    response = client.get("/api/search/autocomplete", params={"q": "a"})
    assert response.status_code == 200
    assert response.json() == {"results": []}


def test_autocomplete_results(client, monkeypatch):
    async def fake_search(db, q):
        return [{"type": "actress", "id": 1, "name": "佐藤", "count": 3}]

    monkeypatch.setattr(search, "search_suggestions", fake_search)
    response = client.get("/api/search/autocomplete", params={"q": "佐藤"})
    assert response.json()["results"][0]["name"] == "佐藤"


# ---- performers ----

def test_relations_invalid_id(client):
    response = client.get("/api/performers/abc/relations")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid performer ID"


def test_relations_missing_performer_is_404(client, monkeypatch):
    async def none(*args, **kwargs):
        return None

    monkeypatch.setattr(performers, "get_performer_network", none)
    assert client.get("/api/performers/5/relations").status_code == 404


def test_relations_clamps_params_and_caches(client, monkeypatch, fake_cache):
    seen = {}

    async def fake_network(db, performer_id, hops, limit_per_hop):
        seen.update(hops=hops, limit=limit_per_hop)
        return {"success": True, "performer": {"id": performer_id}, "relations": [], "edges": []}

    monkeypatch.setattr(performers, "get_performer_network", fake_network)
    response = client.get("/api/performers/5/relations", params={"hops": "9", "limit": "x"})

    assert response.status_code == 200
    assert seen == {"hops": 2, "limit": 8}
    assert list(fake_cache.ttls.values()) == [performers.settings.relations_cache_ttl_seconds]


def test_relations_failure_falls_back(client, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("query timeout")

    monkeypatch.setattr(performers, "get_performer_network", boom)
    response = client.get("/api/performers/5/relations")
    assert response.status_code == 200
    assert response.json()["fallback"] is True


# ---- sales ----

def test_for_you_failure_falls_back(client, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(sales, "get_for_you_sales", boom)
    response = client.get("/api/sales/for-you", params={"favoritePerformerIds": "1,2"})
    assert response.status_code == 200
    assert response.json() == {"success": False, "fallback": True, "products": []}


def test_for_you_passes_parsed_ids(client, monkeypatch):
    seen = {}

    async def fake_sales(db, favorite_performer_ids, recent_product_ids, limit):
        seen.update(favorites=favorite_performer_ids, recent=recent_product_ids, limit=limit)
        return []

    monkeypatch.setattr(sales, "get_for_you_sales", fake_sales)
    response = client.get("/api/sales/for-you", params={"favoritePerformerIds": "1,x", "recentProductIds": "a-1,b-2"})
    assert response.json() == {"success": True, "products": []}
    assert seen == {"favorites": [1], "recent": ["a-1", "b-2"], "limit": 8}


# ---- public lists ----

def test_create_list_requires_user(client):
    response = client.post("/api/public-lists", json={"title": "Favorites"})
    assert response.status_code == 401
    assert response.json()["error"] == "User ID required"


def test_create_list_rejects_short_title(client):
    response = client.post("/api/public-lists", json={"userId": "u1", "title": "x"})
    assert response.status_code == 400
    assert response.json()["error"] == "Title must be at least 2 characters"


def test_list_page_size_validated_strictly(client):
    assert client.get("/api/public-lists", params={"limit": 500}).status_code == 400


def test_private_list_hidden_from_other_users(client, monkeypatch):
    async def fake_get_list(db, list_id):
        return _favorite_list(is_public=False)

    monkeypatch.setattr(favorite_lists, "get_list", fake_get_list)
    response = client.get("/api/public-lists/1", params={"userId": "someone"})
    assert response.status_code == 403
    assert response.json()["error"] == "Access denied"


def test_owner_reads_private_list_without_counting_view(client, monkeypatch):
    async def fake_get_list(db, list_id):
        return _favorite_list(is_public=False)

    async def no_items(db, list_id):
        return []

    async def not_liked(db, list_id, user_id):
        return False

    monkeypatch.setattr(favorite_lists, "get_list", fake_get_list)
    monkeypatch.setattr(favorite_lists, "get_list_items", no_items)
    monkeypatch.setattr(favorite_lists, "user_liked", not_liked)

    response = client.get("/api/public-lists/1", params={"userId": "owner"})
    assert response.status_code == 200
    assert response.json()["list"]["item_count"] == 0


def test_visitor_read_returns_incremented_view_count(client, monkeypatch):
    class ViewCountingSession(FakeSession):
        async def execute(self, statement):
            return SimpleNamespace(scalar_one_or_none=lambda: 6)

    async def counting_db():
        yield ViewCountingSession()

    async def fake_get_list(db, list_id):
        listing = _favorite_list()
        listing.view_count = 5
        return listing

    async def no_items(db, list_id):
        return []

    async def not_liked(db, list_id, user_id):
        return False

    monkeypatch.setattr(favorite_lists, "get_list", fake_get_list)
    monkeypatch.setattr(favorite_lists, "get_list_items", no_items)
    monkeypatch.setattr(favorite_lists, "user_liked", not_liked)
    app.dependency_overrides[get_db] = counting_db

    response = client.get("/api/public-lists/1", params={"userId": "visitor"})

    assert response.status_code == 200
    assert response.json()["list"]["view_count"] == 6


def test_mutations_by_non_owner_are_not_found(client, monkeypatch):
    async def not_owned(db, list_id, user_id):
        return None

    async def not_deleted(db, list_id, user_id):
        return False

    monkeypatch.setattr(favorite_lists, "get_owned_list", not_owned)
    monkeypatch.setattr(favorite_lists, "delete_list", not_deleted)

    response = client.put("/api/public-lists/1", json={"userId": "someone", "title": "Renamed"})
    assert response.status_code == 404
    assert response.json()["error"] == "List not found or access denied"

    response = client.delete("/api/public-lists/1", params={"userId": "someone"})
    assert response.status_code == 404

    response = client.post("/api/public-lists/1/items", json={"userId": "someone", "productId": 3, "action": "add"})
    assert response.status_code == 404


def test_invalid_item_action(client):
    response = client.post("/api/public-lists/1/items", json={"userId": "owner", "productId": 3, "action": "move"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid action"


def test_cannot_like_own_list(client, monkeypatch):
    async def fake_get_list(db, list_id):
        return _favorite_list(user_id="owner")

    monkeypatch.setattr(favorite_lists, "get_list", fake_get_list)
    response = client.post("/api/public-lists/1/like", json={"userId": "owner"})
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot like own list"


def test_cannot_like_private_list(client, monkeypatch):
    async def fake_get_list(db, list_id):
        return _favorite_list(user_id="owner", is_public=False)

    monkeypatch.setattr(favorite_lists, "get_list", fake_get_list)
    response = client.request("DELETE", "/api/public-lists/1/like", json={"userId": "fan"})
    assert response.status_code == 403


# ---- cron ----

def test_cron_requires_secret(client):
    response = client.get("/api/cron/process-raw-data")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


def test_cron_rejects_wrong_secret(client, monkeypatch):
    monkeypatch.setattr(auth.settings, "cron_secret", "s3cret")
    response = client.get("/api/cron/process-raw-data", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


def test_cron_unknown_enhancement_type(client, monkeypatch):
    monkeypatch.setattr(auth.settings, "cron_secret", "s3cret")
    response = client.get(
        "/api/cron/enhance-content", params={"type": "ocr"}, headers={"X-Cron-Secret": "s3cret"},
    )
    assert response.status_code == 400
    assert response.json()["availableTypes"] == ["vision", "translate", "youtube"]


def test_cron_enhancement_not_configured(client, monkeypatch):
    monkeypatch.setattr(auth.settings, "cron_secret", "s3cret")
    monkeypatch.setattr(cron, "get_settings", lambda: Settings(google_api_key=None))
    response = client.get(
        "/api/cron/enhance-content", params={"type": "youtube"}, headers={"Authorization": "Bearer s3cret"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "YouTube API not configured"
    assert body["config"] == {"vision": False, "translation": False, "youtube": False}


def test_cron_unknown_seo_type(client, monkeypatch):
    monkeypatch.setattr(auth.settings, "cron_secret", "s3cret")
    response = client.get(
        "/api/cron/seo-enhance", params={"type": "backlinks"}, headers={"X-Cron-Secret": "s3cret"},
    )
    assert response.status_code == 400
    assert "sitemap" in response.json()["availableTypes"]


def test_cron_runs_raw_data_job(client, monkeypatch):
    monkeypatch.setattr(auth.settings, "cron_secret", "s3cret")
    seen = {}

    async def fake_process(db, limit, source):
        seen.update(limit=limit, source=source)
        return {"success": True, "message": "Raw data processing completed"}

    monkeypatch.setattr(cron.raw_data_processor, "process_raw_data", fake_process)
    response = client.get(
        "/api/cron/process-raw-data", params={"source": "HEYZO"}, headers={"X-Cron-Secret": "s3cret"},
    )
    assert response.status_code == 200
    assert seen == {"limit": 500, "source": "HEYZO"}


# ---- actresses ----

def test_actresses_limit_below_minimum_is_400(client):
    response = client.get("/api/actresses", params={"limit": 5})
    assert response.status_code == 400


def test_featured_actresses_capped(client, monkeypatch):
    seen = {}

    async def fake_featured(db, limit):
        seen["limit"] = limit
        return [{"id": 1, "name": "佐藤"}]

    monkeypatch.setattr(actresses, "get_featured_actresses", fake_featured)
    response = client.get("/api/actresses", params={"featured": "true", "limit": 50})

    assert response.status_code == 200
    assert seen["limit"] == 20
    assert response.json() == {"success": True, "actresses": [{"id": 1, "name": "佐藤"}], "total": 1}

