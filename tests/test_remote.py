# tests/test_remote.py
import json
import re
from datetime import datetime, timezone

import httpx
import pytest

from conftest import widget_product
from inventory.bootstrap import open_remote
from inventory.errors import BackendError, NotFoundError
from inventory.utils.remote_client import RemoteTableClient, eq, in_


ILIKE_TERM = re.compile(r'(\w+)\.ilike\."\*((?:[^"\\]|\\.)*)\*"')


class FakeTableApi:
    """Minimal in-memory stand-in for the hosted table API."""

    def __init__(self):
        self.tables = {"products": [], "dynamic_fields": [], "images": []}
        self.next_id = {name: 1 for name in self.tables}
        self.requests = []
        self.fail = False

    def _matches(self, row, filters):
        for column, expr in filters.items():
            op, _, value = expr.partition(".")
            if op == "eq" and str(row.get(column)) != value:
                return False
            if op == "in" and str(row.get(column)) not in value.strip("()").split(","):
                return False
            if op == "not" and row.get(column) is None:
                return False
        return True

    def _search(self, row, expr):
        for column, pattern in ILIKE_TERM.findall(expr):
            needle = re.sub(r"\\(.)", r"\1", pattern).lower()
            if needle in str(row.get(column, "")).lower():
                return True
        return False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"message": "boom"})

        table = request.url.path.rsplit("/", 1)[-1]
        rows = self.tables[table]
        params = dict(request.url.params)
        select = params.pop("select", "*")
        order = params.pop("order", None)
        search = params.pop("or", None)
        matched = [r for r in rows if self._matches(r, params)]

        if request.method == "GET":
            if search:
                matched = [r for r in matched if self._search(r, search)]
            if order:
                for spec in reversed(order.split(",")):
                    column, _, direction = spec.partition(".")
                    matched.sort(key=lambda r: r[column], reverse=direction == "desc")
            if select != "*":
                columns = select.split(",")
                matched = [{c: r[c] for c in columns} for r in matched]
            return httpx.Response(200, json=matched)

        if request.method == "POST":
            created = []
            now = datetime.now(timezone.utc).isoformat()
            for row in json.loads(request.content):
                row = dict(row, id=self.next_id[table], created_at=now)
                if table == "products":
                    row["updated_at"] = now
                self.next_id[table] += 1
                rows.append(row)
                created.append(row)
            return httpx.Response(201, json=created)

        if request.method == "PATCH":
            values = json.loads(request.content)
            for row in matched:
                row.update(values)
            return httpx.Response(200, json=matched)

        if request.method == "DELETE":
            self.tables[table] = [r for r in rows if r not in matched]
            return httpx.Response(204)

        return httpx.Response(405)


@pytest.fixture
def api():
    return FakeTableApi()


@pytest.fixture
def remote(api):
    client = RemoteTableClient("https://example.test/rest/v1", api_key="secret", transport=httpx.MockTransport(api))
    inv = open_remote(client)
    yield inv
    inv.close()


def test_filter_helpers():
    assert eq(5) == "eq.5"
    assert in_([1, 2, 3]) == "in.(1,2,3)"


def test_client_sends_key_and_filters(api, remote):
    remote.products.get_by_id(3)

    request = api.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/products"
    assert request.url.params["id"] == "eq.3"
    assert request.headers["apikey"] == "secret"
    assert request.headers["authorization"] == "Bearer secret"


def test_widget_example(api, remote):
    added = remote.products.add_product(widget_product(dynamic_fields=[{"name": "Color", "value": "Red"}]))

    assert added.id == 1
    assert [f.field_name for f in added.dynamic_fields] == ["Color"]
    assert remote.products.get_all() == [added]
    assert remote.products.search("acme") == [added]
    assert remote.products.search("zzz") == []

    search = [r for r in api.requests if "or" in r.url.params][0]
    assert search.url.params["or"] == (
        '(product_name.ilike."*acme*",company_name.ilike."*acme*",product_quality.ilike."*acme*")'
    )


def test_search_term_with_punctuation_stays_one_condition(api, remote):
    added = remote.products.add_product(widget_product(company_name='Acme, Inc. (EU) "North"'))
    remote.products.add_product(widget_product(company_name="Acme"))

    assert remote.products.search("Acme, Inc. (EU)") == [added]
    assert remote.products.search('"North"') == [added]

    sent = [r.url.params["or"] for r in api.requests if "or" in r.url.params]
    assert sent[0] == (
        '(product_name.ilike."*Acme, Inc. (EU)*",company_name.ilike."*Acme, Inc. (EU)*",'
        'product_quality.ilike."*Acme, Inc. (EU)*")'
    )
    assert 'company_name.ilike."*\\"North\\"*"' in sent[1]


def test_update_replaces_fields_and_keeps_image(remote):
    added = remote.products.add_product(
        widget_product(image_id="img_1", dynamic_fields=[{"name": "A", "value": "1"}, {"name": "B", "value": "2"}])
    )
    updated = remote.products.update_product(added.id, widget_product(dynamic_fields=[{"name": "C", "value": "3"}]))

    assert [f.field_name for f in updated.dynamic_fields] == ["C"]
    assert updated.image_id == "img_1"
    assert remote.products.update_product(99, widget_product()) is None


def test_images_and_delete(api, remote, make_sample_jpeg_bytes):
    product = remote.products.add_product(widget_product())
    meta = {"original_name": "a.jpg", "file_size": 10, "mime_type": "image/jpeg"}

    first = remote.images.save_image(make_sample_jpeg_bytes(), meta, product.id)
    second = remote.images.save_image(make_sample_jpeg_bytes(), meta, product.id)

    assert len(api.tables["images"]) == 1
    assert remote.images.get_by_product_id(product.id).image_id == second.image_id
    assert remote.images.get_by_image_id(first.image_id) is None
    assert remote.products.get_by_id(product.id).image_id == second.image_id

    with pytest.raises(NotFoundError):
        remote.images.save_image(make_sample_jpeg_bytes(), meta, 42)

    assert remote.images.delete_image(product.id) == 1
    assert remote.products.get_by_id(product.id).image_id is None

    remote.products.delete_product(product.id)
    remote.products.delete_product(product.id)
    assert api.tables["products"] == []


def test_stats_are_computed_client_side(remote):
    assert remote.products.get_stats().model_dump() == {
        "total_products": 0, "total_companies": 0, "avg_price": 0, "total_images": 0,
    }
    remote.products.add_product(widget_product(retail_price=10.0))
    remote.products.add_product(widget_product(company_name="Other", retail_price=11.0))

    stats = remote.products.get_stats()
    assert stats.total_products == 2
    assert stats.total_companies == 2
    assert stats.avg_price == 11


def test_http_errors_become_backend_errors(api, remote):
    api.fail = True
    with pytest.raises(BackendError):
        remote.products.get_all()


def test_remote_export_and_import_json(api, remote):
    remote.products.add_product(widget_product(product_name="Exported"))
    artifact = remote.transfer.export()
    assert artifact.content_type == "application/json"

    remote.products.add_product(widget_product(product_name="Extra"))
    assert remote.transfer.import_artifact(artifact.payload) is True
    assert [p.product_name for p in remote.products.get_all()] == ["Exported"]
