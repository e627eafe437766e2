# tests/test_api.py
from conftest import widget_product


def create_product(client, **overrides):
    resp = client.post("/products", json=widget_product(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200


def test_product_crud(client):
    product = create_product(client, dynamic_fields=[{"name": "Color", "value": "Red"}])
    assert product["id"] == 1
    assert product["dynamic_fields"][0]["field_name"] == "Color"

    resp = client.get(f"/products/{product['id']}")
    assert resp.status_code == 200
    assert resp.json() == product

    resp = client.put(f"/products/{product['id']}", json=widget_product(product_name="Renamed"))
    assert resp.status_code == 200, resp.text
    assert resp.json()["product_name"] == "Renamed"
    assert resp.json()["dynamic_fields"] == []

    resp = client.get("/products")
    assert [p["product_name"] for p in resp.json()] == ["Renamed"]

    resp = client.delete(f"/products/{product['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"deleted": True}
    assert client.get(f"/products/{product['id']}").status_code == 404


def test_search(client):
    create_product(client)
    assert len(client.get("/products/search", params={"q": "ACME"}).json()) == 1
    assert client.get("/products/search", params={"q": "zzz"}).json() == []
    assert len(client.get("/products/search").json()) == 1


def test_validation_error_is_422(client):
    resp = client.post("/products", json=widget_product(product_name=""))
    assert resp.status_code == 422
    body = resp.json()
    assert body["detail"] == "Required fields are missing or invalid"
    assert body["problems"]


def test_missing_product_is_404(client):
    assert client.get("/products/77").status_code == 404
    assert client.put("/products/77", json=widget_product()).status_code == 404
    assert client.get("/products/77/image").status_code == 404


def test_image_endpoints(client, make_sample_jpeg_bytes):
    product = create_product(client)
    files = {"file": ("photo.jpg", make_sample_jpeg_bytes(), "image/jpeg")}

    resp = client.post(f"/products/{product['id']}/image", files=files)
    assert resp.status_code == 201, resp.text
    image = resp.json()
    assert image["original_name"] == "photo.jpg"
    assert image["mime_type"] == "image/jpeg"
    assert image["base64_data"].startswith("data:image/jpeg;base64,")

    assert client.get(f"/products/{product['id']}/image").json()["image_id"] == image["image_id"]
    assert client.get(f"/images/{image['image_id']}").status_code == 200
    assert client.get("/stats").json()["total_images"] == 1

    assert client.delete(f"/products/{product['id']}/image").json() == {"deleted": 1}
    assert client.get(f"/images/{image['image_id']}").status_code == 404


def test_image_upload_errors(client):
    files = {"file": ("photo.jpg", b"not an image", "image/jpeg")}
    assert client.post("/products/9/image", files=files).status_code == 422

    product = create_product(client)
    assert client.post(f"/products/{product['id']}/image", files=files).status_code == 422


def test_image_upload_for_missing_product(client, make_sample_jpeg_bytes):
    files = {"file": ("photo.jpg", make_sample_jpeg_bytes(), "image/jpeg")}
    assert client.post("/products/9/image", files=files).status_code == 404


def test_stats(client):
    assert client.get("/stats").json() == {
        "total_products": 0, "total_companies": 0, "avg_price": 0, "total_images": 0,
    }
    create_product(client)
    assert client.get("/stats").json()["avg_price"] == 10


def test_export_and_import(client):
    create_product(client, product_name="Original")

    resp = client.get("/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/octet-stream"
    assert 'filename="inventory-export-' in resp.headers["content-disposition"]
    exported = resp.content

    create_product(client, product_name="Added later")
    resp = client.post("/import", files={"file": ("backup.db", exported, "application/octet-stream")})
    assert resp.status_code == 200, resp.text
    assert [p["product_name"] for p in client.get("/products").json()] == ["Original"]

    resp = client.post("/import", files={"file": ("backup.db", b"garbage", "application/octet-stream")})
    assert resp.status_code == 400
    assert [p["product_name"] for p in client.get("/products").json()] == ["Original"]


def test_export_json(client):
    create_product(client)
    resp = client.get("/export/json")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/json")
    assert resp.json()["products"][0]["product_name"] == "Widget"


def test_backend_failure_is_503(client, inventory):
    create_product(client)
    inventory.store._raw.execute("DROP TABLE dynamic_fields")
    assert client.get("/products").status_code == 503


def test_stats_storage_failure_is_503(client, inventory):
    create_product(client)
    inventory.store._raw.execute("DROP TABLE images")
    resp = client.get("/stats")
    assert resp.status_code == 503
