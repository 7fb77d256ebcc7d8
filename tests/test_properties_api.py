import json

from fixtures_seed import create_property_row, property_payload

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _form(**overrides) -> dict:
    """Multipart fields for a create request; nested objects go as JSON strings."""
    payload = property_payload(**overrides)
    data = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            data[key] = json.dumps(value)
        elif isinstance(value, list):
            data[key] = [str(v) for v in value]
        else:
            data[key] = str(value)
    return data


def _images(*names, content_type="image/png", body=PNG):
    return [("images", (name, body, content_type)) for name in names]


async def _create_with_images(client, headers, *names, **overrides) -> dict:
    r = await client.post("/api/properties", data=_form(**overrides), files=_images(*names), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]["property"]


class TestCreate:
    async def test_json_create(self, client, admin_headers, admin_user):
        payload = property_payload(
            images=["https://cdn.example.com/a.jpg"],
            features=["Pool", " Balcony ", "Pool"],
            utilities={"heating": True},
            contactInfo={"agentName": "Jo", "agentEmail": "Jo@Example.com"},
        )
        r = await client.post("/api/properties", json=payload, headers=admin_headers)
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["message"] == "Property created successfully"

        prop = body["data"]["property"]
        assert prop["id"].startswith("prp_")
        assert prop["_id"] == prop["id"]
        assert prop["status"] == "available"
        assert prop["features"] == ["Pool", "Balcony"]
        assert prop["images"] == ["https://cdn.example.com/a.jpg"]
        assert prop["utilities"] == {
            "heating": True,
            "cooling": False,
            "electricity": True,
            "water": True,
            "internet": False,
        }
        assert prop["contactInfo"]["agentEmail"] == "jo@example.com"
        assert prop["coordinates"] == {"latitude": 40.7589, "longitude": -73.9851}
        assert prop["pricePerSqFt"] == 375
        assert prop["formattedPrice"] == "$450,000"
        assert prop["parkingSpaces"] == 0
        assert prop["petFriendly"] is False

    async def test_json_create_without_features(self, client, admin_headers):
        payload = property_payload()
        del payload["features"]
        r = await client.post("/api/properties", json=payload, headers=admin_headers)
        assert r.status_code == 201, r.text
        assert r.json()["data"]["property"]["features"] == []

        r = await client.post("/api/properties", json=property_payload(features=[]), headers=admin_headers)
        assert r.status_code == 201, r.text
        assert r.json()["data"]["property"]["features"] == []

    async def test_multipart_create_without_features(self, client, admin_headers):
        data = _form()
        del data["features"]
        r = await client.post("/api/properties", data=data, files=_images("front.png"), headers=admin_headers)
        assert r.status_code == 201, r.text
        prop = r.json()["data"]["property"]
        assert prop["features"] == []
        assert len(prop["images"]) == 1

        # and it reads back the same way
        r = await client.get(f"/api/properties/{prop['id']}")
        assert r.json()["data"]["property"]["features"] == []

    async def test_negative_price_is_rejected(self, client, admin_headers):
        r = await client.post("/api/properties", json=property_payload(price=-5), headers=admin_headers)
        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert "price" in {e["field"] for e in body["errors"]}

    async def test_missing_and_invalid_fields(self, client, admin_headers):
        payload = property_payload(type="castle", title="ab", images=["ftp://nope/x.jpg"])
        del payload["coordinates"]
        r = await client.post("/api/properties", json=payload, headers=admin_headers)
        assert r.status_code == 400
        fields = {e["field"] for e in r.json()["errors"]}
        assert {"type", "title", "images", "coordinates"} <= fields

    async def test_year_built_range(self, client, admin_headers):
        r = await client.post("/api/properties", json=property_payload(yearBuilt=1700), headers=admin_headers)
        assert r.status_code == 400
        assert r.json()["errors"][0]["field"] == "yearBuilt"

    async def test_non_object_json_body(self, client, admin_headers):
        r = await client.post("/api/properties", json=[1, 2], headers=admin_headers)
        assert r.status_code == 400

    async def test_multipart_create_with_images(self, client, admin_headers, image_store):
        prop = await _create_with_images(client, admin_headers, "front.png", "back.png")

        assert len(prop["images"]) == 2
        for url in prop["images"]:
            assert url.startswith("/uploads/properties/")
            assert image_store.resolve_path(url).exists()
        assert prop["bedrooms"] == 2
        assert prop["bathrooms"] == 1.5
        assert prop["features"] == ["Balcony"]

    async def test_rejects_non_image_upload(self, client, admin_headers, image_store):
        r = await client.post(
            "/api/properties",
            data=_form(),
            files=_images("notes.txt", content_type="text/plain"),
            headers=admin_headers,
        )
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid file type. Only image files are allowed."
        assert list(image_store.dir.iterdir()) == []

    async def test_rejects_oversized_upload(self, client, admin_headers):
        big = b"\x00" * (1024 * 1024 + 1)
        r = await client.post(
            "/api/properties", data=_form(), files=_images("big.png", body=big), headers=admin_headers
        )
        assert r.status_code == 400
        assert r.json()["message"].startswith("File too large")

    async def test_rejects_too_many_uploads(self, client, admin_headers):
        names = [f"img{i}.png" for i in range(11)]
        r = await client.post("/api/properties", data=_form(), files=_images(*names), headers=admin_headers)
        assert r.status_code == 400
        assert r.json()["message"] == "Too many files. Maximum 10 files allowed."


class TestList:
    async def test_price_and_bedroom_filters(self, client, db_session):
        a = await create_property_row(db_session, price=500000, bedrooms=2, age_minutes=1)
        b = await create_property_row(db_session, price=550000, bedrooms=3, age_minutes=2)
        await create_property_row(db_session, price=450000, bedrooms=2, status="sold", age_minutes=3)
        await create_property_row(db_session, price=700000, bedrooms=2, age_minutes=4)
        await create_property_row(db_session, price=450000, bedrooms=1, age_minutes=5)

        r = await client.get("/api/properties", params={"minPrice": 400000, "maxPrice": 600000, "bedrooms": 2})
        assert r.status_code == 200
        data = r.json()["data"]
        assert [p["id"] for p in data["properties"]] == [b.id, a.id]
        assert all(p["status"] == "available" for p in data["properties"])
        assert data["pagination"] == {
            "page": 1,
            "limit": 12,
            "total": 2,
            "pages": 1,
            "hasNext": False,
            "hasPrev": False,
        }
        assert data["filters"]["applied"] == {"minPrice": "400000", "maxPrice": "600000", "bedrooms": "2"}
        assert "studio" in data["filters"]["available"]["types"]

    async def test_sort_and_paging(self, client, db_session):
        cheap = await create_property_row(db_session, price=100000)
        mid = await create_property_row(db_session, price=200000)
        dear = await create_property_row(db_session, price=300000)

        r = await client.get("/api/properties", params={"sort": "-price", "limit": 2})
        data = r.json()["data"]
        assert [p["id"] for p in data["properties"]] == [dear.id, mid.id]
        assert data["pagination"]["hasNext"] is True

        r = await client.get("/api/properties", params={"sort": "-price", "limit": 2, "page": 2})
        assert [p["id"] for p in r.json()["data"]["properties"]] == [cheap.id]

    async def test_repeated_features_must_all_match(self, client, db_session):
        both = await create_property_row(db_session, features=["Balcony", "Pool"])
        await create_property_row(db_session, features=["Pool"])

        r = await client.get("/api/properties", params=[("features", "Balcony"), ("features", "Pool")])
        assert [p["id"] for p in r.json()["data"]["properties"]] == [both.id]

    async def test_admin_can_widen_status(self, client, db_session, admin_headers, user_headers):
        await create_property_row(db_session, status="available")
        await create_property_row(db_session, status="sold")

        r = await client.get("/api/properties", params={"status": "all"}, headers=admin_headers)
        assert r.json()["data"]["pagination"]["total"] == 2

        r = await client.get("/api/properties", params={"status": "sold"}, headers=admin_headers)
        assert [p["status"] for p in r.json()["data"]["properties"]] == ["sold"]

        r = await client.get("/api/properties", headers=admin_headers)
        assert [p["status"] for p in r.json()["data"]["properties"]] == ["available"]

        r = await client.get("/api/properties", params={"status": "all"}, headers=user_headers)
        assert r.json()["data"]["pagination"]["total"] == 1

    async def test_invalid_token_browses_anonymously(self, client, db_session):
        await create_property_row(db_session, status="sold")
        r = await client.get(
            "/api/properties", params={"status": "all"}, headers={"Authorization": "Bearer junk"}
        )
        assert r.status_code == 200
        assert r.json()["data"]["properties"] == []

    async def test_geo_search(self, client, db_session):
        near = await create_property_row(db_session, coordinates={"latitude": 40.76, "longitude": -73.98})
        await create_property_row(db_session, coordinates={"latitude": 34.05, "longitude": -118.24})

        r = await client.get("/api/properties", params={"latitude": 40.7589, "longitude": -73.9851, "radius": 5})
        assert [p["id"] for p in r.json()["data"]["properties"]] == [near.id]

        r = await client.get("/api/properties", params={"latitude": 0, "longitude": 0, "radius": 5})
        data = r.json()["data"]
        assert data["properties"] == []
        assert data["pagination"]["total"] == 0

    async def test_bad_query_values(self, client):
        r = await client.get("/api/properties", params={"bedrooms": "abc"})
        assert r.status_code == 400
        assert r.json()["errors"][0]["field"] == "bedrooms"

        assert (await client.get("/api/properties", params={"limit": 101})).status_code == 400
        assert (await client.get("/api/properties", params={"page": 0})).status_code == 400
        assert (await client.get("/api/properties", params={"status": "bogus"})).status_code == 400
        assert (await client.get("/api/properties", params={"radius": 500})).status_code == 400


class TestDetail:
    async def test_hidden_listing_is_not_found_for_public(self, client, db_session, admin_headers, user_headers):
        sold = await create_property_row(db_session, status="sold")
        url = f"/api/properties/{sold.id}"

        assert (await client.get(url)).status_code == 404
        assert (await client.get(url, headers=user_headers)).status_code == 404

        r = await client.get(url, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["data"]["property"]["status"] == "sold"

    async def test_unknown_and_malformed_ids(self, client):
        for pid in ("prp_" + "0" * 32, "not-an-id", "usr_" + "0" * 32):
            r = await client.get(f"/api/properties/{pid}")
            assert r.status_code == 404
            assert r.json()["message"] == "Property not found"


class TestUpdate:
    async def test_partial_json_update(self, client, db_session, admin_headers, admin_user):
        prop = await create_property_row(db_session, utilities={"heating": True})

        r = await client.put(
            f"/api/properties/{prop.id}",
            json={"price": 480000.5, "coordinates": {"latitude": 41.0}, "utilities": {"internet": True}},
            headers=admin_headers,
        )
        assert r.status_code == 200, r.text
        out = r.json()["data"]["property"]
        assert out["price"] == 480000.5
        assert out["formattedPrice"] == "$480,000.5"
        assert out["title"] == "Modern Downtown Apartment"
        assert out["coordinates"] == {"latitude": 41.0, "longitude": -73.9851}
        assert out["utilities"]["heating"] is True
        assert out["utilities"]["internet"] is True
        assert out["features"] == ["Balcony"]

    async def test_features_are_replaced(self, client, db_session, admin_headers):
        prop = await create_property_row(db_session, features=["Balcony", "Garage"])
        r = await client.put(f"/api/properties/{prop.id}", json={"features": "Pool,Gym"}, headers=admin_headers)
        assert r.json()["data"]["property"]["features"] == ["Pool", "Gym"]

    async def test_required_fields_cannot_be_cleared(self, client, db_session, admin_headers):
        prop = await create_property_row(db_session)
        r = await client.put(f"/api/properties/{prop.id}", json={"title": None}, headers=admin_headers)
        assert r.status_code == 400
        assert r.json()["errors"][0]["field"] == "title"

    async def test_status_change_hides_listing(self, client, db_session, admin_headers):
        prop = await create_property_row(db_session)
        r = await client.put(f"/api/properties/{prop.id}", json={"status": "rented"}, headers=admin_headers)
        assert r.status_code == 200
        assert (await client.get(f"/api/properties/{prop.id}")).status_code == 404

    async def test_update_missing_property(self, client, admin_headers):
        r = await client.put(f"/api/properties/prp_{'0' * 32}", json={"price": 1}, headers=admin_headers)
        assert r.status_code == 404

    async def test_uploads_append(self, client, admin_headers):
        prop = await _create_with_images(client, admin_headers, "one.png")
        r = await client.put(
            f"/api/properties/{prop['id']}", data={"price": "460000"}, files=_images("two.png"), headers=admin_headers
        )
        assert r.status_code == 200, r.text
        images = r.json()["data"]["property"]["images"]
        assert len(images) == 2
        assert images[0] == prop["images"][0]

    async def test_replace_images_removes_old_files(self, client, admin_headers, image_store):
        prop = await _create_with_images(client, admin_headers, "old.png")
        old = prop["images"][0]

        r = await client.put(
            f"/api/properties/{prop['id']}",
            data={"replaceImages": "true"},
            files=_images("new.png"),
            headers=admin_headers,
        )
        assert r.status_code == 200, r.text
        images = r.json()["data"]["property"]["images"]
        assert len(images) == 1
        assert images[0] != old
        assert image_store.resolve_path(images[0]).exists()
        assert not image_store.resolve_path(old).exists()

    async def test_images_to_delete(self, client, admin_headers, image_store):
        prop = await _create_with_images(client, admin_headers, "a.png", "b.png")
        gone, kept = prop["images"]

        r = await client.put(
            f"/api/properties/{prop['id']}", json={"imagesToDelete": [gone]}, headers=admin_headers
        )
        assert r.json()["data"]["property"]["images"] == [kept]
        assert not image_store.resolve_path(gone).exists()
        assert image_store.resolve_path(kept).exists()


class TestDelete:
    async def test_delete_removes_row_and_files(self, client, admin_headers, image_store):
        prop = await _create_with_images(client, admin_headers, "a.png", "b.png")

        r = await client.delete(f"/api/properties/{prop['id']}", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["message"] == "Property deleted successfully"
        for url in prop["images"]:
            assert not image_store.resolve_path(url).exists()

        r = await client.get(f"/api/properties/{prop['id']}", headers=admin_headers)
        assert r.status_code == 404

        r = await client.delete(f"/api/properties/{prop['id']}", headers=admin_headers)
        assert r.status_code == 404

    async def test_remove_single_image(self, client, admin_headers, image_store):
        prop = await _create_with_images(client, admin_headers, "a.png", "b.png")
        first, second = prop["images"]
        url = f"/api/properties/{prop['id']}/images"

        r = await client.request("DELETE", url, headers=admin_headers)
        assert r.status_code == 400
        assert r.json()["message"] == "Image URL is required"

        r = await client.request("DELETE", url, json={"imageUrl": "/uploads/properties/nope.png"}, headers=admin_headers)
        assert r.status_code == 404
        assert r.json()["message"] == "Image not found in property"

        r = await client.request("DELETE", url, json={"imageUrl": first}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["data"]["property"]["images"] == [second]
        assert not image_store.resolve_path(first).exists()

    async def test_shared_image_survives_until_last_reference(self, client, admin_headers, image_store):
        first = await _create_with_images(client, admin_headers, "shared.png")
        shared = first["images"][0]

        r = await client.post(
            "/api/properties", json=property_payload(images=[shared]), headers=admin_headers
        )
        assert r.status_code == 201, r.text
        second = r.json()["data"]["property"]

        r = await client.delete(f"/api/properties/{first['id']}", headers=admin_headers)
        assert r.status_code == 200
        assert image_store.resolve_path(shared).exists()

        r = await client.delete(f"/api/properties/{second['id']}", headers=admin_headers)
        assert r.status_code == 200
        assert not image_store.resolve_path(shared).exists()

    async def test_shared_image_kept_on_remove_and_replace(self, client, admin_headers, image_store):
        first = await _create_with_images(client, admin_headers, "a.png", "b.png")
        a, b = first["images"]
        r = await client.post(
            "/api/properties", json=property_payload(images=[a, b]), headers=admin_headers
        )
        assert r.status_code == 201, r.text

        r = await client.request(
            "DELETE", f"/api/properties/{first['id']}/images", json={"imageUrl": a}, headers=admin_headers
        )
        assert r.status_code == 200
        assert image_store.resolve_path(a).exists()

        r = await client.put(
            f"/api/properties/{first['id']}",
            data={"replaceImages": "true"},
            files=_images("c.png"),
            headers=admin_headers,
        )
        assert r.status_code == 200, r.text
        assert image_store.resolve_path(b).exists()

    async def test_non_admin_cannot_delete(self, client, db_session, user_headers):
        prop = await create_property_row(db_session)
        r = await client.delete(f"/api/properties/{prop.id}", headers=user_headers)
        assert r.status_code == 403


class TestStats:
    async def test_empty(self, client, admin_headers):
        r = await client.get("/api/properties/admin/stats", headers=admin_headers)
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["overview"]["totalProperties"] == 0
        assert data["overview"]["averagePrice"] == 0
        assert data["byType"] == []

    async def test_overview_and_by_type(self, client, db_session, admin_headers):
        await create_property_row(db_session, type="house", price=300000)
        await create_property_row(db_session, type="apartment", price=500000)
        await create_property_row(db_session, type="apartment", price=700000, status="sold")

        r = await client.get("/api/properties/admin/stats", headers=admin_headers)
        data = r.json()["data"]
        overview = data["overview"]
        assert overview["totalProperties"] == 3
        assert overview["availableProperties"] == 2
        assert overview["soldProperties"] == 1
        assert overview["pendingProperties"] == 0
        assert overview["averagePrice"] == 500000
        assert overview["totalValue"] == 1500000
        assert overview["minPrice"] == 300000
        assert overview["maxPrice"] == 700000
        assert data["byType"] == [
            {"_id": "apartment", "count": 2, "averagePrice": 600000},
            {"_id": "house", "count": 1, "averagePrice": 300000},
        ]

    async def test_requires_admin(self, client, user_headers):
        assert (await client.get("/api/properties/admin/stats")).status_code == 401
        assert (await client.get("/api/properties/admin/stats", headers=user_headers)).status_code == 403
