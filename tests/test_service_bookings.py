import pytest


@pytest.fixture
def book(client, user):
    profile, headers = user
    pet_id = profile["pets"][0]["id"]

    def _book(headers=headers, **fields):
        payload = {
            "pet": pet_id,
            "service_type": "Pet Taxi",
            "date": "2025-06-01",
            "time": "10:00",
            "address": "12 Bark Street",
            "price": 25.0,
            **fields,
        }
        return client.post("/api/services/book", json=payload, headers=headers)

    return _book


def test_create_booking(book):
    res = book(notes="Leave at door")
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "pending"
    assert body["service_type"] == "Pet Taxi"
    assert body["price"] == 25.0
    assert body["notes"] == "Leave at door"


def test_pet_must_belong_to_caller(book, register):
    _, other_headers = register()
    res = book(headers=other_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Pet not found"


def test_no_slot_conflict_for_services(book):
    assert book().status_code == 201
    assert book().status_code == 201


def test_missing_price_or_bad_type(book):
    assert book(price=None).status_code == 400
    assert book(service_type="Spa Day").status_code == 400


def test_my_bookings_include_pet_details(client, book, user, register):
    book(date="2025-06-01")
    book(date="2025-07-01")
    _, other_headers = register(pets=[{"name": "Tom", "type": "Cat"}])
    _, headers = user

    mine = client.get("/api/services/my-bookings", headers=headers).json()
    assert [b["date"] for b in mine] == ["2025-07-01", "2025-06-01"]
    assert mine[0]["pet_details"] == {"name": "Rex", "type": "Dog", "breed": "Labrador", "age": 3}
    assert client.get("/api/services/my-bookings", headers=other_headers).json() == []


def test_list_all_is_admin_only(client, book, user, admin):
    book()
    assert client.get("/api/services", headers=user[1]).status_code == 403
    listed = client.get("/api/services", headers=admin[1]).json()
    assert len(listed) == 1
    assert listed[0]["user"]["email"] == user[0]["email"]


def test_get_update_delete(client, book, user, register):
    created = book().json()
    _, headers = user
    url = f"/api/services/{created['id']}"

    fetched = client.get(url, headers=headers).json()
    assert fetched["pet_details"]["name"] == "Rex"

    _, stranger = register()
    assert client.put(url, json={"notes": "x"}, headers=stranger).status_code == 403

    updated = client.put(url, json={"service_type": "Home Visit", "price": 40, "notes": ""}, headers=headers).json()
    assert (updated["service_type"], updated["price"], updated["notes"]) == ("Home Visit", 40, "")

    owner_status = client.put(url, json={"status": "confirmed"}, headers=headers)
    assert owner_status.status_code == 403
    assert owner_status.json()["message"] == "Only admins can change the booking status"

    assert client.delete(url, headers=headers).json() == {"message": "Booking removed"}
    res = client.get(url, headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Booking not found"


def test_admin_can_set_status_through_update(client, book, admin):
    created = book().json()
    url = f"/api/services/{created['id']}"
    _, headers = admin
    assert client.put(url, json={"status": "bogus"}, headers=headers).status_code == 400
    assert client.put(url, json={"status": "confirmed"}, headers=headers).json()["status"] == "confirmed"


@pytest.mark.parametrize("field", ["time", "address"])
def test_blank_time_or_address_rejected(client, book, user, field):
    res = book(**{field: "   "})
    assert res.status_code == 400
    assert res.json()["message"] == "All fields are required"
    assert client.get("/api/services/my-bookings", headers=user[1]).json() == []


def test_time_and_address_are_trimmed(book):
    body = book(time=" 10:00 ", address="  12 Bark Street ").json()
    assert (body["time"], body["address"]) == ("10:00", "12 Bark Street")


def test_update_status_accepts_completed(client, book, admin):
    created = book().json()
    url = f"/api/services/{created['id']}/status"
    _, headers = admin
    assert client.put(url, json={"status": "completed"}, headers=headers).json()["status"] == "completed"
    assert client.put(url, json={"status": "Completed"}, headers=headers).status_code == 400


def test_stats(client, book, admin):
    book(service_type="Pet Taxi", price=20)
    book(service_type="Pet Boarding", price=100)
    book(service_type="Pet Boarding", price=60)
    res = client.get("/api/services/stats", headers=admin[1])
    assert res.status_code == 200
    stats = res.json()
    assert stats["overall"]["total_bookings"] == 3
    assert stats["overall"]["total_revenue"] == 180
    assert stats["overall"]["average_price"] == 60
    assert stats["by_service"] == [
        {"service_type": "Pet Boarding", "count": 2},
        {"service_type": "Pet Taxi", "count": 1},
    ]


def test_stats_empty(client, admin):
    stats = client.get("/api/services/stats", headers=admin[1]).json()
    assert stats == {"overall": {"total_bookings": 0, "total_revenue": 0, "average_price": 0}, "by_service": []}
