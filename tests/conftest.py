import mongomock
import pytest
from fastapi.testclient import TestClient

from main import create_app


@pytest.fixture
def db():
    return mongomock.MongoClient(tz_aware=True)["potions_test"]


@pytest.fixture
def client(db):
    with TestClient(create_app(db)) as c:
        yield c


@pytest.fixture
def logged_in(client):
    client.post("/auth/register", json={"name": "merlin", "password": "abracadabra"})
    response = client.post("/auth/login", json={"name": "merlin", "password": "abracadabra"})
    assert response.status_code == 200
    return client


@pytest.fixture
def potions(db):
    docs = [
        {"name": "Invisibility", "vendor_id": "kettle", "price": 25.5, "score": 50,
         "categories": ["effective", "premium"], "ratings": {"strength": 2, "flavor": 5}},
        {"name": "Healing", "vendor_id": "kettle", "price": 10, "score": 70,
         "categories": ["effective"], "ratings": {"strength": 4, "flavor": 2}},
        {"name": "Fire Breath", "vendor_id": "cauldron", "price": 40, "score": 90,
         "categories": ["premium", "spicy"], "ratings": {"strength": 9, "flavor": 0}},
        {"name": "Mystery", "vendor_id": "cauldron", "price": 5, "score": 10,
         "categories": ["spicy"]},
    ]
    db["potion"].insert_many(docs)
    return docs
