import os, sys, pytest

# allow importing the flat modules (app, models, catalog_api) from the repo root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from models import db, Movie, TvShow
import catalog_api as capi


@pytest.fixture()
def app(tmp_path, monkeypatch):
    # using a temp sqlite db for testing, auth token disabled
    monkeypatch.delenv("API_TOKEN", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path/'test.db'}",
        "API_TOKEN": None,
    })
    with app.app_context():
        db.drop_all(); db.create_all()

    yield app

    # teardown: close sessions and dispose engine to silence ResourceWarnings
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


def login(client, username="alice"):
    r = client.post("/api/auth/login", json={"username": username})
    assert r.status_code == 200
    return r


class FakeCatalog:
    """Stands in for TMDB: detail payloads keyed by (media_type, tmdb_id, language)."""

    def __init__(self):
        self.details = {}
        self.search_results = []
        self.calls = []
        self.failing = set()

    def add(self, media_type, tmdb_id, payload, language=None):
        self.details[(media_type, int(tmdb_id), language)] = payload

    def get_tmdb_details(self, tmdb_id, media_type="movie", language=None):
        import requests
        self.calls.append(("details", media_type, int(tmdb_id), language))
        if (media_type, int(tmdb_id), language) in self.failing:
            raise requests.HTTPError("404 Client Error")
        for key in ((media_type, int(tmdb_id), language), (media_type, int(tmdb_id), None)):
            if key in self.details:
                return self.details[key]
        raise requests.HTTPError("404 Client Error")

    def search_tmdb(self, query, media_type="movie", page=1):
        self.calls.append(("search", media_type, query))
        return list(self.search_results)

    def trending(self, media_type="movie", page=1):
        self.calls.append(("trending", media_type))
        return list(self.search_results)

    def detail_calls(self):
        return [c for c in self.calls if c[0] == "details"]


@pytest.fixture()
def catalog(monkeypatch):
    fake = FakeCatalog()
    monkeypatch.setattr(capi, "get_tmdb_details", fake.get_tmdb_details)
    monkeypatch.setattr(capi, "search_tmdb", fake.search_tmdb)
    monkeypatch.setattr(capi, "trending", fake.trending)
    return fake


def make_movie(**kw):
    fields = {"tmdb_id": "603", "title": "The Matrix"}
    fields.update(kw)
    m = Movie(**fields)
    db.session.add(m); db.session.commit()
    return m


def make_show(**kw):
    fields = {"tmdb_id": "1396", "title": "Breaking Bad", "number_of_seasons": 5,
              "overview": "A chemistry teacher turns to crime.", "cast": [{"name": "Bryan Cranston"}]}
    fields.update(kw)
    s = TvShow(**fields)
    db.session.add(s); db.session.commit()
    return s
