from flask import Blueprint, request, session
from werkzeug.exceptions import BadRequest
from models import db, Profile
from . import detail, search_add
from .errors import (
    expect_json, read_json, validate_username, validate_comment,
    parse_rating, parse_review_rating, validate_pagination, require_auth, Unauthenticated
)
from .media_kinds import KIND_RULE, TV_SHOWS, get_kind
from .query_utils import build_list_query
from .session_utils import current_user, sign_in, sign_out
from .search_add import SearchSequence
from .view_models import CatalogResult, list_entry

api_bp = Blueprint("api", __name__, url_prefix="/api")  # blueprint for API routes

@api_bp.get("/health")
def health():
    return {"ok": True}

# ---- session ----

@api_bp.post("/auth/login")
def login():
    expect_json()
    data = read_json()
    profile = sign_in(validate_username(data.get("username")))
    return {"user": profile.id, "display_name": profile.display_name}

@api_bp.post("/auth/logout")
def logout():
    sign_out()
    return {"user": None}

@api_bp.get("/auth/me")
def me():
    user = current_user()
    profile = db.session.get(Profile, user) if user else None
    return {"user": user, "display_name": profile.display_name if profile else None}

# ---- catalog ----

SEARCH_SEQ_KEY = "search_seq"

@api_bp.get(f"/search/{KIND_RULE}")
def api_search(kind):
    q = (request.args.get("q") or "").strip()
    seq = request.args.get("seq")
    seq = int(seq) if seq and seq.isdigit() else None
    if seq is not None:
        # latest seq per kind lives in the session; an older one answers empty
        seen = session.get(SEARCH_SEQ_KEY) or {}
        tracker = SearchSequence(seen.get(kind, 0))
        if not tracker.claim(seq):
            return {"query": q, "seq": seq, "stale": True, "results": []}
        session[SEARCH_SEQ_KEY] = {**seen, kind: tracker.latest}
    results = search_add.search(q, kind, current_user())
    return {
        "query": q,
        "seq": seq,
        "stale": False,
        "results": [r.to_dict() for r in results],
    }

@api_bp.get(f"/trending/{KIND_RULE}")
def api_trending(kind):
    results = search_add.trending(kind, current_user())
    return {"results": [r.to_dict() for r in results]}

# ---- list ----

@api_bp.get(f"/{KIND_RULE}")
def list_items(kind):
    kind = get_kind(kind)
    user = current_user()
    if user is None:
        raise Unauthenticated()
    page, page_size = validate_pagination()
    qry = build_list_query(kind, request.args, user)
    total = qry.count()
    rows = qry.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "items": [list_entry(r, kind).to_dict() for r in rows],
    }

@api_bp.post(f"/{KIND_RULE}")
@require_auth
def add_item(kind):
    expect_json()
    kind = get_kind(kind)
    result = CatalogResult.from_payload(read_json(), kind)
    entry = search_add.add_to_list(result, kind, current_user())
    return entry.to_dict(), (201 if entry.created else 200)

@api_bp.delete(f"/{KIND_RULE}/<int:item_id>")
@require_auth
def remove_item(kind, item_id):
    removed = detail.remove_from_list(kind, item_id, current_user())
    return {"deleted": item_id, "removed": removed}

# ---- detail ----

@api_bp.get(f"/{KIND_RULE}/<int:item_id>")
def get_detail(kind, item_id):
    return detail.load_detail(kind, item_id, current_user()).to_dict()

@api_bp.get(f"/{KIND_RULE}/by-tmdb/<int:tmdb_id>")
def get_detail_by_tmdb(kind, tmdb_id):
    item_id = detail.resolve_local_id(kind, tmdb_id)
    return detail.load_detail(kind, item_id, current_user()).to_dict()

@api_bp.get(f"/{KIND_RULE}/<int:item_id>/reviews")
def get_reviews(kind, item_id):
    reviews = detail.list_reviews(kind, item_id)
    return {"reviews": [r.to_dict() for r in reviews]}

@api_bp.post(f"/{KIND_RULE}/<int:item_id>/reviews")
@require_auth
def post_review(kind, item_id):
    expect_json()
    data = read_json()
    rating = parse_review_rating(data.get("rating"))
    comment = validate_comment(data.get("comment"))
    reviews = detail.submit_review(kind, item_id, current_user(), rating, comment)
    return {"reviews": [r.to_dict() for r in reviews]}, 201

@api_bp.post(f"/{KIND_RULE}/<int:item_id>/rate")
@require_auth
def rate_item(kind, item_id):
    expect_json()
    data = read_json()
    if "personal_rating" not in data:
        raise BadRequest("personal_rating required")
    rating = parse_rating(data.get("personal_rating"))
    link = detail.rate_item(kind, item_id, current_user(), rating)
    return link.to_dict()

@api_bp.post(f"/{TV_SHOWS.slug}/<int:item_id>/seasons/<int:season_number>/toggle")
@require_auth
def toggle_season(item_id, season_number):
    watched = detail.toggle_season_watched(item_id, current_user(), season_number)
    return {
        "id": item_id,
        "season": season_number,
        "watched": season_number in watched,
        "seasons_watched": watched,
    }
