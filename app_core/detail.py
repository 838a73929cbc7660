"""Detail page aggregation for movies and TV shows.

A detail view is the local record, backfilled from TMDB when its overview or
cast is missing, plus the signed-in user's link (personal rating, watched
seasons) and the community reviews. Only the local record lookup is fatal;
every later stage degrades to defaults and is logged.
"""
import logging

import requests
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import BadRequest, NotFound

import catalog_api as capi
from models import db
from .errors import Unauthenticated, UpstreamUnavailable, parse_review_rating, validate_comment
from .media_kinds import MediaKind, TV_SHOWS, get_kind
from .metrics import DEGRADED_READS
from .seasons import compute_season_state, toggle_season
from .session_utils import ensure_profile
from .view_models import (
    DetailViewModel, ReviewView, UserLinkView,
    catalog_fields, item_view, link_view, review_view, seasons_from_json,
)

logger = logging.getLogger(__name__)

CATALOG_ERRORS = (requests.RequestException, capi.CatalogConfigError, ValueError)


def _is_empty(value) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _get_item(kind: MediaKind, item_id):
    try:
        item = db.session.get(kind.item_model, item_id)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Loading %s %s failed", kind.slug, item_id)
        raise UpstreamUnavailable(f"Failed to load {kind.label.lower()} data")
    if item is None:
        raise NotFound(f"{kind.label} not found")
    return item


def _needs_catalog(kind: MediaKind, item) -> bool:
    if _is_empty(item.overview) or _is_empty(item.cast):
        return True
    return kind.has_seasons and item.number_of_seasons is None


def _backfill_from_catalog(kind: MediaKind, item) -> dict:
    """Fill empty local fields from TMDB; returns what was filled."""
    try:
        data = capi.get_localized_details(int(item.tmdb_id), kind.catalog_type)
    except CATALOG_ERRORS as e:
        DEGRADED_READS.labels("catalog").inc()
        logger.warning("TMDB details for %s %s (tmdb %s) unavailable: %s",
                       kind.slug, item.id, item.tmdb_id, e)
        return {}

    if not isinstance(data, dict):
        DEGRADED_READS.labels("catalog").inc()
        logger.warning("TMDB details for %s %s came back as %s, ignoring",
                       kind.slug, item.id, type(data).__name__)
        return {}

    filled = {}
    for attr, value in catalog_fields(data, kind).items():
        if _is_empty(getattr(item, attr, None)):
            setattr(item, attr, value)
            filled[attr] = value
    return filled


def _write_back(kind: MediaKind, item, filled: dict):
    # cache fill; a failed write must not fail the load
    if not filled:
        return
    try:
        db.session.commit()
        logger.info("Backfilled %s %s: %s", kind.slug, item.id, ", ".join(sorted(filled)))
    except SQLAlchemyError:
        db.session.rollback()
        DEGRADED_READS.labels("write_back").inc()
        logger.exception("Writing TMDB backfill for %s %s failed", kind.slug, item.id)


def _get_link(kind: MediaKind, item_id, user_id):
    return kind.link_model.query.filter_by(user_id=user_id, item_id=item_id).one_or_none()


def _fetch_link(kind: MediaKind, item_id, user_id):
    if not user_id:
        return None
    try:
        return _get_link(kind, item_id, user_id)
    except SQLAlchemyError:
        db.session.rollback()
        DEGRADED_READS.labels("user_link").inc()
        logger.exception("Loading %s link for user %s failed", kind.slug, user_id)
        return None


def _query_reviews(kind: MediaKind, item_id):
    model = kind.review_model
    return (
        model.query.filter_by(item_id=item_id)
        .order_by(model.created_at.desc(), model.id.desc())
        .all()
    )


def _fetch_reviews(kind: MediaKind, item_id) -> list[ReviewView]:
    try:
        rows = _query_reviews(kind, item_id)
    except SQLAlchemyError:
        db.session.rollback()
        DEGRADED_READS.labels("reviews").inc()
        logger.exception("Loading reviews for %s %s failed", kind.slug, item_id)
        return []
    return [review_view(r) for r in rows]


def average_rating(reviews) -> float:
    if not reviews:
        return 0
    return sum((r.rating or 0) for r in reviews) / len(reviews)


def resolve_local_id(kind, tmdb_id) -> int:
    """Translate a TMDB id to the local id of the stored record."""
    kind = get_kind(kind)
    try:
        item = kind.item_model.query.filter_by(tmdb_id=str(int(tmdb_id))).one_or_none()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Looking up %s by tmdb id %s failed", kind.slug, tmdb_id)
        raise UpstreamUnavailable(f"Failed to load {kind.label.lower()} data")
    if item is None:
        raise NotFound(f"{kind.label} not found")
    return item.id


def load_detail(kind, item_id, user_id=None) -> DetailViewModel:
    kind = get_kind(kind)
    item = _get_item(kind, item_id)

    filled = {}
    if _needs_catalog(kind, item):
        filled = _backfill_from_catalog(kind, item)
    view = item_view(item, kind)
    _write_back(kind, item, filled)

    link = _fetch_link(kind, item.id, user_id)
    reviews = _fetch_reviews(kind, item.id)

    watched = seasons_from_json(getattr(link, "seasons_watched", None)) if link else ()
    seasons = compute_season_state(view.number_of_seasons, watched) if kind.has_seasons else []
    return DetailViewModel(
        item=view,
        on_list=link is not None,
        user_rating=link.user_rating if link else None,
        seasons_watched=watched,
        seasons=tuple(seasons),
        average_rating=average_rating(reviews),
        reviews=tuple(reviews),
    )


def list_reviews(kind, item_id) -> list[ReviewView]:
    kind = get_kind(kind)
    _get_item(kind, item_id)
    try:
        rows = _query_reviews(kind, item_id)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Loading reviews for %s %s failed", kind.slug, item_id)
        raise UpstreamUnavailable("Failed to load reviews")
    return [review_view(r) for r in rows]


def submit_review(kind, item_id, user_id, rating: int, comment: str) -> list[ReviewView]:
    """
    Store a review and return the item's reviews, newest first, including it.

    Once the insert is committed the review is saved: a failed re-read of the
    list is logged and answered with an empty list instead of an error.
    """
    if not user_id:
        raise Unauthenticated("Please sign in to leave a review")
    rating = parse_review_rating(rating)
    comment = validate_comment(comment)
    kind = get_kind(kind)
    item = _get_item(kind, item_id)

    try:
        ensure_profile(user_id)
        db.session.add(kind.review_model(item_id=item.id, user_id=user_id, rating=rating, comment=comment))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Saving review for %s %s failed", kind.slug, item.id)
        raise UpstreamUnavailable("Failed to submit review")
    logger.info("User %s reviewed %s %s (%s/5)", user_id, kind.slug, item.id, rating)
    return _fetch_reviews(kind, item.id)


def toggle_season_watched(tv_show_id, user_id, season_number: int) -> list[int]:
    """
    Flip one season's watched flag and rewrite the whole set on the link.

    Read-modify-write without compare-and-swap: two sessions toggling at once
    for the same user can lose one update.
    """
    if not user_id:
        raise Unauthenticated("Please sign in to track seasons")
    show = _get_item(TV_SHOWS, tv_show_id)
    if season_number < 1 or (show.number_of_seasons is not None and season_number > show.number_of_seasons):
        if show.number_of_seasons is None:
            raise BadRequest("season must be 1 or greater")
        raise BadRequest(f"season must be between 1 and {show.number_of_seasons}")

    try:
        link = _get_link(TV_SHOWS, show.id, user_id)
        current = seasons_from_json(link.seasons_watched) if link else ()
        updated = toggle_season(current, season_number)
        if link is None:
            ensure_profile(user_id)
            link = TV_SHOWS.link_model(user_id=user_id, item_id=show.id)
            db.session.add(link)
        link.seasons_watched = updated
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Updating seasons for tv show %s failed", show.id)
        raise UpstreamUnavailable("Failed to update season status")

    logger.info("User %s %s season %s of tv show %s", user_id,
                "watched" if season_number in updated else "unwatched", season_number, show.id)
    return updated


def rate_item(kind, item_id, user_id, rating) -> UserLinkView:
    """Set the personal rating, adding the item to the user's list if needed."""
    if not user_id:
        raise Unauthenticated("Please sign in to rate")
    kind = get_kind(kind)
    item = _get_item(kind, item_id)
    try:
        link = _get_link(kind, item.id, user_id)
        if link is None:
            ensure_profile(user_id)
            link = kind.link_model(user_id=user_id, item_id=item.id)
            db.session.add(link)
        link.user_rating = rating
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Rating %s %s failed", kind.slug, item.id)
        raise UpstreamUnavailable("Failed to save rating")
    return link_view(link)


def remove_from_list(kind, item_id, user_id) -> bool:
    """Delete the user's link only; the shared record stays. True if a link existed."""
    if not user_id:
        raise Unauthenticated("Please sign in to manage your list")
    kind = get_kind(kind)
    try:
        deleted = kind.link_model.query.filter_by(user_id=user_id, item_id=item_id).delete()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Removing %s %s from %s's list failed", kind.slug, item_id, user_id)
        raise UpstreamUnavailable(f"Failed to remove {kind.label.lower()} from your watchlist")
    logger.info("User %s removed %s %s (%d link)", user_id, kind.slug, item_id, deleted)
    return bool(deleted)
