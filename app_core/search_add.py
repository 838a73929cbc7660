"""Catalog search and adding titles to a user's list."""
import logging
from dataclasses import replace

import requests
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import Conflict

import catalog_api as capi
from models import db
from .errors import Unauthenticated, UpstreamUnavailable
from .media_kinds import MediaKind, get_kind
from .session_utils import ensure_profile
from .view_models import CatalogResult, ListEntry, list_entry

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3

CATALOG_ERRORS = (requests.RequestException, capi.CatalogConfigError, ValueError)


class SearchSequence:
    """
    Orders overlapping searches from one caller.

    Every search takes a number from begin(); a response is only accepted when
    its number is still the latest one handed out, so a slow answer to an old
    query cannot overwrite the results of a newer one.

    Numbers may also come from the caller (the `seq` query parameter): claim()
    records one and refuses any number lower than the latest seen.
    """

    def __init__(self, latest: int = 0):
        self._latest = latest

    @property
    def latest(self) -> int:
        return self._latest

    def begin(self) -> int:
        self._latest += 1
        return self._latest

    def claim(self, seq: int) -> bool:
        if seq < self._latest:
            logger.debug("Refusing stale search %s (latest %s)", seq, self._latest)
            return False
        self._latest = seq
        return True

    def is_current(self, seq: int) -> bool:
        return seq == self._latest

    def accept(self, seq: int, results):
        if not self.is_current(seq):
            logger.debug("Dropping stale search response %s (latest %s)", seq, self._latest)
            return None
        return results


def _annotate(kind: MediaKind, results: list[CatalogResult], user_id) -> list[CatalogResult]:
    """Mark results already stored locally and those on the user's list."""
    if not results:
        return results
    ids = [str(r.tmdb_id) for r in results]
    try:
        stored = {
            row.tmdb_id: row.id
            for row in kind.item_model.query.filter(kind.item_model.tmdb_id.in_(ids)).all()
        }
        linked = set()
        if user_id and stored:
            linked = {
                row.item_id
                for row in kind.link_model.query.filter(
                    kind.link_model.user_id == user_id,
                    kind.link_model.item_id.in_(list(stored.values())),
                ).all()
            }
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Matching %s search results against the store failed", kind.slug)
        return results

    annotated = []
    for r in results:
        local_id = stored.get(str(r.tmdb_id))
        annotated.append(replace(r, local_id=local_id, in_list=local_id in linked))
    return annotated


def _from_catalog(kind: MediaKind, raw) -> list[CatalogResult]:
    results = []
    for entry in raw:
        r = CatalogResult.from_catalog(entry, kind)
        if r is not None:
            results.append(r)
    return results


def search(query, kind, user_id=None) -> list[CatalogResult]:
    kind = get_kind(kind)
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    try:
        raw = capi.search_tmdb(query, kind.catalog_type)
    except CATALOG_ERRORS:
        logger.exception("TMDB search for %r (%s) failed", query, kind.slug)
        raise UpstreamUnavailable(f"Unable to search for {kind.label.lower()}s, check your connection")
    return _annotate(kind, _from_catalog(kind, raw), user_id)


def trending(kind, user_id=None) -> list[CatalogResult]:
    kind = get_kind(kind)
    try:
        raw = capi.trending(kind.catalog_type)
    except CATALOG_ERRORS:
        logger.exception("TMDB trending (%s) failed", kind.slug)
        raise UpstreamUnavailable("Unable to load trending titles")
    return _annotate(kind, _from_catalog(kind, raw), user_id)


def _complete(kind: MediaKind, result: CatalogResult) -> CatalogResult:
    """Fetch the title, poster and date when the caller only sent an id."""
    if result.title:
        return result
    try:
        info = capi.get_tmdb_details(result.tmdb_id, kind.catalog_type, language=capi.PRIMARY_LANGUAGE)
    except CATALOG_ERRORS:
        logger.exception("TMDB details for %s %s failed", kind.slug, result.tmdb_id)
        raise UpstreamUnavailable(f"Unable to add the {kind.label.lower()}, please try again")
    return replace(
        result,
        title=info.get("title") or info.get("name") or str(result.tmdb_id),
        poster_path=result.poster_path or info.get("poster_path") or info.get("backdrop_path"),
        release_date=result.release_date or info.get("release_date") or info.get("first_air_date") or None,
        overview=result.overview or info.get("overview") or None,
    )


def _find_item(kind: MediaKind, tmdb_id):
    return kind.item_model.query.filter_by(tmdb_id=str(tmdb_id)).one_or_none()


def _find_link(kind: MediaKind, item_id, user_id):
    return kind.link_model.query.filter_by(user_id=user_id, item_id=item_id).one_or_none()


def _stage(kind: MediaKind, result: CatalogResult, user_id):
    """Reuse or create the item, then reuse or create the link. Returns (link, created)."""
    item = _find_item(kind, result.tmdb_id)
    if item is None:
        result = _complete(kind, result)
        item = kind.item_model(
            tmdb_id=str(result.tmdb_id),
            title=result.title,
            overview=result.overview,
            poster_url=result.poster_url,
            release_date=result.release_date,
        )
        db.session.add(item)
        db.session.flush()
        logger.info("Created %s %s for tmdb %s", kind.slug, item.id, result.tmdb_id)

    link = _find_link(kind, item.id, user_id)
    if link is not None:
        return link, False
    ensure_profile(user_id)
    link = kind.link_model(user_id=user_id, item_id=item.id)
    db.session.add(link)
    return link, True


def add_to_list(result: CatalogResult, kind, user_id) -> ListEntry:
    """
    Put a catalog title on the user's list.

    The shared record is keyed by TMDB id and reused when present; adding a
    title that is already on the list is a no-op reported with created=False.
    """
    if not user_id:
        raise Unauthenticated("Please sign in to add titles")
    kind = get_kind(kind)

    for attempt in (1, 2):
        try:
            link, created = _stage(kind, result, user_id)
            db.session.commit()
            break
        except IntegrityError:
            # a concurrent add won the race on tmdb_id or on the link
            db.session.rollback()
            if attempt == 2:
                logger.exception("Adding tmdb %s to %s's list conflicted twice", result.tmdb_id, user_id)
                raise Conflict(f"{kind.label} is being added concurrently, please retry")
            logger.info("Retrying add of tmdb %s for %s after a unique conflict", result.tmdb_id, user_id)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Adding tmdb %s to %s's list failed", result.tmdb_id, user_id)
            raise UpstreamUnavailable(f"Unable to add the {kind.label.lower()}, please try again")

    if created:
        logger.info("User %s added %s %s", user_id, kind.slug, link.item_id)
    return list_entry(link, kind, created=created)
