"""Typed, read-only shapes handed to the JSON layer.

Rows from the store and payloads from TMDB are untyped; everything passes
through the mappers below so unexpected shapes are defaulted here instead of
leaking into responses.
"""
from dataclasses import dataclass, asdict
from typing import Any, Optional

from werkzeug.exceptions import BadRequest

import catalog_api as capi
from .media_kinds import MediaKind


@dataclass(frozen=True)
class CastMember:
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None


@dataclass(frozen=True)
class SeasonState:
    season_number: int
    watched: bool


@dataclass(frozen=True)
class MediaItemView:
    id: int
    kind: str
    tmdb_id: str
    title: str
    overview: str
    poster_url: Optional[str]
    release_date: Optional[str]
    duration: Optional[int]
    tmdb_rating: Optional[float]
    credit: Optional[str]
    cast: tuple = ()
    genres: tuple = ()
    number_of_seasons: Optional[int] = None
    number_of_episodes: Optional[int] = None
    status: Optional[str] = None
    network: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ReviewView:
    id: int
    user_id: str
    author: str
    rating: Optional[int]
    comment: str
    created_at: str

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class UserLinkView:
    user_id: str
    item_id: int
    user_rating: Optional[int] = None
    seasons_watched: tuple = ()

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class DetailViewModel:
    item: MediaItemView
    on_list: bool
    user_rating: Optional[int]
    seasons_watched: tuple
    seasons: tuple
    average_rating: float
    reviews: tuple

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ListEntry:
    item: MediaItemView
    link: UserLinkView
    added_at: str
    created: bool = True

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class CatalogResult:
    tmdb_id: int
    media_type: str
    title: Optional[str]
    release_date: Optional[str] = None
    poster_path: Optional[str] = None
    overview: Optional[str] = None
    vote_average: Optional[float] = None
    local_id: Optional[int] = None
    in_list: bool = False

    @property
    def poster_url(self):
        return capi.tmdb_poster_url(self.poster_path)

    @classmethod
    def from_payload(cls, data: dict, kind: MediaKind) -> "CatalogResult":
        """Build a result from a client-sent body; tmdb_id is mandatory."""
        raw_id = data.get("tmdb_id", data.get("id"))
        if raw_id in (None, "") or isinstance(raw_id, bool):
            raise BadRequest("tmdb_id is required")
        try:
            tmdb_id = int(raw_id)
        except (TypeError, ValueError):
            raise BadRequest("tmdb_id must be an integer")
        if tmdb_id <= 0:
            raise BadRequest("tmdb_id must be positive")
        title = data.get("title") or data.get("name")
        if title is not None and not isinstance(title, str):
            raise BadRequest("title must be a string")
        return cls(
            tmdb_id=tmdb_id,
            media_type=kind.catalog_type,
            title=(title or "").strip() or None,
            release_date=_text(data.get("release_date") or data.get("first_air_date")),
            poster_path=_text(data.get("poster_path")),
            overview=_text(data.get("overview")),
            vote_average=_number(data.get("vote_average")),
        )

    @classmethod
    def from_catalog(cls, raw: dict, kind: MediaKind) -> Optional["CatalogResult"]:
        """Map one normalised catalog entry; entries without an id are dropped."""
        try:
            tmdb_id = int(raw.get("tmdb_id"))
        except (TypeError, ValueError):
            return None
        return cls(
            tmdb_id=tmdb_id,
            media_type=kind.catalog_type,
            title=raw.get("title"),
            release_date=_text(raw.get("release_date")),
            poster_path=_text(raw.get("poster_path")),
            overview=_text(raw.get("overview")),
            vote_average=_number(raw.get("vote_average")),
        )

    def to_dict(self):
        return {
            "tmdb_id": self.tmdb_id,
            "media_type": self.media_type,
            "title": self.title,
            "release_date": self.release_date,
            "year": (self.release_date or "")[:4],
            "poster_path": self.poster_path,
            "poster_url": self.poster_url,
            "overview": self.overview,
            "vote_average": self.vote_average,
            "local_id": self.local_id,
            "in_list": self.in_list,
        }


# -----------------------------
# Mappers
# -----------------------------

def _text(v) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def _number(v) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _int(v) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def cast_from_json(raw: Any) -> tuple:
    if not isinstance(raw, list):
        return ()
    members = []
    for entry in raw:
        if isinstance(entry, str) and entry.strip():
            members.append(CastMember(name=entry.strip()))
        elif isinstance(entry, dict) and _text(entry.get("name")):
            members.append(CastMember(
                name=_text(entry.get("name")),
                character=_text(entry.get("character")),
                profile_path=_text(entry.get("profile_path")),
            ))
    return tuple(members)


def seasons_from_json(raw: Any) -> tuple:
    """Stored season numbers as a sorted, duplicate-free tuple; junk is dropped."""
    if not isinstance(raw, list):
        return ()
    numbers = {n for n in (_int(x) for x in raw) if n is not None}
    return tuple(sorted(numbers))


def item_view(row, kind: MediaKind) -> MediaItemView:
    genres = row.genres if isinstance(row.genres, list) else []
    return MediaItemView(
        id=row.id,
        kind=kind.slug,
        tmdb_id=row.tmdb_id,
        title=row.title,
        overview=row.overview or "",
        poster_url=row.poster_url,
        release_date=row.release_date,
        duration=row.duration,
        tmdb_rating=row.tmdb_rating,
        credit=getattr(row, kind.credit_attr),
        cast=cast_from_json(row.cast),
        genres=tuple(str(g) for g in genres if g),
        number_of_seasons=getattr(row, "number_of_seasons", None),
        number_of_episodes=getattr(row, "number_of_episodes", None),
        status=getattr(row, "status", None),
        network=getattr(row, "network", None),
    )


def review_view(row) -> ReviewView:
    profile = getattr(row, "profile", None)
    author = (profile.display_name if profile and profile.display_name else row.user_id)
    return ReviewView(
        id=row.id,
        user_id=row.user_id,
        author=author,
        rating=row.rating,
        comment=row.comment or "",
        created_at=row.created_at.isoformat(),
    )


def link_view(row) -> UserLinkView:
    return UserLinkView(
        user_id=row.user_id,
        item_id=row.item_id,
        user_rating=row.user_rating,
        seasons_watched=seasons_from_json(getattr(row, "seasons_watched", None)),
    )


def list_entry(row, kind: MediaKind, created=True) -> ListEntry:
    return ListEntry(
        item=item_view(row.item, kind),
        link=link_view(row),
        added_at=row.created_at.isoformat(),
        created=created,
    )


def catalog_fields(data: dict, kind: MediaKind) -> dict:
    """Map a TMDB detail payload onto item column names (empty values dropped)."""
    credits = data.get("credits") or {}
    cast = [
        {"name": c.get("name"), "character": c.get("character"), "profile_path": c.get("profile_path")}
        for c in (credits.get("cast") or []) if isinstance(c, dict) and c.get("name")
    ]
    if kind.has_seasons:
        creators = [c.get("name") for c in (data.get("created_by") or []) if isinstance(c, dict) and c.get("name")]
        credit = ", ".join(creators) or None
        runtimes = data.get("episode_run_time") or []
        duration = _int(runtimes[0]) if runtimes else None
    else:
        directors = [p.get("name") for p in (credits.get("crew") or [])
                     if isinstance(p, dict) and p.get("job") == "Director" and p.get("name")]
        credit = directors[0] if directors else None
        duration = _int(data.get("runtime"))

    fields = {
        "overview": _text(data.get("overview")),
        "cast": cast or None,
        kind.credit_attr: credit,
        "genres": [g.get("name") for g in (data.get("genres") or []) if isinstance(g, dict) and g.get("name")] or None,
        "duration": duration,
        "tmdb_rating": _number(data.get("vote_average")),
        "poster_url": capi.tmdb_poster_url(data.get("poster_path")),
        "release_date": _text(data.get("release_date") or data.get("first_air_date")),
    }
    if kind.has_seasons:
        networks = [n.get("name") for n in (data.get("networks") or []) if isinstance(n, dict) and n.get("name")]
        fields.update({
            "number_of_seasons": _int(data.get("number_of_seasons")),
            "number_of_episodes": _int(data.get("number_of_episodes")),
            "status": _text(data.get("status")),
            "network": networks[0] if networks else None,
        })
    return {k: v for k, v in fields.items() if v not in (None, "", [])}
