import logging
import os

import requests

from app_core.metrics import LANGUAGE_FALLBACKS

logger = logging.getLogger(__name__)

TMDB_BASE = "https://api.themoviedb.org/3"  # base url for tmdb api
IMAGE_BASE = "https://image.tmdb.org/t/p"

PRIMARY_LANGUAGE = os.getenv("TMDB_LANGUAGE", "fr-FR")
FALLBACK_LANGUAGE = os.getenv("TMDB_FALLBACK_LANGUAGE", "en-US")

# local media kind -> TMDB path segment
_PATHS = {"movie": "movie", "movies": "movie", "tv": "tv", "tv-shows": "tv"}


class CatalogConfigError(RuntimeError):
    """No TMDB credentials are configured."""


def resolve_credentials():
    """
    Return (headers, params) used to authenticate against TMDB.

    The key lives on the server and is looked up on every call so a rotated
    key is picked up without a restart; clients never see it.
    """
    token = os.getenv("TMDB_TOKEN")
    if token:
        return {"Authorization": f"Bearer {token}", "accept": "application/json"}, {}
    api_key = os.getenv("TMDB_API_KEY")
    if not api_key:
        raise CatalogConfigError("TMDB_API_KEY or TMDB_TOKEN missing in environment")
    return {"accept": "application/json"}, {"api_key": api_key}


def _get(path, **params):  # internal function to make get requests to tmdb
    headers, auth = resolve_credentials()
    r = requests.get(f"{TMDB_BASE}{path}", headers=headers, params={**auth, **params}, timeout=15)
    r.raise_for_status()
    return r.json()


def _path_for(media_type):
    try:
        return _PATHS[media_type]
    except KeyError:
        raise ValueError(f"unknown media type {media_type!r}")


def tmdb_poster_url(path: str | None, size: str = "w500") -> str | None:
    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{IMAGE_BASE}/{size}{path}"


def _map_results(data, media_type):  # mapping tmdb movie/tv results to one shape
    kind = _path_for(media_type)
    items = []
    for m in data.get("results", []):
        date = m.get("release_date") or m.get("first_air_date") or ""
        items.append({
            "tmdb_id": m.get("id"),
            "media_type": kind,
            "title": m.get("title") or m.get("name"),
            "release_date": date or None,
            "year": date[:4],
            "poster_path": m.get("poster_path") or m.get("backdrop_path"),
            "overview": m.get("overview"),
            "vote_average": m.get("vote_average"),
            "popularity": m.get("popularity"),
        })
    return items


def search_tmdb(query, media_type="movie", page=1):  # searching by title
    data = _get(
        f"/search/{_path_for(media_type)}",
        query=query,
        page=page,
        include_adult=False,
        language=PRIMARY_LANGUAGE,
    )
    return _map_results(data, media_type)


def trending(media_type="movie", page=1):
    data = _get(f"/trending/{_path_for(media_type)}/day", page=page, language=PRIMARY_LANGUAGE)
    return _map_results(data, media_type)


def _as_object(data):
    if not isinstance(data, dict):
        raise ValueError(f"unexpected TMDB payload: {type(data).__name__}")
    return data


def get_tmdb_details(tmdb_id: int, media_type="movie", language=None):  # details + credits
    params = {"append_to_response": "credits"}
    if language:
        params["language"] = language
    return _as_object(_get(f"/{_path_for(media_type)}/{int(tmdb_id)}", **params))


def get_localized_details(tmdb_id: int, media_type="movie"):
    """
    Fetch details in the primary language, falling back to the secondary one.

    - primary request fails: the fallback payload is returned, and its own
      failure propagates to the caller.
    - primary overview is empty: the fallback overview is used when it is
      non-empty; a failed fallback request keeps the primary payload.
    """
    try:
        data = _as_object(get_tmdb_details(tmdb_id, media_type, language=PRIMARY_LANGUAGE))
    except requests.RequestException as e:
        logger.info("TMDB %s/%s failed in %s (%s), trying %s",
                    media_type, tmdb_id, PRIMARY_LANGUAGE, e, FALLBACK_LANGUAGE)
        LANGUAGE_FALLBACKS.labels("error").inc()
        return _as_object(get_tmdb_details(tmdb_id, media_type, language=FALLBACK_LANGUAGE))

    if (data.get("overview") or "").strip():
        return data

    try:
        alt = _as_object(get_tmdb_details(tmdb_id, media_type, language=FALLBACK_LANGUAGE))
    except (requests.RequestException, ValueError):
        logger.warning("TMDB %s/%s fallback language request failed", media_type, tmdb_id)
        return data
    overview = (alt.get("overview") or "").strip()
    if overview:
        LANGUAGE_FALLBACKS.labels("empty_overview").inc()
        return {**data, "overview": overview}
    return data
