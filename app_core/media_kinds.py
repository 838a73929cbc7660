from dataclasses import dataclass

from werkzeug.exceptions import NotFound

from models import Movie, TvShow, UserMovie, UserTvShow, MovieReview, TvShowReview


@dataclass(frozen=True)
class MediaKind:
    """Everything that differs between movies and TV shows."""

    slug: str               # url segment: /api/<slug>
    catalog_type: str       # tmdb path segment
    label: str
    item_model: type
    link_model: type
    review_model: type
    credit_attr: str        # director for movies, creator for shows

    @property
    def has_seasons(self) -> bool:
        return self.catalog_type == "tv"


MOVIES = MediaKind(
    slug="movies",
    catalog_type="movie",
    label="Movie",
    item_model=Movie,
    link_model=UserMovie,
    review_model=MovieReview,
    credit_attr="director",
)

TV_SHOWS = MediaKind(
    slug="tv-shows",
    catalog_type="tv",
    label="TV show",
    item_model=TvShow,
    link_model=UserTvShow,
    review_model=TvShowReview,
    credit_attr="creator",
)

KINDS = {k.slug: k for k in (MOVIES, TV_SHOWS)}

# url rule fragment accepting only known kinds
KIND_RULE = '<any(movies, "tv-shows"):kind>'


def get_kind(kind) -> MediaKind:
    if isinstance(kind, MediaKind):
        return kind
    try:
        return KINDS[kind]
    except KeyError:
        raise NotFound(f"Unknown media kind {kind!r}")
