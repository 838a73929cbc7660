from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Profile(db.Model): #signed-in user
    __tablename__ = "profiles"
    id = db.Column(db.String(64), primary_key=True)   # username, lowercased
    display_name = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Profile {self.id}>"


class Movie(db.Model): #movie shared by every user
    __tablename__ = "movies"
    id = db.Column(db.Integer, primary_key=True)
    tmdb_id = db.Column(db.String(32), nullable=False, unique=True, index=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    overview = db.Column(db.Text, nullable=True)
    poster_url = db.Column(db.String(255), nullable=True)
    release_date = db.Column(db.String(10))     # YYYY-MM-DD as sent by TMDB
    duration = db.Column(db.Integer)            # minutes
    tmdb_rating = db.Column(db.Float)
    genres = db.Column(db.JSON)
    cast = db.Column("movie_cast", db.JSON)     # [{name, character, profile_path}]
    director = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Movie {self.id} {self.title!r}>"


class TvShow(db.Model):
    __tablename__ = "tv_shows"
    id = db.Column(db.Integer, primary_key=True)
    tmdb_id = db.Column(db.String(32), nullable=False, unique=True, index=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    overview = db.Column(db.Text, nullable=True)
    poster_url = db.Column(db.String(255), nullable=True)
    release_date = db.Column("first_air_date", db.String(10))
    duration = db.Column(db.Integer)            # episode runtime, minutes
    tmdb_rating = db.Column(db.Float)
    genres = db.Column(db.JSON)
    cast = db.Column("show_cast", db.JSON)
    creator = db.Column(db.String(255))
    number_of_seasons = db.Column(db.Integer)
    number_of_episodes = db.Column(db.Integer)
    status = db.Column(db.String(64))
    network = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<TvShow {self.id} {self.title!r}>"


class UserMovie(db.Model): #a movie on someone's list
    __tablename__ = "user_movies"
    user_id = db.Column(db.String(64), db.ForeignKey("profiles.id"), primary_key=True)
    item_id = db.Column("movie_id", db.Integer, db.ForeignKey("movies.id"), primary_key=True)
    user_rating = db.Column(db.Integer)         # 0–10 personal rating
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = db.relationship("Movie", lazy="joined")

    def __repr__(self):
        return f"<UserMovie {self.user_id} {self.item_id}>"


class UserTvShow(db.Model):
    __tablename__ = "user_tv_shows"
    user_id = db.Column(db.String(64), db.ForeignKey("profiles.id"), primary_key=True)
    item_id = db.Column("tv_show_id", db.Integer, db.ForeignKey("tv_shows.id"), primary_key=True)
    user_rating = db.Column(db.Integer)
    seasons_watched = db.Column(db.JSON)        # [1, 2, ...]
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = db.relationship("TvShow", lazy="joined")

    def __repr__(self):
        return f"<UserTvShow {self.user_id} {self.item_id}>"


class MovieReview(db.Model):
    __tablename__ = "movie_reviews"
    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column("movie_id", db.Integer, db.ForeignKey("movies.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("profiles.id"), nullable=False)
    rating = db.Column(db.Integer)              # 1–5
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    profile = db.relationship("Profile", lazy="joined")

    def __repr__(self):
        return f"<MovieReview {self.id} movie={self.item_id}>"


class TvShowReview(db.Model):
    __tablename__ = "tv_show_reviews"
    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column("tv_show_id", db.Integer, db.ForeignKey("tv_shows.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("profiles.id"), nullable=False)
    rating = db.Column(db.Integer)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    profile = db.relationship("Profile", lazy="joined")

    def __repr__(self):
        return f"<TvShowReview {self.id} tv_show={self.item_id}>"
