from flask import session

from models import db, Profile


def current_user() -> str | None:
    u = (session.get("u") or "").strip().lower()
    return u or None


def sign_in(name: str) -> Profile:
    """Store the user in the session, creating their profile on first sign-in."""
    profile = ensure_profile(name)
    db.session.commit()
    session["u"] = profile.id
    return profile


def sign_out():
    session.pop("u", None)


def ensure_profile(user_id: str) -> Profile:
    # caller commits
    profile = db.session.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, display_name=user_id)
        db.session.add(profile)
    return profile
