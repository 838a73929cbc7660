from typing import Optional
from .errors import validate_order_param
from .media_kinds import MediaKind


def _ordering(kind: MediaKind, order: str):
    link, item = kind.link_model, kind.item_model
    return {
        "title": item.title.asc(),
        "rating": link.user_rating.asc().nulls_last(),
        "-rating": link.user_rating.desc().nulls_last(),
    }.get(order, link.created_at.desc())


def build_list_query(kind: MediaKind, req_args, user: Optional[str]):
    """The user's links of one kind joined to their items, filtered by `q` and sorted by `order`."""
    link, item = kind.link_model, kind.item_model
    qry = link.query.join(item, link.item_id == item.id).filter(link.user_id == user)

    q = (req_args.get("q") or "").strip()
    if q:
        qry = qry.filter(item.title.ilike(f"%{q}%"))

    return qry.order_by(_ordering(kind, validate_order_param()))
