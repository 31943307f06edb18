"""
Query and aggregation builders for the posts collection.

Everything here is pure: request parameters in, MongoDB filter documents
and pipelines out. Nothing in this module raises on bad input.
"""

import re
from typing import Dict, List, NamedTuple, Optional, Tuple

from pymongo import DESCENDING

DEFAULT_LIMIT = 10
SEARCH_LIMIT = 5


class ListQuery(NamedTuple):
    filter: Dict
    sort: List[Tuple[str, int]]
    limit: int


LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_limit(limit: Optional[str]) -> int:
    """Leading integer of `limit` (so "5.5" is 5 and "3abc" is 3), else the default"""
    match = LEADING_INT.match(limit or "")
    if match is None:
        return DEFAULT_LIMIT
    return abs(int(match.group(1)))


def build_list_query(
    tag: Optional[str] = None,
    published: Optional[str] = None,
    limit: Optional[str] = None,
) -> ListQuery:
    """Filter + sort/limit directives for GET /api/posts"""
    query: Dict = {}
    if tag:
        query["tags"] = tag
    if published is not None:
        # only the exact text "true" counts as true
        query["published"] = published == "true"

    return ListQuery(
        filter=query,
        sort=[("createdAt", DESCENDING)],
        limit=parse_limit(limit),
    )


def search_pipeline(q: Optional[str]) -> List[Dict]:
    """
    Rank posts whose title or content matches `q` (case-insensitive regex)
    by engagement = likes + number of comments, top 5.
    """
    pattern = q or ""
    return [
        {
            "$match": {
                "$or": [
                    {"title": {"$regex": pattern, "$options": "i"}},
                    {"content": {"$regex": pattern, "$options": "i"}},
                ]
            }
        },
        {"$addFields": {"engagement": {"$add": ["$likes", {"$size": "$comments"}]}}},
        {"$sort": {"engagement": DESCENDING}},
        {"$limit": SEARCH_LIMIT},
    ]


def stats_pipeline() -> List[Dict]:
    """Single group over the whole collection; yields no row when it is empty"""
    return [
        {
            "$group": {
                "_id": None,
                "totalPosts": {"$sum": 1},
                "totalLikes": {"$sum": "$likes"},
                "avgLikes": {"$avg": "$likes"},
                "publishedCount": {"$sum": {"$cond": ["$published", 1, 0]}},
            }
        }
    ]
