"""
Co-star network around a performer.

Hop 1 is the performer's most frequent co-stars, hop 2 the most frequent
co-stars of hop 1 (never the origin, never a hop 1 node). Edges are then
weighted by shared product count among every returned node.
"""

import logging

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.models import Performer
from catalog.services.pagination import coerce_int

logger = logging.getLogger(__name__)

DEFAULT_HOPS = 2
MAX_HOPS = 2
DEFAULT_LIMIT_PER_HOP = 8
MAX_LIMIT_PER_HOP = 12


def clamp_hops(value) -> int:
    hops = coerce_int(value)
    if hops is None:
        return DEFAULT_HOPS
    return max(1, min(hops, MAX_HOPS))


def clamp_limit_per_hop(value) -> int:
    limit = coerce_int(value)
    if limit is None:
        return DEFAULT_LIMIT_PER_HOP
    return max(1, min(limit, MAX_LIMIT_PER_HOP))


NETWORK_SQL = text("""
    WITH hop1 AS (
        SELECT pp2.performer_id, COUNT(DISTINCT pp2.product_id) AS costar_count, 1 AS hop
        FROM product_performers pp1
        JOIN product_performers pp2 ON pp1.product_id = pp2.product_id
        WHERE pp1.performer_id = :performer_id
          AND pp2.performer_id != :performer_id
        GROUP BY pp2.performer_id
        ORDER BY costar_count DESC, pp2.performer_id
        LIMIT :limit_per_hop
    ),
    hop2 AS (
        SELECT pp2.performer_id, COUNT(DISTINCT pp2.product_id) AS costar_count, 2 AS hop
        FROM hop1 h1
        JOIN product_performers pp1 ON h1.performer_id = pp1.performer_id
        JOIN product_performers pp2 ON pp1.product_id = pp2.product_id
        WHERE :max_hops >= 2
          AND pp2.performer_id != :performer_id
          AND pp2.performer_id NOT IN (SELECT performer_id FROM hop1)
        GROUP BY pp2.performer_id
        ORDER BY costar_count DESC, pp2.performer_id
        LIMIT :limit_per_hop
    ),
    all_hops AS (
        SELECT * FROM hop1
        UNION ALL
        SELECT * FROM hop2
    )
    SELECT ah.performer_id AS id, p.name, p.name_en, p.profile_image_url,
           ah.costar_count, ah.hop
    FROM all_hops ah
    JOIN performers p ON ah.performer_id = p.id
    ORDER BY ah.hop, ah.costar_count DESC
""")

EDGES_SQL = text("""
    SELECT pp1.performer_id AS source, pp2.performer_id AS target,
           COUNT(DISTINCT pp1.product_id) AS weight
    FROM product_performers pp1
    JOIN product_performers pp2 ON pp1.product_id = pp2.product_id
    WHERE pp1.performer_id = ANY(:node_ids)
      AND pp2.performer_id = ANY(:node_ids)
      AND pp1.performer_id < pp2.performer_id
    GROUP BY pp1.performer_id, pp2.performer_id
    ORDER BY weight DESC
""")

# Latest non-FANZA thumbnail per performer, falling back to the product default
THUMBNAILS_SQL = text("""
    SELECT DISTINCT ON (pp.performer_id) pp.performer_id,
           COALESCE(
               (SELECT pi.image_url FROM product_images pi
                WHERE pi.product_id = p.id
                  AND pi.image_type = 'thumbnail'
                  AND pi.asp_name IS NOT NULL AND pi.asp_name != 'FANZA'
                ORDER BY pi.display_order NULLS LAST
                LIMIT 1),
               p.default_thumbnail_url
           ) AS thumbnail_url
    FROM product_performers pp
    JOIN products p ON pp.product_id = p.id
    WHERE pp.performer_id = ANY(:performer_ids)
      AND p.default_thumbnail_url IS NOT NULL
    ORDER BY pp.performer_id, p.release_date DESC NULLS LAST
""")


def shape_relations(rows, thumbnails: dict[int, str | None]) -> list[dict]:
    return [
        {
            "id": row.id,
            "name": row.name,
            "name_en": row.name_en,
            "profile_image_url": row.profile_image_url,
            "thumbnail_url": thumbnails.get(row.id),
            "costar_count": int(row.costar_count),
            "hop": int(row.hop),
        }
        for row in rows
    ]


def relation_stats(relations: list[dict]) -> dict:
    """Direct co-star count and the name of the most frequent one."""
    hop1 = [r for r in relations if r["hop"] == 1]
    return {
        "total_costar_count": len(hop1),
        "most_frequent_costar": hop1[0]["name"] if hop1 else None,
    }


def empty_network() -> dict:
    return {
        "success": False,
        "fallback": True,
        "performer": None,
        "relations": [],
        "edges": [],
        "stats": {"total_costar_count": 0, "most_frequent_costar": None},
    }


async def get_performer_network(
    db: AsyncSession,
    performer_id: int,
    hops: int = DEFAULT_HOPS,
    limit_per_hop: int = DEFAULT_LIMIT_PER_HOP,
) -> dict | None:
    """Network payload for ``performer_id``, or None if the performer does not exist."""
    result = await db.execute(
        select(Performer.id, Performer.name, Performer.name_en, Performer.profile_image_url)
        .where(Performer.id == performer_id)
    )
    performer = result.first()
    if performer is None:
        return None

    network_result = await db.execute(NETWORK_SQL, {
        "performer_id": performer_id,
        "limit_per_hop": limit_per_hop,
        "max_hops": hops,
    })
    rows = network_result.fetchall()
    related_ids = [row.id for row in rows]

    thumbnails: dict[int, str | None] = {}
    thumb_ids = [performer_id, *related_ids]
    thumb_result = await db.execute(THUMBNAILS_SQL, {"performer_ids": thumb_ids})
    for row in thumb_result.fetchall():
        thumbnails[row.performer_id] = row.thumbnail_url

    edges: list[dict] = []
    if related_ids:
        edge_result = await db.execute(EDGES_SQL, {"node_ids": thumb_ids})
        edges = [
            {"source": int(row.source), "target": int(row.target), "weight": int(row.weight)}
            for row in edge_result.fetchall()
        ]

    relations = shape_relations(rows, thumbnails)
    logger.debug(f"Performer {performer_id}: {len(relations)} related, {len(edges)} edges")

    return {
        "success": True,
        "performer": {
            "id": performer.id,
            "name": performer.name,
            "name_en": performer.name_en,
            "profile_image_url": performer.profile_image_url,
            "thumbnail_url": thumbnails.get(performer.id),
        },
        "relations": relations,
        "edges": edges,
        "stats": relation_stats(relations),
    }
