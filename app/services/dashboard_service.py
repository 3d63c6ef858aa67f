"""
Taste Dashboard Service

Category breakdown of a user's tagged stays. Every computation is also
upserted into the per-user ``TasteDashboard`` snapshot.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..domain.models import now_utc
from ..utils.categories import TRACKED_CATEGORIES
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager

logger = logging.getLogger(__name__)


def category_stats(categories: Iterable[Optional[str]]) -> Dict[str, Any]:
    """``{totalStays, categories: [{key, label, count, ratio, percentage}]}``."""
    counts = {category: 0 for category in TRACKED_CATEGORIES}
    for category in categories:
        if category in counts:
            counts[category] += 1
    total = sum(counts.values())

    stats: List[Dict[str, Any]] = []
    for category in TRACKED_CATEGORIES:
        count = counts[category]
        ratio = count / total if total else 0
        stats.append({
            'key': category,
            'label': category,
            'count': count,
            'ratio': ratio,
            'percentage': round(ratio * 100, 1) if total else 0,
        })
    return {'totalStays': total, 'categories': stats}


class DashboardService:

    @property
    def db(self):
        return get_safe_kuzu_manager()

    def get_dashboard(self, user_id: str) -> Dict[str, Any]:
        from . import stay_service

        stays = stay_service.list_tagged_stays([user_id])
        dashboard = category_stats(s.mapped_category for s in stays)
        self.save_snapshot(user_id, dashboard)
        return dashboard

    def save_snapshot(self, user_id: str, dashboard: Dict[str, Any]) -> None:
        self.db.query(
            """
            MERGE (d:TasteDashboard {user_id: $user_id})
            ON CREATE SET d.total_stays = $total_stays, d.categories_json = $categories_json, d.updated_at = $now
            ON MATCH SET d.total_stays = $total_stays, d.categories_json = $categories_json, d.updated_at = $now
            """,
            {
                'user_id': user_id,
                'total_stays': dashboard['totalStays'],
                'categories_json': json.dumps(dashboard['categories'], ensure_ascii=False),
                'now': now_utc(),
            },
            operation='upsert_taste_dashboard',
        )

    def get_snapshot(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.db.query(
            "MATCH (d:TasteDashboard {user_id: $user_id}) RETURN d",
            {'user_id': user_id},
            operation='get_taste_dashboard',
        )
        if not rows:
            return None
        node = rows[0]['d']
        return {
            'totalStays': int(node.get('total_stays') or 0),
            'categories': json.loads(node.get('categories_json') or '[]'),
            'updatedAt': node.get('updated_at'),
        }
