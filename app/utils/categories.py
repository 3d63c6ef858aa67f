"""
Mapping from Kakao Local category groups to the app's taste categories.

Kakao group codes used here:
- CT1: cultural facility (split further by its category path)
- AT4: tourist attraction
- CE7: cafe
- FD6: restaurant
"""

from typing import Optional

KAKAO_GROUP_CODES = ['CT1', 'AT4', 'CE7', 'FD6']

TRACKED_CATEGORIES = ['영화', '공연', '전시', '문화시설', '관광명소', '카페', '식당']

_CULTURE_KEYWORDS = [
    ('영화', ['영화']),
    ('공연', ['공연', '아트홀', '뮤지컬', '라이브']),
    ('전시', ['전시', '미술', '갤러리']),
]

_GROUP_CATEGORIES = {
    'AT4': '관광명소',
    'CE7': '카페',
    'FD6': '식당',
}


def map_category(group_code: Optional[str], category_name: Optional[str] = None) -> Optional[str]:
    """Return the taste category for a Kakao place, or None when untracked."""
    if group_code == 'CT1':
        name = category_name or ''
        for category, keywords in _CULTURE_KEYWORDS:
            if any(keyword in name for keyword in keywords):
                return category
        return '문화시설'
    return _GROUP_CATEGORIES.get(group_code or '')
