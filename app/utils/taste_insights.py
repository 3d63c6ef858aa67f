"""Category and hashtag suggestions for the taste-record wizard."""

from typing import Dict, List, Optional, Any

_MOOD_TAGS = {
    '힐링': ['#힐링', '#차분한'],
    '자극': ['#자극', '#새로운경험'],
    '공부': ['#공부', '#집중'],
    '추억': ['#추억', '#기록'],
}

_COMPANION_TAGS = {
    '혼자': ['#혼자', '#나와의시간'],
    '친구': ['#친구', '#수다'],
    '연인': ['#연인', '#데이트'],
    '가족': ['#가족', '#소중한시간'],
}

_VIBE_TAGS = {
    '조용': ['#조용한', '#차분한공간'],
    '붐빔': ['#핫플', '#붐비는곳'],
    '트렌디': ['#트렌디', '#인스타감성'],
    '클래식': ['#클래식', '#레트로'],
}


def suggest_category_and_tags(mood: Optional[str], companion: Optional[str],
                              vibe: Optional[str]) -> Dict[str, Any]:
    tags: List[str] = []
    tags.extend(_MOOD_TAGS.get(mood or '', []))
    tags.extend(_COMPANION_TAGS.get(companion or '', []))
    tags.extend(_VIBE_TAGS.get(vibe or '', []))

    # First matching rule wins
    category = None
    if mood == '공부':
        category = '도서'
    elif vibe in ('트렌디', '붐빔'):
        category = '카페'
    elif mood == '추억':
        category = '사진'

    return {'category': category, 'tags': tags}
