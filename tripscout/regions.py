"""Broad-region catalog and WIDE/NARROW query classification.

A broad region ("부산") is searched from several representative sub-region
centers; anything more specific is searched from a single geocoded center.
"""
from __future__ import annotations

import re
from typing import Dict, FrozenSet, List, Optional

from .models import SearchType

_BUSAN = ["해운대", "광안리", "서면", "남포동", "태종대"]
_SEOUL = ["강남", "홍대", "명동", "이태원", "잠실"]
_GANGNAM = ["신사동", "압구정", "역삼", "삼성동", "논현"]
_JEJU = ["제주시", "서귀포", "성산", "애월", "중문"]
_DAEGU = ["동성로", "수성못", "안지랑", "김광석길", "서문시장"]
_GWANGJU = ["양림동", "충장로", "송정", "첨단", "무등산"]
_INCHEON = ["차이나타운", "월미도", "송도", "강화", "을왕리"]
_DAEJEON = ["유성", "둔산", "대전역", "한밭수목원", "계룡산"]
_ULSAN = ["태화강", "간절곶", "대왕암공원", "울산대공원", "장생포"]
_GYEONGGI = ["수원", "용인", "성남", "고양", "부천"]

WIDE_REGIONS: Dict[str, List[str]] = {
    "부산": _BUSAN,
    "부산광역시": _BUSAN,
    "서울": _SEOUL,
    "서울특별시": _SEOUL,
    "강남": _GANGNAM,
    "강남구": _GANGNAM,
    "제주": _JEJU,
    "제주도": _JEJU,
    "대구": _DAEGU,
    "대구광역시": _DAEGU,
    "광주": _GWANGJU,
    "광주광역시": _GWANGJU,
    "인천": _INCHEON,
    "인천광역시": _INCHEON,
    "대전": _DAEJEON,
    "대전광역시": _DAEJEON,
    "울산": _ULSAN,
    "울산광역시": _ULSAN,
    "경기": _GYEONGGI,
    "경기도": _GYEONGGI,
    "수원": ["수원역", "행궁동", "광교", "영통", "화성"],
    "강릉": ["경포대", "안목해변", "주문진", "정동진", "강릉역"],
    "속초": ["속초해수욕장", "청초호", "설악산", "속초항", "영랑호"],
    "춘천": ["남이섬", "소양강", "춘천역", "춘천명동", "의암호"],
    "전주": ["한옥마을", "전주역", "덕진공원", "남부시장", "동문거리"],
    "여수": ["여수엑스포", "오동도", "돌산", "여수항", "향일암"],
    "순천": ["순천만", "순천역", "낙안읍성", "순천만정원", "드라마세트장"],
    "경주": ["불국사", "첨성대", "대릉원", "동궁", "경주역"],
    "통영": ["동피랑", "케이블카", "통영항", "욕지도", "통영중앙시장"],
    "거제": ["외도", "바람의언덕", "학동흑진주몽돌해변", "거제도포로수용소", "구조라"],
    "천안": ["독립기념관", "천안역", "천안삼거리", "병천순대", "아라리오갤러리"],
    "청주": ["청주역", "상당산성", "청주고인쇄박물관", "무심천", "수암골"],
}

# Neighbourhood-level names. A query mentioning any of them is already specific.
# "강남" is deliberately absent: on its own it is a district with its own
# sub-region list above.
DETAILED_KEYWORDS: FrozenSet[str] = frozenset(
    {
        # Busan
        "해운대", "광안리", "서면", "남포동", "태종대", "송정", "기장", "영도",
        "감천", "자갈치", "범일동", "중앙동", "부산역", "부산대",
        # Seoul
        "홍대", "명동", "이태원", "잠실", "신촌", "압구정", "삼청동",
        "인사동", "북촌", "종로", "동대문", "신림", "건대", "노원", "강북",
        "마포", "여의도", "용산", "성수", "연남동", "망원동", "서촌",
        # Jeju
        "제주시", "서귀포", "성산", "애월", "중문", "협재", "한림", "표선",
        "우도", "마라도", "함덕", "김녕",
        # Gwangju
        "양림동", "충장로", "첨단", "무등산", "국립아시아문화전당",
        # Daegu
        "동성로", "수성못", "안지랑", "김광석길", "서문시장", "팔공산",
        # Elsewhere
        "경포대", "안목", "주문진", "정동진", "남이섬", "소양강",
        "한옥마을", "오동도", "엑스포", "불국사", "첨성대", "동피랑",
    }
)

_TOKEN_SPLIT_RE = re.compile(r"[ /,]")


def sub_regions_of(name: str) -> Optional[List[str]]:
    subs = WIDE_REGIONS.get((name or "").strip())
    if subs is None:
        return None
    return list(subs)


def all_wide_regions() -> List[str]:
    return list(WIDE_REGIONS.keys())


def contains_detailed_keyword(query: str) -> bool:
    text = (query or "").lower()
    return any(keyword.lower() in text for keyword in DETAILED_KEYWORDS)


def classify(query: str) -> SearchType:
    """Decide whether a query fans out over sub-regions (WIDE) or not.

    Precedence: detailed keyword > multi-token > catalog match > NARROW.
    """
    normalized = (query or "").strip()

    if contains_detailed_keyword(normalized):
        return SearchType.NARROW

    if len(_TOKEN_SPLIT_RE.split(normalized)) >= 2:
        return SearchType.NARROW

    if sub_regions_of(normalized) is not None:
        return SearchType.WIDE

    return SearchType.NARROW
