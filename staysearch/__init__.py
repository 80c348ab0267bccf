"""staysearch - 멀티 백엔드 숙소 검색/평가/랭킹 엔진"""

__version__ = "1.0.0"
