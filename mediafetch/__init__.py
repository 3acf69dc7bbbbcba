"""mediafetch - 폴백 기반 미디어 수집 엔진"""

__version__ = "1.0.0"
