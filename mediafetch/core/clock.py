"""시계 추상화

밴 만료/쿨다운/쿠키 TTL 계산에 사용합니다. 테스트에서는 가짜 시계를 주입합니다.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


def wall_clock() -> float:
    return time.time()
