"""추상 캐시 클라이언트 인터페이스

Response cache backends implement this interface. Implementations must not
raise for expected failures: unreachable or unconfigured stores return
``None`` / ``False``.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BaseCacheClient(ABC):
    """캐시 백엔드 추상 클래스"""

    @property
    @abstractmethod
    def is_enabled(self) -> bool:
        """캐시 클라이언트 활성화 여부"""
        pass

    @abstractmethod
    async def connect(self) -> bool:
        """연결 초기화"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """연결 종료"""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Round-trip check against the store"""
        pass

    # ==================== 기본 연산 ====================

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """키에 해당하는 값 조회"""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """키-값 저장 (TTL 옵션)"""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """키 삭제"""
        pass

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """키의 남은 TTL 조회 (-1: 만료 없음, -2: 키 없음)"""
        pass
