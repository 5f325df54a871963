"""
트랜스크립트 해시
==================

누산기(accumulator) 파일 전체를 BLAKE2b로 해싱하여 트랜스크립트 해시를 만든다.

**트랜스크립트 해시의 역할**:
  - 기여자의 지식 증명(proof of knowledge)이 서명하는 메시지
  - 연속된 파일 사이의 연결 고리 (응답 파일의 헤더 = 직전 챌린지의 해시)

**호환성**:
  같은 세리머니의 모든 참여자는 반드시 동일한 해시 설정
  (digest_size, personalization)을 사용해야 한다.
  설정은 CeremonyParameters에서 온다.

사용 예시:
    >>> h = DomainSeparatedHasher(params)
    >>> h.update(b"abc")
    >>> h.digest()
    >>> DomainSeparatedHasher.of(params, b"abc")  # 한 번에
"""

import hashlib

from zkp.powersoftau.curve import CURVE_ORDER

# 스트리밍 해시 창 크기
HASH_WINDOW = 1 << 20


class DomainSeparatedHasher:
    """세리머니 설정으로 고정된 BLAKE2b 해셔."""

    def __init__(self, params):
        self.digest_size = params.hash_size
        self._h = hashlib.blake2b(
            digest_size=params.hash_size,
            person=params.hash_personalization,
        )

    @classmethod
    def of(cls, params, data):
        h = cls(params)
        h.update(data)
        return h.digest()

    def update(self, data):
        """데이터를 창 단위로 나누어 흡수한다. mmap과 memoryview도 받는다."""
        # mmap을 닫기 전에 뷰가 해제되어 있어야 한다
        with memoryview(data) as view:
            for start in range(0, len(view), HASH_WINDOW):
                with view[start:start + HASH_WINDOW] as window:
                    self._h.update(window)
        return self

    def digest(self):
        return self._h.digest()

    def hexdigest(self):
        return self._h.hexdigest()


def blank_hash(params):
    """빈 입력의 해시. 새로 생성한 챌린지의 헤더로 쓰인다."""
    return DomainSeparatedHasher(params).digest()


def hash_to_scalar(tag, *parts):
    """Fiat-Shamir 챌린지 스칼라.

    BLAKE2b-512(tag ‖ parts...) 를 빅엔디안 정수로 읽어 r로 축소한다.
    512비트를 축소하므로 편향은 무시할 수 있다.

    Args:
        tag: 도메인 분리용 정수 (0..255)
        parts: 바이트열들

    Returns:
        int: 0 <= c < r
    """
    h = hashlib.blake2b(digest_size=64)
    h.update(bytes([tag]))
    for part in parts:
        h.update(part)
    return int.from_bytes(h.digest(), "big") % CURVE_ORDER


def format_hash(digest, indent="\t"):
    """해시를 16바이트 줄, 4바이트 묶음으로 보기 좋게 만든다."""
    lines = []
    for i in range(0, len(digest), 16):
        line = digest[i:i + 16]
        sections = [line[j:j + 4].hex() for j in range(0, len(line), 4)]
        lines.append(indent + " ".join(sections))
    return "\n".join(lines)
