"""
Powers of Tau 세리머니 파라미터
=================================

세리머니 크기에 관련된 모든 상수를 하나의 불변(immutable) 객체로 묶는다.
모든 핵심 연산은 이 객체를 인자로 받으므로, 다시 빌드하지 않고도
여러 크기의 세리머니를 다룰 수 있다.

**벡터 길이**:
  L2 = 2^power                 (TauG2, AlphaTauG1, BetaTauG1)
  L1 = 2·L2 - 1                (TauG1)

**파일 크기** (헤더 = 직전 파일의 트랜스크립트 해시):
  accumulator_size = hash_size + L1·|G1| + 2·L2·|G1| + L2·|G2| + |G2|
  contribution_size = accumulator_size + public_key_size

사용 예시:
    >>> params = CeremonyParameters(power=2)
    >>> params.tau_powers_length
    4
    >>> params.tau_powers_g1_length
    7
"""

import enum
from dataclasses import dataclass, replace


class UseCompression(enum.Enum):
    """점 직렬화 방식. 파일 자체에는 기록되지 않는다."""
    YES = "compressed"
    NO = "uncompressed"


class CheckForCorrectness(enum.Enum):
    """역직렬화 시 부분군 검사 여부."""
    YES = "check"
    NO = "skip"


class ElementType(enum.Enum):
    TAU_G1 = "tau_g1"
    TAU_G2 = "tau_g2"
    ALPHA_G1 = "alpha_g1"
    BETA_G1 = "beta_g1"
    BETA_G2 = "beta_g2"

    @property
    def is_g2(self):
        return self in (ElementType.TAU_G2, ElementType.BETA_G2)


# BN254 점 크기 (바이트)
G1_UNCOMPRESSED_BYTE_SIZE = 64
G2_UNCOMPRESSED_BYTE_SIZE = 128
G1_COMPRESSED_BYTE_SIZE = 32
G2_COMPRESSED_BYTE_SIZE = 64
SCALAR_BYTE_SIZE = 32

# 바디 내 필드 순서
FIELD_ORDER = (
    ElementType.TAU_G1,
    ElementType.ALPHA_G1,
    ElementType.BETA_G1,
    ElementType.TAU_G2,
    ElementType.BETA_G2,
)


@dataclass(frozen=True)
class CeremonyParameters:
    """세리머니 한 인스턴스의 설정.

    속성:
        power: 최대 차수의 지수. L2 = 2^power
        batch_size: 한 청크에서 처리할 원소 수 (최대 메모리 사용량을 결정)
        hash_size: 트랜스크립트 해시 길이 (BLAKE2b digest_size, 1..64)
        hash_personalization: BLAKE2b personalization (최대 16바이트)
        workers: 청크 병렬 처리 워커 수
    """

    power: int = 10
    batch_size: int = 1 << 12
    hash_size: int = 32
    hash_personalization: bytes = b""
    workers: int = 1

    def __post_init__(self):
        if self.power < 1:
            raise ValueError(f"power는 1 이상이어야 합니다: {self.power}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size는 1 이상이어야 합니다: {self.batch_size}")
        if self.workers < 1:
            raise ValueError(f"workers는 1 이상이어야 합니다: {self.workers}")
        if not 1 <= self.hash_size <= 64:
            raise ValueError(f"hash_size는 1..64 범위여야 합니다: {self.hash_size}")
        if len(self.hash_personalization) > 16:
            raise ValueError("hash_personalization은 16바이트 이하여야 합니다")

    def with_overrides(self, **changes):
        return replace(self, **changes)

    # ─── 벡터 길이 ───

    @property
    def tau_powers_length(self):
        return 1 << self.power

    @property
    def tau_powers_g1_length(self):
        return (self.tau_powers_length << 1) - 1

    def element_count(self, element_type):
        if element_type is ElementType.TAU_G1:
            return self.tau_powers_g1_length
        if element_type is ElementType.BETA_G2:
            return 1
        return self.tau_powers_length

    # ─── 바이트 크기 ───

    @staticmethod
    def g1_size(compression):
        if compression is UseCompression.YES:
            return G1_COMPRESSED_BYTE_SIZE
        return G1_UNCOMPRESSED_BYTE_SIZE

    @staticmethod
    def g2_size(compression):
        if compression is UseCompression.YES:
            return G2_COMPRESSED_BYTE_SIZE
        return G2_UNCOMPRESSED_BYTE_SIZE

    def element_size(self, element_type, compression):
        if element_type.is_g2:
            return self.g2_size(compression)
        return self.g1_size(compression)

    def body_size(self, compression):
        return sum(
            self.element_count(t) * self.element_size(t, compression)
            for t in FIELD_ORDER
        )

    def accumulator_size(self, compression):
        return self.hash_size + self.body_size(compression)

    @property
    def public_key_size(self):
        # (g1^x, g2^x, g1^s, z) × 3, 점은 항상 비압축
        per_secret = (
            2 * G1_UNCOMPRESSED_BYTE_SIZE
            + G2_UNCOMPRESSED_BYTE_SIZE
            + SCALAR_BYTE_SIZE
        )
        return 3 * per_secret

    def contribution_size(self, compression):
        return self.accumulator_size(compression) + self.public_key_size

    def position(self, element_type, index, compression):
        """파일 내 원소의 바이트 오프셋 (헤더 포함).

        Raises:
            IndexError: index가 벡터 길이를 벗어날 때
        """
        if not 0 <= index < self.element_count(element_type):
            raise IndexError(
                f"{element_type.value}[{index}]는 범위를 벗어났습니다"
            )
        offset = self.hash_size
        for t in FIELD_ORDER:
            if t is element_type:
                break
            offset += self.element_count(t) * self.element_size(t, compression)
        return offset + index * self.element_size(element_type, compression)
