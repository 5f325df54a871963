"""
무작위 비콘(Random Beacon) 시드 도출
=====================================

세리머니의 마지막 기여는 공개적이고 예측 불가능한 값(예: 특정 블록 해시)에서
난수를 만든다. 누구도 미리 알 수 없었던 값이므로 마지막 기여자조차
쓸모 있는 toxic waste를 남길 수 없다.

**도출 과정**:
  seed := SHA-256(seed) 를 정확히 2^N번 반복한다.
  반복 비용 때문에 비콘 값이 공개된 직후에 결과를 조작할 수 없다.

**체크포인트**:
  i ≡ 0 (mod 2^(N-10)) 인 반복 i마다 "해싱 전" 값을 기록한다 (총 1024개).
  관찰자는 임의의 구간만 골라 독립적으로 다시 계산해볼 수 있다.

**재현성**:
  보안 성질은 알고리즘의 비밀이 아니라 비콘의 예측 불가능성이다.
  같은 seed와 N이면 어떤 구현에서도 비트 단위로 같은 결과가 나와야 한다.

사용 예시:
    >>> d = derive(bytes.fromhex("0000...c620"), exponent=10)
    >>> d.final.hex()
    >>> rng = d.rng()
"""

import hashlib
import logging

from zkp.powersoftau.rng import rng_from_digest

logger = logging.getLogger(__name__)

SEED_SIZE = 32
CHECKPOINT_COUNT_LOG = 10


class BeaconDerivation:
    """비콘 도출 결과.

    속성:
        seed: 원래 비콘 값
        exponent: N (반복 횟수 2^N)
        checkpoints: [(i, i번째 해싱 전 값)]
        final: 2^N번 해싱한 최종 digest
    """

    def __init__(self, seed, exponent, checkpoints, final):
        self.seed = seed
        self.exponent = exponent
        self.checkpoints = checkpoints
        self.final = final

    @property
    def iterations(self):
        return 1 << self.exponent

    def rng(self):
        """최종 digest로 키잉한 ChaChaRng."""
        return rng_from_digest(self.final)

    def verify_checkpoint(self, index):
        """index번째 체크포인트에서 다음 체크포인트(또는 최종값)까지 다시 계산한다.

        Returns:
            bool: 기록된 값과 일치하는지
        """
        start, value = self.checkpoints[index]
        if index + 1 < len(self.checkpoints):
            end, expected = self.checkpoints[index + 1]
        else:
            end, expected = self.iterations, self.final
        for _ in range(end - start):
            value = hashlib.sha256(value).digest()
        return value == expected


def checkpoint_interval(exponent):
    return 1 << max(exponent - CHECKPOINT_COUNT_LOG, 0)


def derive(seed, exponent=10):
    """비콘 값에서 RNG 시드를 도출한다.

    Args:
        seed: 32바이트 공개 비콘 값
        exponent: N, SHA-256을 2^N번 반복

    Returns:
        BeaconDerivation

    Raises:
        ValueError: seed 길이가 32바이트가 아니거나 exponent가 음수일 때
    """
    if len(seed) != SEED_SIZE:
        raise ValueError(f"비콘 값은 {SEED_SIZE}바이트여야 합니다: {len(seed)}")
    if exponent < 0:
        raise ValueError(f"exponent는 0 이상이어야 합니다: {exponent}")

    interval = checkpoint_interval(exponent)
    checkpoints = []
    current = bytes(seed)
    for i in range(1 << exponent):
        if i % interval == 0:
            checkpoints.append((i, current))
            logger.debug("%d: %s", i, current.hex())
        current = hashlib.sha256(current).digest()

    logger.info("Final result of beacon: %s", current.hex())
    return BeaconDerivation(bytes(seed), exponent, checkpoints, current)
