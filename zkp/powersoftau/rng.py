"""
결정론적 난수 생성기
=====================

기여자의 비밀 스칼라와 임시 스칼라는 모두 ChaCha20 키스트림에서 뽑는다.

  - 일반 기여: 운영체제 난수 1024바이트 + 사용자 입력 → BLAKE2b → 시드
  - 비콘 기여: 공개 비콘 해시를 2^N번 SHA-256 → 시드 (beacon.py)

**시드 형식**:
  32바이트 digest를 빅엔디안 32비트 워드 8개로 읽는다.
  ChaCha20 키는 이 워드들을 리틀엔디안으로 배치한 것이며
  카운터와 nonce는 0에서 시작한다.

**스칼라 추출**:
  64비트 워드 4개(하위 limb부터)를 모아 상위 2비트를 깎고,
  r 이상이면 다시 뽑는다 (rejection sampling).
"""

import hashlib
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from zkp.powersoftau.curve import CURVE_ORDER

SEED_WORDS = 8
SYSTEM_ENTROPY_BYTES = 1024

# 254비트 스칼라 필드: 최상위 limb에서 2비트를 깎는다
_TOP_LIMB_MASK = 0xFFFFFFFFFFFFFFFF >> 2


class ChaChaRng:
    """ChaCha20 키스트림 기반 결정론적 생성기.

    예시:
        >>> rng = ChaChaRng([0] * 8)
        >>> rng.next_u32()
    """

    def __init__(self, seed_words):
        if len(seed_words) != SEED_WORDS:
            raise ValueError(f"시드는 32비트 워드 {SEED_WORDS}개여야 합니다")
        key = b"".join(int(w).to_bytes(4, "little") for w in seed_words)
        cipher = Cipher(algorithms.ChaCha20(key, bytes(16)), mode=None)
        self._stream = cipher.encryptor()

    def fill_bytes(self, n):
        return self._stream.update(bytes(n))

    def next_u32(self):
        return int.from_bytes(self.fill_bytes(4), "little")

    def next_u64(self):
        hi = self.next_u32()
        lo = self.next_u32()
        return (hi << 32) | lo

    def random_scalar(self):
        """[0, r) 범위의 균등한 스칼라."""
        while True:
            limbs = [self.next_u64() for _ in range(4)]
            limbs[3] &= _TOP_LIMB_MASK
            value = sum(limb << (64 * i) for i, limb in enumerate(limbs))
            if value < CURVE_ORDER:
                return value


def seed_words_from_digest(digest):
    if len(digest) < 4 * SEED_WORDS:
        raise ValueError("시드를 만들기에 digest가 너무 짧습니다")
    return [
        int.from_bytes(digest[4 * i:4 * i + 4], "big")
        for i in range(SEED_WORDS)
    ]


def rng_from_digest(digest):
    """digest의 앞 32바이트로 ChaChaRng를 만든다."""
    return ChaChaRng(seed_words_from_digest(digest))


def entropy_rng(user_entropy=b""):
    """운영체제 난수와 사용자 입력을 섞어 ChaChaRng를 만든다.

    Args:
        user_entropy: 사용자가 키보드로 입력한 임의 문자열 (bytes 또는 str)
    """
    if isinstance(user_entropy, str):
        user_entropy = user_entropy.encode()
    h = hashlib.blake2b(digest_size=64)
    h.update(os.urandom(SYSTEM_ENTROPY_BYTES))
    h.update(user_entropy)
    return rng_from_digest(h.digest())
