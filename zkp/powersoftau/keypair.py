"""
기여자 키쌍 (Contribution Keypair)
===================================

기여자는 비밀 스칼라 τ, α, β ("toxic waste")를 뽑고,
누산기를 이 값들로 변환했다는 사실을 공개 키로 증명한다.

**공개 키 구성** (비밀 x ∈ {τ, α, β} 각각에 대해):
  - g1^x, g2^x: 두 군에서의 x의 상(image). 변환 검증의 비율 운반자
  - g1^s: 임시 스칼라 s에 대한 커밋먼트
  - z = s + c·x (mod r): 슈노어(Schnorr) 응답

  c = H(tag_x ‖ transcript_hash ‖ g1^s ‖ g1^x)   (Fiat-Shamir)

  검증: g1^z == g1^s · (g1^x)^c  그리고  e(g1, g2^x) == e(g1^x, g2)

**트랜스크립트 바인딩**:
  c가 트랜스크립트 해시에 의존하므로, 다른 누산기 상태에 대해 만든 공개 키를
  재사용(replay)하면 검증에 실패한다.

**toxic waste 폐기**:
  PrivateKey는 덮어쓸 수 있는 버퍼에 비밀을 담고, with 블록을 벗어나면
  (예외 경로 포함) 0으로 덮어쓴다.

사용 예시:
    >>> pk, sk = keypair(rng, transcript_hash)
    >>> with sk:
    ...     accumulator.transform(..., private_key=sk)
    >>> pk.verify(transcript_hash)   # True
"""

import logging

from zkp.powersoftau.curve import (
    G1, G2, CURVE_ORDER,
    ec_mul, ec_add, same_ratio,
    encode_g1, encode_g2, decode_g1, decode_g2,
    encode_scalar, decode_scalar,
)
from zkp.powersoftau.errors import (
    DegenerateScalarError,
    FormatError,
    IdentityElementError,
    SecretDestroyedError,
)
from zkp.powersoftau.hasher import hash_to_scalar
from zkp.powersoftau.parameters import (
    G1_UNCOMPRESSED_BYTE_SIZE,
    G2_UNCOMPRESSED_BYTE_SIZE,
    SCALAR_BYTE_SIZE,
)

logger = logging.getLogger(__name__)

# 도메인 분리 태그
TAU_TAG = 0
ALPHA_TAG = 1
BETA_TAG = 2

MAX_SAMPLE_ATTEMPTS = 64

KEY_PROOF_SIZE = (
    G1_UNCOMPRESSED_BYTE_SIZE
    + G2_UNCOMPRESSED_BYTE_SIZE
    + G1_UNCOMPRESSED_BYTE_SIZE
    + SCALAR_BYTE_SIZE
)
PUBLIC_KEY_SIZE = 3 * KEY_PROOF_SIZE


def proof_challenge(tag, transcript_hash, g1_s, g1_x):
    return hash_to_scalar(tag, bytes(transcript_hash), encode_g1(g1_s), encode_g1(g1_x))


class KeyProof:
    """비밀 하나에 대한 공개 키 조각과 지식 증명."""

    def __init__(self, g1_x, g2_x, g1_s, z):
        self.g1_x = g1_x
        self.g2_x = g2_x
        self.g1_s = g1_s
        self.z = z

    def __eq__(self, other):
        if not isinstance(other, KeyProof):
            return NotImplemented
        return (self.g1_x, self.g2_x, self.g1_s, self.z) == \
            (other.g1_x, other.g2_x, other.g1_s, other.z)

    def verify(self, tag, transcript_hash):
        if None in (self.g1_x, self.g2_x, self.g1_s):
            return False
        c = proof_challenge(tag, transcript_hash, self.g1_s, self.g1_x)
        lhs = ec_mul(G1, self.z)
        rhs = ec_add(self.g1_s, ec_mul(self.g1_x, c))
        if lhs != rhs:
            return False
        return same_ratio((G1, self.g1_x), (G2, self.g2_x))

    def serialize(self):
        return (
            encode_g1(self.g1_x)
            + encode_g2(self.g2_x)
            + encode_g1(self.g1_s)
            + encode_scalar(self.z)
        )

    @classmethod
    def deserialize(cls, data, check_subgroup=True):
        if len(data) != KEY_PROOF_SIZE:
            raise FormatError(f"KeyProof는 {KEY_PROOF_SIZE}바이트여야 합니다: {len(data)}")
        g1 = G1_UNCOMPRESSED_BYTE_SIZE
        g2 = G2_UNCOMPRESSED_BYTE_SIZE
        g1_x = decode_g1(data[:g1], check_subgroup=check_subgroup)
        g2_x = decode_g2(data[g1:g1 + g2], check_subgroup=check_subgroup)
        g1_s = decode_g1(data[g1 + g2:2 * g1 + g2], check_subgroup=check_subgroup)
        z = decode_scalar(data[2 * g1 + g2:])
        if None in (g1_x, g2_x, g1_s):
            raise IdentityElementError("공개 키에 무한원점이 있습니다")
        return cls(g1_x, g2_x, g1_s, z)


class PublicKey:
    """τ, α, β 각각의 KeyProof. 응답 파일의 누산기 뒤에 붙는다."""

    def __init__(self, tau, alpha, beta):
        self.tau = tau
        self.alpha = alpha
        self.beta = beta

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return (self.tau, self.alpha, self.beta) == (other.tau, other.alpha, other.beta)

    def proofs(self):
        return ((TAU_TAG, self.tau), (ALPHA_TAG, self.alpha), (BETA_TAG, self.beta))

    def verify(self, transcript_hash):
        """세 지식 증명이 모두 transcript_hash에 대해 유효한지."""
        for tag, proof in self.proofs():
            if not proof.verify(tag, transcript_hash):
                logger.warning("proof of knowledge %d failed", tag)
                return False
        return True

    def serialize(self):
        return b"".join(proof.serialize() for _, proof in self.proofs())

    @classmethod
    def deserialize(cls, data, check_subgroup=True):
        """
        Raises:
            FormatError: 길이가 PUBLIC_KEY_SIZE가 아닐 때
            PointDecodeError, SubgroupError, IdentityElementError
        """
        if len(data) != PUBLIC_KEY_SIZE:
            raise FormatError(f"공개 키는 {PUBLIC_KEY_SIZE}바이트여야 합니다: {len(data)}")
        parts = [
            KeyProof.deserialize(bytes(data[i:i + KEY_PROOF_SIZE]), check_subgroup)
            for i in range(0, PUBLIC_KEY_SIZE, KEY_PROOF_SIZE)
        ]
        return cls(*parts)

    def write(self, output_map, params, compression):
        """응답 파일의 누산기 바로 뒤에 공개 키를 쓴다."""
        offset = params.accumulator_size(compression)
        output_map[offset:offset + PUBLIC_KEY_SIZE] = self.serialize()

    @classmethod
    def read(cls, input_map, params, compression, check_subgroup=True):
        offset = params.accumulator_size(compression)
        if len(input_map) != offset + PUBLIC_KEY_SIZE:
            raise FormatError(
                f"응답 파일 크기는 {offset + PUBLIC_KEY_SIZE}바이트여야 합니다: {len(input_map)}"
            )
        return cls.deserialize(input_map[offset:offset + PUBLIC_KEY_SIZE], check_subgroup)


class PrivateKey:
    """toxic waste τ, α, β.

    비밀은 bytearray에 저장되며 destroy()가 0으로 덮어쓴다.
    with 블록으로 사용하면 어떤 경로로 빠져나가든 폐기된다.
    """

    _NAMES = ("tau", "alpha", "beta")

    def __init__(self, tau, alpha, beta):
        self._buffer = bytearray(3 * SCALAR_BYTE_SIZE)
        for i, value in enumerate((tau, alpha, beta)):
            start = i * SCALAR_BYTE_SIZE
            self._buffer[start:start + SCALAR_BYTE_SIZE] = encode_scalar(value)
        self._destroyed = False

    def _scalar(self, i):
        if self._destroyed:
            raise SecretDestroyedError("이미 폐기된 비밀 키입니다")
        start = i * SCALAR_BYTE_SIZE
        return int.from_bytes(self._buffer[start:start + SCALAR_BYTE_SIZE], "big")

    @property
    def tau(self):
        return self._scalar(0)

    @property
    def alpha(self):
        return self._scalar(1)

    @property
    def beta(self):
        return self._scalar(2)

    @property
    def destroyed(self):
        return self._destroyed

    def destroy(self):
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._destroyed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False

    def __repr__(self):
        state = "destroyed" if self._destroyed else "live"
        return f"<PrivateKey {state}>"


def _sample_nonzero(rng):
    for _ in range(MAX_SAMPLE_ATTEMPTS):
        value = rng.random_scalar() % CURVE_ORDER
        if value != 0:
            return value
    raise DegenerateScalarError(
        f"{MAX_SAMPLE_ATTEMPTS}번 시도했지만 0이 아닌 스칼라를 얻지 못했습니다"
    )


def _prove(rng, tag, x, transcript_hash):
    s = _sample_nonzero(rng)
    g1_x = ec_mul(G1, x)
    g2_x = ec_mul(G2, x)
    g1_s = ec_mul(G1, s)
    c = proof_challenge(tag, transcript_hash, g1_s, g1_x)
    z = (s + c * x) % CURVE_ORDER
    return KeyProof(g1_x, g2_x, g1_s, z)


def keypair(rng, transcript_hash):
    """새 키쌍을 만든다.

    Args:
        rng: random_scalar()를 제공하는 생성기 (ChaChaRng)
        transcript_hash: 기여 대상 챌린지의 트랜스크립트 해시

    Returns:
        (PublicKey, PrivateKey)

    Raises:
        DegenerateScalarError: 생성기가 0만 내놓을 때
    """
    tau = _sample_nonzero(rng)
    alpha = _sample_nonzero(rng)
    beta = _sample_nonzero(rng)

    public_key = PublicKey(
        _prove(rng, TAU_TAG, tau, transcript_hash),
        _prove(rng, ALPHA_TAG, alpha, transcript_hash),
        _prove(rng, BETA_TAG, beta, transcript_hash),
    )
    private_key = PrivateKey(tau, alpha, beta)
    del tau, alpha, beta
    return public_key, private_key
