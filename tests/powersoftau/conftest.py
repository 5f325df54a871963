import sys
import os
import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from py_ecc import bn128

from zkp.powersoftau.accumulator import AccumulatorState, BatchedAccumulator
from zkp.powersoftau.curve import FQ2, is_in_subgroup, sqrt_fq2
from zkp.powersoftau.keypair import PrivateKey, keypair
from zkp.powersoftau.parameters import (
    CeremonyParameters, CheckForCorrectness, UseCompression,
)
from zkp.powersoftau.rng import ChaChaRng


# ── 테스트 상수 ──
TOXIC_TAU = 3
TOXIC_ALPHA = 5
TOXIC_BETA = 7

SEED_WORDS = [1, 2, 3, 4, 5, 6, 7, 8]


@pytest.fixture(scope="session")
def params():
    """L2 = 4, L1 = 7. batch_size=3이라 청크 경계가 벡터 중간에 생긴다."""
    return CeremonyParameters(power=2, batch_size=3)


@pytest.fixture(scope="session")
def accumulator(params):
    return BatchedAccumulator(params)


@pytest.fixture(scope="session")
def initial_challenge(params, accumulator):
    """아무도 기여하지 않은 비압축 챌린지 바이트열."""
    return accumulator.serialize(AccumulatorState.initial(params), UseCompression.NO)


def _make_rng(seed_words=None):
    return ChaChaRng(seed_words or SEED_WORDS)


def _transform_bytes(accumulator, challenge, private_key,
                    input_compression=UseCompression.NO,
                    output_compression=UseCompression.YES,
                    check=CheckForCorrectness.YES):
    params = accumulator.params
    response = bytearray(params.accumulator_size(output_compression))
    response[:params.hash_size] = accumulator.calculate_hash(challenge)
    accumulator.transform(challenge, response, input_compression,
                          output_compression, check, private_key)
    return bytes(response)


@pytest.fixture(scope="session")
def known_contribution(accumulator, initial_challenge):
    """τ=3, α=5, β=7로 초기 챌린지에 기여한 결과 (압축 응답)."""
    key = PrivateKey(TOXIC_TAU, TOXIC_ALPHA, TOXIC_BETA)
    response = _transform_bytes(accumulator, initial_challenge, key)
    after = accumulator.deserialize(response, UseCompression.YES, CheckForCorrectness.YES)
    return {"response": response, "after": after}


@pytest.fixture(scope="session")
def genuine_contribution(accumulator, initial_challenge):
    """ChaChaRng로 뽑은 키쌍으로 만든 실제 기여."""
    params = accumulator.params
    before = accumulator.deserialize(initial_challenge, UseCompression.NO,
                                     CheckForCorrectness.YES)
    digest = accumulator.calculate_hash(initial_challenge)
    public_key, private_key = keypair(_make_rng(), digest)
    with private_key:
        response = _transform_bytes(accumulator, initial_challenge, private_key)
    after = accumulator.deserialize(response, UseCompression.YES, CheckForCorrectness.YES)
    return {
        "before": before,
        "after": after,
        "response": response,
        "public_key": public_key,
        "private_key": private_key,
        "digest": digest,
        "params": params,
    }


@pytest.fixture(scope="session")
def make_rng():
    """고정 시드 ChaChaRng를 만드는 함수."""
    return _make_rng


@pytest.fixture(scope="session")
def transform_bytes():
    """챌린지 바이트열 → 응답 바이트열 (공개 키 제외)."""
    return _transform_bytes


@pytest.fixture(scope="session")
def non_subgroup_g2_point():
    """트위스트 곡선 위에 있지만 위수 r 부분군 밖의 점."""
    for k in range(1, 200):
        x = FQ2([k, 1])
        y = sqrt_fq2(x * x * x + bn128.b2)
        if y is None:
            continue
        point = (x, y)
        if not is_in_subgroup(point):
            return point
    raise AssertionError("부분군 밖의 점을 찾지 못했습니다")
