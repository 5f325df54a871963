"""
Powers of Tau 누산기 (Batched Accumulator)
===========================================

세리머니의 공개 파라미터 상태를 다룬다.

**누산기 상태** (누적 비밀 τ, α, β에 대해):
  TauG1      = [g1, g1^τ, g1^τ², ..., g1^τ^(L1-1)]       (L1 = 2·L2 - 1)
  TauG2      = [g2, g2^τ, ..., g2^τ^(L2-1)]
  AlphaTauG1 = [g1^α, g1^(α·τ), ..., g1^(α·τ^(L2-1))]
  BetaTauG1  = [g1^β, g1^(β·τ), ..., g1^(β·τ^(L2-1))]
  BetaG2     = g2^β

  원소 i는 항상 누적 비밀의 i제곱을 담는다. 아무도 기여하지 않은 초기 상태는
  누적 비밀이 1이므로 모든 원소가 생성자이다.

**변환 (transform)**:
  기여자의 비밀 (τ', α', β')에 대해 원소 i에 τ'^i (TauG1, TauG2),
  α'·τ'^i (AlphaTauG1), β'·τ'^i (BetaTauG1)를 곱하고 BetaG2에는 β'를 곱한다.
  벡터를 batch_size 청크로 나누어 처리하므로 최대 메모리 사용량은
  벡터 길이와 무관하다.

**검증 (same-ratio)**:
  e(A, B') == e(A', B) 이면 (A, A')와 (B, B')는 같은 숨은 지수를 가진다.
  공개 키의 (g2, g2^x)를 비율 운반자로 써서 직전/직후 상태를 비교하고,
  직후 상태 안에서 인접 원소 쌍의 무작위 선형결합으로 거듭제곱 사다리를 확인한다.

**파일 형식**:
  header ‖ TauG1 ‖ AlphaTauG1 ‖ BetaTauG1 ‖ TauG2 ‖ BetaG2 [‖ PublicKey]

사용 예시:
    >>> acc = BatchedAccumulator(params)
    >>> digest = acc.calculate_hash(challenge)
    >>> acc.transform(challenge, response, UseCompression.NO, UseCompression.YES,
    ...               CheckForCorrectness.YES, private_key)
"""

import logging
import secrets

from zkp.powersoftau.batch import BatchProcessor
from zkp.powersoftau.curve import (
    G1, G2, CURVE_ORDER,
    ec_mul, ec_lincomb, same_ratio,
    encode_g1, encode_g2, decode_g1, decode_g2,
)
from zkp.powersoftau.errors import (
    CeremonyError,
    CeremonyIOError,
    FormatError,
    IdentityElementError,
)
from zkp.powersoftau.hasher import DomainSeparatedHasher, blank_hash
from zkp.powersoftau.keypair import PublicKey
from zkp.powersoftau.parameters import (
    CheckForCorrectness,
    ElementType,
    FIELD_ORDER,
    UseCompression,
)

logger = logging.getLogger(__name__)


class AccumulatorState:
    """메모리에 올린 누산기 상태."""

    def __init__(self, tau_powers_g1, tau_powers_g2, alpha_tau_powers_g1,
                 beta_tau_powers_g1, beta_g2):
        self.tau_powers_g1 = tau_powers_g1
        self.tau_powers_g2 = tau_powers_g2
        self.alpha_tau_powers_g1 = alpha_tau_powers_g1
        self.beta_tau_powers_g1 = beta_tau_powers_g1
        self.beta_g2 = beta_g2

    @classmethod
    def initial(cls, params):
        """누적 비밀이 1인 초기 상태: 모든 원소가 생성자."""
        l1 = params.tau_powers_g1_length
        l2 = params.tau_powers_length
        return cls([G1] * l1, [G2] * l2, [G1] * l2, [G1] * l2, G2)

    def vector(self, element_type):
        if element_type is ElementType.TAU_G1:
            return self.tau_powers_g1
        if element_type is ElementType.TAU_G2:
            return self.tau_powers_g2
        if element_type is ElementType.ALPHA_G1:
            return self.alpha_tau_powers_g1
        if element_type is ElementType.BETA_G1:
            return self.beta_tau_powers_g1
        return [self.beta_g2]

    def __eq__(self, other):
        if not isinstance(other, AccumulatorState):
            return NotImplemented
        return all(self.vector(t) == other.vector(t) for t in FIELD_ORDER)


# ─────────────────────────────────────────────────────────────────────
# 점 범위 읽기/쓰기
# ─────────────────────────────────────────────────────────────────────

def _codec(element_type):
    if element_type.is_g2:
        return encode_g2, decode_g2
    return encode_g1, decode_g1


class _MappedReader:
    """매핑된 파일에서 원소 범위를 디코딩한다."""

    def __init__(self, data, params, compression, check):
        self.data = data
        self.params = params
        self.compression = compression
        self.check = check is CheckForCorrectness.YES

    def read(self, element_type, start, end):
        params = self.params
        size = params.element_size(element_type, self.compression)
        offset = params.position(element_type, start, self.compression)
        _, decode = _codec(element_type)
        compressed = self.compression is UseCompression.YES
        raw = self.data[offset:offset + (end - start) * size]
        points = []
        for i in range(end - start):
            point = decode(bytes(raw[i * size:(i + 1) * size]), compressed, self.check)
            if point is None:
                raise IdentityElementError(
                    f"{element_type.value}[{start + i}]가 무한원점입니다"
                )
            points.append(point)
        return points


class _StateReader:
    """AccumulatorState를 _MappedReader와 같은 방식으로 읽는다."""

    def __init__(self, state):
        self.state = state

    def read(self, element_type, start, end):
        return self.state.vector(element_type)[start:end]


def _write_points(output_map, params, element_type, start, points, compression):
    encode, _ = _codec(element_type)
    compressed = compression is UseCompression.YES
    offset = params.position(element_type, start, compression)
    blob = b"".join(encode(p, compressed) for p in points)
    try:
        output_map[offset:offset + len(blob)] = blob
    except (OSError, ValueError, TypeError) as e:
        raise CeremonyIOError(
            f"{element_type.value}[{start}..]를 출력에 쓸 수 없습니다: {e}"
        ) from e


def _flush(output_map):
    flush = getattr(output_map, "flush", None)
    if flush is None:
        return
    try:
        flush()
    except (OSError, ValueError) as e:
        raise CeremonyIOError(f"출력 flush 실패: {e}") from e


def _random_coefficients(n):
    return [secrets.randbelow(CURVE_ORDER - 1) + 1 for _ in range(n)]


def power_pairs(points):
    """인접 원소 쌍 (v[i], v[i+1])을 무작위 선형결합 하나로 합친다.

    모든 i에 대해 v[i+1] = v[i]^x 이면 결과 (L, R)도 R = L^x 이다.
    하나라도 어긋나면 무작위 계수 때문에 압도적 확률로 비율이 깨진다.
    """
    coeffs = _random_coefficients(len(points) - 1)
    left = ec_lincomb(points[:-1], coeffs)
    right = ec_lincomb(points[1:], coeffs)
    return left, right


# ─────────────────────────────────────────────────────────────────────
# 누산기
# ─────────────────────────────────────────────────────────────────────

class BatchedAccumulator:
    """CeremonyParameters에 묶인 누산기 연산 모음."""

    def __init__(self, params, processor=None):
        self.params = params
        self.processor = processor or BatchProcessor.from_params(params)

    # ─── 해시 ───

    def calculate_hash(self, data):
        """파일 전체 바이트의 트랜스크립트 해시. 디코딩과 무관하게 O(size)."""
        return DomainSeparatedHasher.of(self.params, data)

    # ─── (역)직렬화 ───

    def serialize(self, state, compression, header=None):
        """상태 → header ‖ body 바이트열.

        Args:
            state: AccumulatorState
            compression: UseCompression
            header: 트랜스크립트 해시 헤더 (기본값: 빈 입력의 해시)
        """
        params = self.params
        if header is None:
            header = blank_hash(params)
        if len(header) != params.hash_size:
            raise FormatError(f"헤더는 {params.hash_size}바이트여야 합니다: {len(header)}")
        for t in FIELD_ORDER:
            if len(state.vector(t)) != params.element_count(t):
                raise FormatError(
                    f"{t.value} 길이는 {params.element_count(t)}이어야 합니다: "
                    f"{len(state.vector(t))}"
                )
        out = bytearray(params.accumulator_size(compression))
        out[:params.hash_size] = header
        for t in FIELD_ORDER:
            _write_points(out, params, t, 0, state.vector(t), compression)
        return bytes(out)

    def deserialize(self, data, compression, check):
        """header ‖ body 바이트열 → AccumulatorState.

        Raises:
            FormatError: 길이가 accumulator_size와 다를 때 (파싱 전에 검사)
            PointDecodeError: 잘못된 점 인코딩
            SubgroupError: check가 YES이고 부분군 밖의 점이 있을 때
            IdentityElementError: 무한원점이 있을 때
        """
        expected = self.params.accumulator_size(compression)
        if len(data) != expected:
            raise FormatError(f"누산기 크기는 {expected}바이트여야 합니다: {len(data)}")
        reader = _MappedReader(data, self.params, compression, check)
        vectors = [
            reader.read(t, 0, self.params.element_count(t)) for t in FIELD_ORDER
        ]
        tau_g1, alpha_g1, beta_g1, tau_g2, beta_g2 = vectors
        return AccumulatorState(tau_g1, tau_g2, alpha_g1, beta_g1, beta_g2[0])

    def load_response(self, data, compression, check):
        """응답 파일 → (헤더, AccumulatorState, PublicKey)."""
        params = self.params
        expected = params.contribution_size(compression)
        if len(data) != expected:
            raise FormatError(f"응답 파일 크기는 {expected}바이트여야 합니다: {len(data)}")
        accumulator_size = params.accumulator_size(compression)
        header = bytes(data[:params.hash_size])
        state = self.deserialize(data[:accumulator_size], compression, check)
        public_key = PublicKey.read(data, params, compression,
                                    check is CheckForCorrectness.YES)
        return header, state, public_key

    # ─── 초기 생성 / 압축 해제 ───

    def generate_initial(self, output_map, compression):
        """모든 원소가 생성자인 바디를 쓴다. 헤더는 호출자가 쓴다."""
        params = self.params
        compressed = compression is UseCompression.YES
        for t in FIELD_ORDER:
            encode, _ = _codec(t)
            unit = encode(G2 if t.is_g2 else G1, compressed)

            def fill(start, end, t=t, unit=unit):
                offset = params.position(t, start, compression)
                try:
                    output_map[offset:offset + (end - start) * len(unit)] = unit * (end - start)
                except (OSError, ValueError, TypeError) as e:
                    raise CeremonyIOError(f"초기 누산기를 쓸 수 없습니다: {e}") from e

            self.processor.run(0, params.element_count(t), fill)
        _flush(output_map)

    def decompress(self, input_map, output_map, check):
        """압축된 응답 바디를 비압축 챌린지 바디로 다시 인코딩한다."""
        params = self.params
        reader = _MappedReader(input_map, params, UseCompression.YES, check)
        for t in FIELD_ORDER:
            def copy(start, end, t=t):
                points = reader.read(t, start, end)
                _write_points(output_map, params, t, start, points, UseCompression.NO)

            self.processor.run(0, params.element_count(t), copy)
        _flush(output_map)

    # ─── 변환 ───

    def _check_map_sizes(self, input_map, output_map, input_compression, output_compression):
        params = self.params
        need_in = params.accumulator_size(input_compression)
        need_out = params.accumulator_size(output_compression)
        if len(input_map) < need_in:
            raise FormatError(f"입력은 최소 {need_in}바이트여야 합니다: {len(input_map)}")
        if len(output_map) < need_out:
            raise FormatError(f"출력은 최소 {need_out}바이트여야 합니다: {len(output_map)}")

    def transform(self, input_map, output_map, input_compression, output_compression,
                  check_input, private_key):
        """기여자의 비밀로 누산기를 변환하여 output_map에 쓴다.

        원소 i ← 원소 i ^ (τ^i), α·τ^i, β·τ^i; BetaG2 ← BetaG2 ^ β.
        각 청크는 자기 입력 범위를 읽고, 변환하고, 대응하는 출력 범위에 쓴다.
        청크가 끝날 때마다 그 범위까지는 출력이 일관된 상태이다.

        Args:
            input_map: 챌린지 (mmap, bytes, bytearray)
            output_map: 응답 (쓰기 가능한 mmap 또는 bytearray)
            input_compression, output_compression: UseCompression
            check_input: CheckForCorrectness
            private_key: PrivateKey

        Raises:
            FormatError: 맵 크기가 부족할 때
            PointDecodeError, SubgroupError: 잘못된 입력 점
            IdentityElementError: 입력 또는 결과가 무한원점일 때
            CeremonyIOError: 쓰기/flush 실패
        """
        params = self.params
        self._check_map_sizes(input_map, output_map, input_compression, output_compression)
        reader = _MappedReader(input_map, params, input_compression, check_input)
        l2 = params.tau_powers_length
        tau = private_key.tau
        alpha = private_key.alpha
        beta = private_key.beta

        def exponentiate(element_type, start, powers, coeff):
            points = reader.read(element_type, start, start + len(powers))
            result = []
            for i, (point, power) in enumerate(zip(points, powers)):
                new_point = ec_mul(point, coeff * power % CURVE_ORDER)
                if new_point is None:
                    raise IdentityElementError(
                        f"{element_type.value}[{start + i}] 변환 결과가 무한원점입니다"
                    )
                result.append(new_point)
            _write_points(output_map, params, element_type, start, result, output_compression)

        def process(start, end):
            powers = []
            current = pow(tau, start, CURVE_ORDER)
            for _ in range(start, end):
                powers.append(current)
                current = current * tau % CURVE_ORDER

            exponentiate(ElementType.TAU_G1, start, powers, 1)
            if start < l2:
                head = powers[:min(end, l2) - start]
                exponentiate(ElementType.TAU_G2, start, head, 1)
                exponentiate(ElementType.ALPHA_G1, start, head, alpha)
                exponentiate(ElementType.BETA_G1, start, head, beta)
            logger.debug("transformed [%d, %d)", start, end)

        logger.info("transforming %d powers in batches of %d",
                    params.tau_powers_g1_length, self.processor.batch_size)
        self.processor.run(0, params.tau_powers_g1_length, process)
        exponentiate(ElementType.BETA_G2, 0, [1], beta)
        _flush(output_map)
        logger.info("transformation complete")

    # ─── 검증 ───

    def verify_transformation(self, before, after, public_key, transcript_hash):
        """메모리의 두 상태 사이의 변환이 올바른지 확인한다. 예외를 던지지 않는다."""
        params = self.params
        for state in (before, after):
            for t in FIELD_ORDER:
                if len(state.vector(t)) != params.element_count(t):
                    logger.warning("%s has wrong length", t.value)
                    return False
        return self._verify(_StateReader(before), _StateReader(after),
                            public_key, transcript_hash)

    def verify_transformation_batched(self, input_map, output_map, public_key,
                                      transcript_hash, input_compression,
                                      output_compression, check_input, check_output):
        """매핑된 챌린지/응답을 청크 단위로 읽어 같은 검사를 한다."""
        params = self.params
        if len(input_map) < params.accumulator_size(input_compression) or \
                len(output_map) < params.accumulator_size(output_compression):
            logger.warning("input or output map is too short")
            return False
        before = _MappedReader(input_map, params, input_compression, check_input)
        after = _MappedReader(output_map, params, output_compression, check_output)
        return self._verify(before, after, public_key, transcript_hash)

    def _verify(self, before, after, public_key, transcript_hash):
        try:
            return self._check_ratios(before, after, public_key, transcript_hash)
        except (CeremonyError, IndexError, TypeError, ValueError) as e:
            logger.warning("verification aborted: %s", e)
            return False

    def _check_ratios(self, before, after, public_key, transcript_hash):
        if not public_key.verify(transcript_hash):
            return False

        after_tau_g1 = after.read(ElementType.TAU_G1, 0, 2)
        after_tau_g2 = after.read(ElementType.TAU_G2, 0, 2)
        if after_tau_g1[0] != G1 or after_tau_g2[0] != G2:
            logger.warning("first power of tau is not the generator")
            return False

        before_tau_g1 = before.read(ElementType.TAU_G1, 1, 2)[0]
        before_alpha = before.read(ElementType.ALPHA_G1, 0, 1)[0]
        after_alpha = after.read(ElementType.ALPHA_G1, 0, 1)[0]
        before_beta = before.read(ElementType.BETA_G1, 0, 1)[0]
        after_beta = after.read(ElementType.BETA_G1, 0, 1)[0]
        before_beta_g2 = before.read(ElementType.BETA_G2, 0, 1)[0]
        after_beta_g2 = after.read(ElementType.BETA_G2, 0, 1)[0]

        checks = (
            ("tau", (before_tau_g1, after_tau_g1[1]), (G2, public_key.tau.g2_x)),
            ("alpha", (before_alpha, after_alpha), (G2, public_key.alpha.g2_x)),
            ("beta", (before_beta, after_beta), (G2, public_key.beta.g2_x)),
            ("beta_g2", (before_beta, after_beta), (before_beta_g2, after_beta_g2)),
        )
        for name, g1_pair, g2_pair in checks:
            if not same_ratio(g1_pair, g2_pair):
                logger.warning("contribution to %s is inconsistent", name)
                return False

        tau_g1_pair = (after_tau_g1[0], after_tau_g1[1])
        tau_g2_pair = (after_tau_g2[0], after_tau_g2[1])
        for t in (ElementType.TAU_G1, ElementType.ALPHA_G1,
                  ElementType.BETA_G1, ElementType.TAU_G2):
            n = self.params.element_count(t)
            # 청크마다 원소 하나를 겹쳐 읽어 경계의 쌍도 검사한다
            for start, end in self.processor.chunks(0, n - 1):
                pairs = power_pairs(after.read(t, start, end + 1))
                if t.is_g2:
                    ok = same_ratio(tau_g1_pair, pairs)
                else:
                    ok = same_ratio(pairs, tau_g2_pair)
                if not ok:
                    logger.warning("%s powers are inconsistent in [%d, %d]",
                                   t.value, start, end)
                    return False
        return True
