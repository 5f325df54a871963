"""
Tests for accumulator.py.

Covers:
- serialize / deserialize in both modes, length and identity checks
- transform with known secrets (τ=3, α=5, β=7)
- chunking and worker count do not change the output
- verify_transformation and its batched counterpart
- generate_initial / decompress / load_response
"""

import hashlib

import pytest

from zkp.powersoftau.accumulator import (
    AccumulatorState, BatchedAccumulator, power_pairs,
)
from zkp.powersoftau.curve import G1, G2, ec_mul, encode_g1, encode_g2
from zkp.powersoftau.errors import (
    CeremonyError, CeremonyIOError, FormatError, IdentityElementError, SubgroupError,
)
from zkp.powersoftau.keypair import PrivateKey, keypair
from zkp.powersoftau.parameters import CheckForCorrectness, ElementType, UseCompression

NO = UseCompression.NO
YES = UseCompression.YES
CHECK = CheckForCorrectness.YES
SKIP = CheckForCorrectness.NO


def _copy_state(state):
    return AccumulatorState(
        list(state.tau_powers_g1), list(state.tau_powers_g2),
        list(state.alpha_tau_powers_g1), list(state.beta_tau_powers_g1),
        state.beta_g2,
    )


def _inject(data, params, element_type, index, compression, encoded):
    buf = bytearray(data)
    offset = params.position(element_type, index, compression)
    buf[offset:offset + len(encoded)] = encoded
    return bytes(buf)


# ─────────────────────────────────────────────────────────────────────
# 직렬화
# ─────────────────────────────────────────────────────────────────────

class TestSerialization:

    @pytest.mark.parametrize("compression", [NO, YES])
    def test_round_trip(self, accumulator, known_contribution, compression):
        state = known_contribution["after"]
        data = accumulator.serialize(state, compression)
        assert len(data) == accumulator.params.accumulator_size(compression)
        assert accumulator.deserialize(data, compression, CHECK) == state

    def test_initial_challenge_layout(self, params, initial_challenge):
        assert len(initial_challenge) == params.accumulator_size(NO)
        assert initial_challenge[:32] == hashlib.blake2b(b"", digest_size=32).digest()
        offset = params.position(ElementType.TAU_G2, 0, NO)
        assert initial_challenge[offset:offset + 128] == encode_g2(G2)

    def test_custom_header(self, accumulator, params):
        header = b"\x11" * params.hash_size
        data = accumulator.serialize(AccumulatorState.initial(params), NO, header)
        assert data[:params.hash_size] == header

    def test_wrong_header_length(self, accumulator, params):
        with pytest.raises(FormatError):
            accumulator.serialize(AccumulatorState.initial(params), NO, b"\x00" * 5)

    def test_wrong_vector_length(self, accumulator, params):
        state = AccumulatorState.initial(params)
        state.tau_powers_g2 = state.tau_powers_g2[:-1]
        with pytest.raises(FormatError):
            accumulator.serialize(state, NO)

    @pytest.mark.parametrize("delta", [-1, 1])
    def test_deserialize_wrong_length(self, accumulator, initial_challenge, delta):
        data = initial_challenge + b"\x00" if delta > 0 else initial_challenge[:-1]
        with pytest.raises(FormatError):
            accumulator.deserialize(data, NO, CHECK)

    def test_deserialize_rejects_identity(self, accumulator, params, initial_challenge):
        data = _inject(initial_challenge, params, ElementType.TAU_G1, 2, NO, encode_g1(None))
        with pytest.raises(IdentityElementError):
            accumulator.deserialize(data, NO, CHECK)

    def test_subgroup_check_is_optional(self, accumulator, params, initial_challenge,
                                        non_subgroup_g2_point):
        data = _inject(initial_challenge, params, ElementType.TAU_G2, 1, NO,
                       encode_g2(non_subgroup_g2_point))
        with pytest.raises(SubgroupError):
            accumulator.deserialize(data, NO, CHECK)
        state = accumulator.deserialize(data, NO, SKIP)
        assert state.tau_powers_g2[1] == non_subgroup_g2_point

    def test_calculate_hash_covers_whole_file(self, accumulator, initial_challenge):
        expected = hashlib.blake2b(initial_challenge, digest_size=32).digest()
        assert accumulator.calculate_hash(initial_challenge) == expected


# ─────────────────────────────────────────────────────────────────────
# 변환
# ─────────────────────────────────────────────────────────────────────

class TestTransform:

    def test_response_header_is_challenge_hash(self, accumulator, initial_challenge,
                                               known_contribution):
        digest = accumulator.calculate_hash(initial_challenge)
        assert known_contribution["response"][:32] == digest

    def test_tau_g2_powers(self, known_contribution):
        # 초기 상태에 τ=3 을 적용하면 [g2, 3·g2, 9·g2, 27·g2]
        after = known_contribution["after"]
        assert after.tau_powers_g2 == [G2, ec_mul(G2, 3), ec_mul(G2, 9), ec_mul(G2, 27)]

    def test_tau_g1_powers(self, known_contribution):
        after = known_contribution["after"]
        assert after.tau_powers_g1 == [ec_mul(G1, 3 ** i) for i in range(7)]

    def test_alpha_and_beta_powers(self, known_contribution):
        after = known_contribution["after"]
        assert after.alpha_tau_powers_g1 == [ec_mul(G1, 5 * 3 ** i) for i in range(4)]
        assert after.beta_tau_powers_g1 == [ec_mul(G1, 7 * 3 ** i) for i in range(4)]
        assert after.beta_g2 == ec_mul(G2, 7)

    def test_contributions_compose(self, accumulator, params, known_contribution,
                                   transform_bytes):
        # 압축된 응답 위에 τ=2, α=1, β=1 을 다시 적용
        response = known_contribution["response"]
        second = transform_bytes(accumulator, response, PrivateKey(2, 1, 1),
                                 input_compression=YES, output_compression=NO)
        state = accumulator.deserialize(second, NO, CHECK)
        assert state.tau_powers_g2[3] == ec_mul(G2, 6 ** 3)
        assert state.alpha_tau_powers_g1[2] == ec_mul(G1, 5 * 6 ** 2)
        assert state.beta_g2 == ec_mul(G2, 7)

    @pytest.mark.parametrize("batch_size, workers", [(1, 1), (7, 1), (2, 3)])
    def test_chunking_does_not_change_output(self, params, initial_challenge,
                                             known_contribution, transform_bytes,
                                             batch_size, workers):
        other = BatchedAccumulator(params.with_overrides(batch_size=batch_size,
                                                         workers=workers))
        response = transform_bytes(other, initial_challenge, PrivateKey(3, 5, 7))
        assert response == known_contribution["response"]

    def test_uncompressed_output(self, accumulator, initial_challenge, known_contribution,
                                 transform_bytes):
        response = transform_bytes(accumulator, initial_challenge, PrivateKey(3, 5, 7),
                                   output_compression=NO)
        assert accumulator.deserialize(response, NO, CHECK) == known_contribution["after"]

    def test_rejects_non_subgroup_input(self, accumulator, params, initial_challenge,
                                        non_subgroup_g2_point, transform_bytes):
        data = _inject(initial_challenge, params, ElementType.TAU_G2, 1, NO,
                       encode_g2(non_subgroup_g2_point))
        with pytest.raises(SubgroupError):
            transform_bytes(accumulator, data, PrivateKey(3, 5, 7))

    def test_rejects_identity_input(self, accumulator, params, initial_challenge,
                                    transform_bytes):
        data = _inject(initial_challenge, params, ElementType.ALPHA_G1, 3, NO, encode_g1(None))
        with pytest.raises(IdentityElementError):
            transform_bytes(accumulator, data, PrivateKey(3, 5, 7))

    def test_zero_tau_is_rejected(self, accumulator, initial_challenge, transform_bytes):
        with pytest.raises(IdentityElementError):
            transform_bytes(accumulator, initial_challenge, PrivateKey(0, 5, 7))

    def test_short_output(self, accumulator, initial_challenge):
        with pytest.raises(FormatError):
            accumulator.transform(initial_challenge, bytearray(10), NO, YES, CHECK,
                                  PrivateKey(3, 5, 7))

    def test_read_only_output(self, accumulator, params, initial_challenge):
        output = bytes(params.accumulator_size(YES))
        with pytest.raises(CeremonyIOError):
            accumulator.transform(initial_challenge, output, NO, YES, CHECK,
                                  PrivateKey(3, 5, 7))

    def test_destroyed_key(self, accumulator, initial_challenge, transform_bytes):
        key = PrivateKey(3, 5, 7)
        key.destroy()
        with pytest.raises(CeremonyError):
            transform_bytes(accumulator, initial_challenge, key)


# ─────────────────────────────────────────────────────────────────────
# 초기 생성 / 압축 해제 / 응답 읽기
# ─────────────────────────────────────────────────────────────────────

class TestInitialAndDecompress:

    @pytest.mark.parametrize("compression", [NO, YES])
    def test_generate_initial_matches_serialize(self, accumulator, params, compression):
        out = bytearray(params.accumulator_size(compression))
        out[:params.hash_size] = hashlib.blake2b(b"", digest_size=32).digest()
        accumulator.generate_initial(out, compression)
        assert bytes(out) == accumulator.serialize(AccumulatorState.initial(params), compression)

    def test_decompress(self, accumulator, params, known_contribution):
        response = known_contribution["response"]
        out = bytearray(params.accumulator_size(NO))
        accumulator.decompress(response, out, CHECK)
        state = accumulator.deserialize(bytes(out), NO, CHECK)
        assert state == known_contribution["after"]

    def test_load_response(self, accumulator, genuine_contribution):
        data = genuine_contribution["response"] + genuine_contribution["public_key"].serialize()
        header, state, public_key = accumulator.load_response(data, YES, CHECK)
        assert header == genuine_contribution["digest"]
        assert state == genuine_contribution["after"]
        assert public_key == genuine_contribution["public_key"]

    def test_load_response_without_public_key(self, accumulator, genuine_contribution):
        with pytest.raises(FormatError):
            accumulator.load_response(genuine_contribution["response"], YES, CHECK)


# ─────────────────────────────────────────────────────────────────────
# 검증
# ─────────────────────────────────────────────────────────────────────

class TestPowerPairs:

    def test_consistent_vector(self):
        points = [ec_mul(G1, 3 ** i) for i in range(5)]
        left, right = power_pairs(points)
        assert ec_mul(left, 3) == right

    def test_inconsistent_vector(self):
        points = [ec_mul(G1, 3 ** i) for i in range(5)]
        points[2] = ec_mul(G1, 10)
        left, right = power_pairs(points)
        assert ec_mul(left, 3) != right


class TestVerification:

    def test_genuine_contribution(self, accumulator, genuine_contribution):
        c = genuine_contribution
        assert accumulator.verify_transformation(c["before"], c["after"],
                                                 c["public_key"], c["digest"])

    def test_wrong_transcript_hash(self, accumulator, genuine_contribution):
        c = genuine_contribution
        assert not accumulator.verify_transformation(c["before"], c["after"],
                                                     c["public_key"], b"\x00" * 32)

    def test_public_key_from_other_secrets(self, accumulator, genuine_contribution, make_rng):
        c = genuine_contribution
        other_key, _ = keypair(make_rng([8, 7, 6, 5, 4, 3, 2, 1]), c["digest"])
        assert not accumulator.verify_transformation(c["before"], c["after"],
                                                     other_key, c["digest"])

    def test_broken_power_ladder(self, accumulator, genuine_contribution):
        c = genuine_contribution
        after = _copy_state(c["after"])
        after.tau_powers_g1[5] = ec_mul(after.tau_powers_g1[5], 2)
        assert not accumulator.verify_transformation(c["before"], after,
                                                     c["public_key"], c["digest"])

    def test_generator_must_stay_first(self, accumulator, genuine_contribution):
        c = genuine_contribution
        after = _copy_state(c["after"])
        after.tau_powers_g2[0] = ec_mul(G2, 2)
        assert not accumulator.verify_transformation(c["before"], after,
                                                     c["public_key"], c["digest"])

    def test_wrong_vector_length(self, accumulator, genuine_contribution):
        c = genuine_contribution
        after = _copy_state(c["after"])
        after.beta_tau_powers_g1.pop()
        assert not accumulator.verify_transformation(c["before"], after,
                                                     c["public_key"], c["digest"])

    def test_batched_genuine(self, accumulator, initial_challenge, genuine_contribution):
        c = genuine_contribution
        assert accumulator.verify_transformation_batched(
            initial_challenge, c["response"], c["public_key"], c["digest"],
            NO, YES, SKIP, CHECK,
        )

    def test_batched_tampered_bytes(self, accumulator, params, initial_challenge,
                                    genuine_contribution):
        c = genuine_contribution
        response = bytearray(c["response"])
        response[params.position(ElementType.TAU_G1, 4, YES) + 7] ^= 0x01
        assert not accumulator.verify_transformation_batched(
            initial_challenge, bytes(response), c["public_key"], c["digest"],
            NO, YES, SKIP, CHECK,
        )

    def test_batched_short_response(self, accumulator, initial_challenge,
                                    genuine_contribution):
        c = genuine_contribution
        assert not accumulator.verify_transformation_batched(
            initial_challenge, c["response"][:100], c["public_key"], c["digest"],
            NO, YES, SKIP, CHECK,
        )
