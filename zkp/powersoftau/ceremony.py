"""
세리머니 파일 흐름
===================

파일 단위로 한 번의 기여를 수행한다.

  ┌──────────────────────────────────────────────────────────────┐
  │  new_challenge: 빈 해시 헤더 + 생성자로 채운 비압축 누산기     │
  ├──────────────────────────────────────────────────────────────┤
  │  contribute / beacon:                                         │
  │    challenge (mmap) → 해시 → 응답 헤더에 기록                 │
  │    → keypair(rng, 해시) → transform → 공개 키 추가            │
  │    → 응답 해시 (다음 참여자를 위해 공개)                      │
  ├──────────────────────────────────────────────────────────────┤
  │  verify_contribution:                                         │
  │    응답 헤더 == hash(challenge) 확인 → same-ratio 검증        │
  │    → (유효할 때만) 압축 해제하여 다음 챌린지 생성             │
  └──────────────────────────────────────────────────────────────┘

**파일 불변성**:
  출력 파일은 항상 새로 만든다 (이미 있으면 OutputExistsError).
  한 번 쓴 파일은 다시 수정하지 않는다.

**toxic waste**:
  PrivateKey는 transform이 끝나자마자, 공개 키를 쓰기 전에 폐기된다.
"""

import logging
import mmap
import os
from contextlib import contextmanager

from zkp.powersoftau.accumulator import BatchedAccumulator
from zkp.powersoftau.beacon import derive
from zkp.powersoftau.errors import (
    CeremonyError,
    CeremonyIOError,
    FormatError,
    OutputExistsError,
)
from zkp.powersoftau.hasher import blank_hash, format_hash
from zkp.powersoftau.keypair import PublicKey, keypair
from zkp.powersoftau.parameters import CheckForCorrectness, UseCompression

logger = logging.getLogger(__name__)


class ContributionReceipt:
    """기여 결과 요약.

    속성:
        challenge_hash: 기여 대상 챌린지의 해시 (응답 헤더)
        response_hash: 응답 파일 전체의 해시
        public_key: 응답에 추가된 PublicKey
    """

    def __init__(self, challenge_hash, response_hash, public_key):
        self.challenge_hash = challenge_hash
        self.response_hash = response_hash
        self.public_key = public_key


class VerificationReport:

    def __init__(self, valid, response_hash=None, new_challenge_hash=None):
        self.valid = valid
        self.response_hash = response_hash
        self.new_challenge_hash = new_challenge_hash

    def __bool__(self):
        return self.valid


# ─────────────────────────────────────────────────────────────────────
# mmap 헬퍼
# ─────────────────────────────────────────────────────────────────────

@contextmanager
def open_readable(path, expected_size):
    """파일을 읽기 전용으로 매핑한다. 크기는 파싱 전에 확인한다."""
    try:
        f = open(path, "rb")
    except OSError as e:
        raise CeremonyIOError(f"{path}를 열 수 없습니다: {e}") from e
    with f:
        size = os.fstat(f.fileno()).st_size
        if size != expected_size:
            raise FormatError(
                f"{path}의 크기는 {expected_size}바이트여야 하지만 {size}바이트입니다"
            )
        try:
            mapped = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as e:
            raise CeremonyIOError(f"{path}를 매핑할 수 없습니다: {e}") from e
        try:
            yield mapped
        finally:
            mapped.close()


@contextmanager
def create_writable(path, size):
    """새 파일을 size 바이트로 만들고 쓰기 가능하게 매핑한다."""
    try:
        f = open(path, "xb+")
    except FileExistsError as e:
        raise OutputExistsError(f"{path}가 이미 존재합니다") from e
    except OSError as e:
        raise CeremonyIOError(f"{path}를 만들 수 없습니다: {e}") from e
    with f:
        try:
            f.truncate(size)
            mapped = mmap.mmap(f.fileno(), size)
        except (OSError, ValueError) as e:
            raise CeremonyIOError(f"{path}를 매핑할 수 없습니다: {e}") from e
        try:
            yield mapped
            mapped.flush()
        finally:
            mapped.close()


# ─────────────────────────────────────────────────────────────────────
# 흐름
# ─────────────────────────────────────────────────────────────────────

def new_challenge(path, params, compression=UseCompression.NO):
    """아무도 기여하지 않은 초기 챌린지를 만든다.

    Returns:
        bytes: 생성된 파일의 해시
    """
    accumulator = BatchedAccumulator(params)
    logger.info("Will generate an empty accumulator for 2^%d powers of tau", params.power)
    with create_writable(path, params.accumulator_size(compression)) as out:
        out[:params.hash_size] = blank_hash(params)
        accumulator.generate_initial(out, compression)
        digest = accumulator.calculate_hash(out)
    logger.info("Empty contribution is formed with a hash:\n%s", format_hash(digest))
    return digest


def contribute(challenge_path, response_path, params, rng,
               input_compression=UseCompression.NO,
               output_compression=UseCompression.YES,
               check_input=CheckForCorrectness.YES):
    """챌린지에 기여하여 응답 파일을 만든다.

    Raises:
        FormatError: 챌린지 크기가 맞지 않을 때
        OutputExistsError: 응답 파일이 이미 있을 때
        CeremonyIOError, PointDecodeError, SubgroupError, IdentityElementError
    """
    accumulator = BatchedAccumulator(params)
    logger.info("Will contribute to accumulator for 2^%d powers of tau", params.power)
    logger.info("In total will generate up to %d powers", params.tau_powers_g1_length)

    with open_readable(challenge_path, params.accumulator_size(input_compression)) as challenge, \
            create_writable(response_path, params.contribution_size(output_compression)) as response:
        logger.info("Calculating previous contribution hash...")
        challenge_hash = accumulator.calculate_hash(challenge)
        logger.info("Contributing on top of the hash:\n%s", format_hash(challenge_hash))

        response[:params.hash_size] = challenge_hash
        response.flush()

        public_key, private_key = keypair(rng, challenge_hash)

        logger.info("Computing and writing your contribution, this could take a while...")
        with private_key:
            accumulator.transform(challenge, response, input_compression,
                                  output_compression, check_input, private_key)

        logger.info("Finishing writing your contribution to response file...")
        public_key.write(response, params, output_compression)
        response.flush()
        response_hash = accumulator.calculate_hash(response)

    logger.info("Done! The hash of response file is:\n%s", format_hash(response_hash))
    return ContributionReceipt(challenge_hash, response_hash, public_key)


def beacon(challenge_path, response_path, params, beacon_hash, exponent=10):
    """무작위 비콘으로 마지막 기여를 한다.

    입력은 비압축, 출력은 압축이며 입력의 부분군 검사는 생략한다
    (챌린지 배포자를 신뢰하는 성능상의 선택).
    """
    logger.info("Will contribute a random beacon to accumulator for 2^%d powers of tau",
                params.power)
    derivation = derive(beacon_hash, exponent)
    logger.info("Done creating a beacon RNG")
    return contribute(
        challenge_path, response_path, params, derivation.rng(),
        input_compression=UseCompression.NO,
        output_compression=UseCompression.YES,
        check_input=CheckForCorrectness.NO,
    )


def verify_contribution(challenge_path, response_path, new_challenge_path, params,
                        input_compression=UseCompression.NO,
                        output_compression=UseCompression.YES):
    """응답을 검증하고, 유효하면 다음 참여자를 위한 챌린지를 만든다.

    Returns:
        VerificationReport: valid가 False이면 새 챌린지는 만들지 않는다.

    Raises:
        FormatError: 파일 크기가 맞지 않을 때
        OutputExistsError: 새 챌린지 파일이 이미 있을 때
    """
    accumulator = BatchedAccumulator(params)
    with open_readable(challenge_path, params.accumulator_size(input_compression)) as challenge, \
            open_readable(response_path, params.contribution_size(output_compression)) as response:
        logger.info("Calculating previous challenge hash...")
        challenge_hash = accumulator.calculate_hash(challenge)
        response_hash = accumulator.calculate_hash(response)

        if response[:params.hash_size] != challenge_hash:
            logger.warning("Hash chain failure. This is not the right response.")
            return VerificationReport(False, response_hash)

        try:
            public_key = PublicKey.read(response, params, output_compression)
        except CeremonyError as e:
            logger.warning("unable to read public key: %s", e)
            return VerificationReport(False, response_hash)

        logger.info("Verifying a contribution to contain proper powers and correspond to the public key...")
        valid = accumulator.verify_transformation_batched(
            challenge, response, public_key, challenge_hash,
            input_compression, output_compression,
            CheckForCorrectness.NO, CheckForCorrectness.YES,
        )
        if not valid:
            logger.warning("Verification failed, contribution was invalid somehow.")
            return VerificationReport(False, response_hash)
        logger.info("Verification succeeded!")
        logger.info("The hash of the response file is:\n%s", format_hash(response_hash))

        size = params.accumulator_size(UseCompression.NO)
        with create_writable(new_challenge_path, size) as out:
            out[:params.hash_size] = response_hash
            if output_compression is UseCompression.YES:
                accumulator.decompress(response, out, CheckForCorrectness.NO)
            else:
                out[params.hash_size:size] = response[params.hash_size:size]
            new_hash = accumulator.calculate_hash(out)

    logger.info("Here's the BLAKE2b hash of the decompressed participant's response as new_challenge file:\n%s",
                format_hash(new_hash))
    return VerificationReport(True, response_hash, new_hash)
