"""
Powers of Tau 명령줄 도구
==========================

  pot-new        <challenge>
  pot-contribute <challenge> <response>
  pot-beacon     <challenge> <response> [--beacon-hash HEX] [--iterations-exp N]
  pot-verify     <challenge> <response> <new_challenge>

압축/정확성 검사 정책은 도구마다 고정되어 있다.
  - contribute: 비압축 입력, 압축 출력, 입력 부분군 검사
  - beacon: 비압축 입력, 압축 출력, 입력 부분군 검사 생략 (배포자 신뢰)

종료 코드 (sysexits):
  64 인자 오류, 65 입력 데이터 오류/검증 실패, 73 출력 파일이 이미 있음, 74 I/O 오류
"""

import argparse
import logging
import sys

from zkp.powersoftau import ceremony
from zkp.powersoftau.beacon import SEED_SIZE
from zkp.powersoftau.errors import CeremonyError, CeremonyIOError, OutputExistsError
from zkp.powersoftau.hasher import format_hash
from zkp.powersoftau.parameters import CeremonyParameters
from zkp.powersoftau.rng import entropy_rng

logger = logging.getLogger(__name__)

EX_OK = 0
EX_USAGE = 64
EX_DATAERR = 65
EX_CANTCREAT = 73
EX_IOERR = 74

# 블록 #564321의 해시
DEFAULT_BEACON_HASH = "0000000000000000000a558a61ddc8ee4e488d647a747fe4dcc362fe2026c620"


class _Parser(argparse.ArgumentParser):

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EX_USAGE, f"{self.prog}: error: {message}\n")


def _parser(prog, positionals):
    parser = _Parser(prog=prog)
    for name in positionals:
        parser.add_argument(name)
    parser.add_argument("--power", type=int, default=CeremonyParameters.power,
                        help="L2 = 2^power")
    parser.add_argument("--batch-size", type=int, default=CeremonyParameters.batch_size)
    parser.add_argument("--workers", type=int, default=1)
    return parser


def _params(args):
    try:
        return CeremonyParameters(power=args.power, batch_size=args.batch_size,
                                  workers=args.workers)
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(EX_USAGE)


def _run(fn):
    """ceremony 오류를 종료 코드로 바꾼다."""
    try:
        return fn()
    except OutputExistsError as e:
        logger.error("%s", e)
        return EX_CANTCREAT
    except CeremonyIOError as e:
        logger.error("%s", e)
        return EX_IOERR
    except CeremonyError as e:
        logger.error("%s", e)
        return EX_DATAERR


def new_main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = _parser("pot-new", ["challenge"]).parse_args(argv)
    params = _params(args)

    def run():
        ceremony.new_challenge(args.challenge, params)
        return EX_OK

    return _run(run)


def contribute_main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = _parser("pot-contribute", ["challenge", "response"])
    parser.add_argument("--entropy", default=None,
                        help="추가 엔트로피 (생략하면 표준 입력에서 읽는다)")
    args = parser.parse_args(argv)
    params = _params(args)

    entropy = args.entropy
    if entropy is None:
        print("Type some random text and press [ENTER] to provide additional entropy...")
        entropy = sys.stdin.readline()

    def run():
        receipt = ceremony.contribute(args.challenge, args.response, params,
                                      entropy_rng(entropy))
        print("Your contribution has been written to response file\n")
        print("The BLAKE2b hash of response file is:")
        print(format_hash(receipt.response_hash))
        print("Thank you for your participation, much appreciated! :)")
        return EX_OK

    return _run(run)


def beacon_main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = _parser("pot-beacon", ["challenge", "response"])
    parser.add_argument("--beacon-hash", default=DEFAULT_BEACON_HASH)
    parser.add_argument("--iterations-exp", type=int, default=10)
    args = parser.parse_args(argv)
    params = _params(args)

    try:
        beacon_hash = bytes.fromhex(args.beacon_hash)
    except ValueError:
        parser.error("--beacon-hash는 16진수 문자열이어야 합니다")
    if len(beacon_hash) != SEED_SIZE:
        parser.error(f"--beacon-hash는 {SEED_SIZE}바이트여야 합니다")
    if args.iterations_exp < 0:
        parser.error("--iterations-exp는 0 이상이어야 합니다")

    def run():
        receipt = ceremony.beacon(args.challenge, args.response, params,
                                  beacon_hash, args.iterations_exp)
        print("The BLAKE2b hash of response file is:")
        print(format_hash(receipt.response_hash))
        return EX_OK

    return _run(run)


def verify_main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = _parser("pot-verify", ["challenge", "response", "new_challenge"]).parse_args(argv)
    params = _params(args)

    def run():
        report = ceremony.verify_contribution(args.challenge, args.response,
                                              args.new_challenge, params)
        if not report:
            return EX_DATAERR
        print("Here's the BLAKE2b hash of the new challenge file:")
        print(format_hash(report.new_challenge_hash))
        return EX_OK

    return _run(run)


if __name__ == "__main__":
    sys.exit(contribute_main())
