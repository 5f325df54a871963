"""
Powers of Tau 오류 타입
========================

기여(contribution) 과정에서 발생하는 모든 오류는 CeremonyError를 상속한다.

  - FormatError / PointDecodeError: 암호 연산 전에 보고되는 입력 형식 오류
  - SubgroupError: 정확성 검사를 요청한 경우에만 발생
  - CeremonyIOError: 매핑/flush 실패 (재시도하지 않음)
  - OutputExistsError: 응답/챌린지 파일이 이미 있음
  - IdentityElementError: 0이 될 수 없는 원소가 항등원(무한원점)으로 나타남
  - DegenerateScalarError: 0이 아닌 스칼라를 뽑을 수 없음
  - SecretDestroyedError: 이미 폐기된 비밀 키를 읽으려 함
"""


class CeremonyError(Exception):
    """Powers of Tau 기여 오류의 최상위 클래스."""


class FormatError(CeremonyError, ValueError):
    """파일 길이나 구조가 기대와 다를 때."""


class PointDecodeError(FormatError):
    """바이트열을 곡선 위의 점으로 복원할 수 없을 때."""


class SubgroupError(CeremonyError, ValueError):
    """점이 소수 위수 부분군(prime-order subgroup)에 속하지 않을 때."""


class CeremonyIOError(CeremonyError, OSError):
    """파일 열기, 매핑, flush 실패."""


class OutputExistsError(CeremonyIOError, FileExistsError):
    """출력 파일이 이미 존재할 때. 파일은 한 번 쓰면 바꾸지 않는다."""


class IdentityElementError(CeremonyError, ArithmeticError):
    """항등원이 허용되지 않는 위치에서 발견되었을 때."""


class DegenerateScalarError(CeremonyError, ArithmeticError):
    """난수 생성기가 0이 아닌 스칼라를 만들어내지 못할 때."""


class SecretDestroyedError(CeremonyError, RuntimeError):
    """폐기된 PrivateKey에 접근할 때."""
