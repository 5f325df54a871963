"""
BN254 곡선 연산 및 점 직렬화
=============================

Powers of Tau 전체에서 사용되는 타원곡선 도구를 모은다.

**점 표현**:
  py_ecc.bn128의 아핀(affine) 튜플을 표준 표현으로 사용한다.
  - G1: (FQ, FQ)
  - G2: (FQ2, FQ2)
  - 무한원점(항등원): None

  스칼라 곱셈과 페어링은 py_ecc.optimized_bn128(야코비안 좌표)로 계산한 뒤
  다시 아핀으로 정규화한다. 순수 파이썬에서 수십 배 빠르다.

**직렬화 형식** (빅엔디안, FQ2는 c1 ‖ c0 순서):
  - G1 비압축: x ‖ y (64바이트), 압축: x (32바이트)
  - G2 비압축: x ‖ y (128바이트), 압축: x (64바이트)
  - 첫 바이트의 bit 7: 압축 시 y가 -y보다 큰 쪽임을 표시
  - 첫 바이트의 bit 6: 무한원점

**부분군**:
  BN254의 G1은 cofactor가 1이므로 곡선 위의 점은 모두 부분군에 속한다.
  G2는 cofactor가 크므로 r·P = O를 직접 확인한다.

사용 예시:
    >>> P = ec_mul(G1, 5)
    >>> encode_g1(P, compressed=True)   # 32바이트
    >>> same_ratio((G1, ec_mul(G1, 3)), (G2, ec_mul(G2, 3)))  # True
"""

from py_ecc import bn128
from py_ecc import optimized_bn128 as opt

from zkp.powersoftau.errors import PointDecodeError, SubgroupError


FQ = bn128.FQ
FQ2 = bn128.FQ2

# 스칼라 필드 위수 r과 베이스 필드 위수 p
CURVE_ORDER = bn128.curve_order
FIELD_MODULUS = bn128.field_modulus

G1 = bn128.G1
G2 = bn128.G2

COMPRESSION_FLAG = 0x80
INFINITY_FLAG = 0x40
FLAG_MASK = 0x3F


# ─────────────────────────────────────────────────────────────────────
# 아핀 ↔ 야코비안 변환
# ─────────────────────────────────────────────────────────────────────

def _is_g2(point):
    return isinstance(point[0], FQ2)


def _to_jacobian(point):
    if point is None:
        raise ValueError("무한원점은 변환 대상이 아닙니다")
    x, y = point
    if _is_g2(point):
        return (
            opt.FQ2([int(c) for c in x.coeffs]),
            opt.FQ2([int(c) for c in y.coeffs]),
            opt.FQ2.one(),
        )
    return (opt.FQ(int(x)), opt.FQ(int(y)), opt.FQ.one())


def _from_jacobian(point, g2):
    if opt.is_inf(point):
        return None
    x, y = opt.normalize(point)
    if g2:
        return (
            FQ2([int(c) for c in x.coeffs]),
            FQ2([int(c) for c in y.coeffs]),
        )
    return (FQ(int(x)), FQ(int(y)))


# ─────────────────────────────────────────────────────────────────────
# 군 연산
# ─────────────────────────────────────────────────────────────────────

def ec_mul(point, scalar):
    """스칼라 곱셈 scalar · point. 결과가 항등원이면 None."""
    if point is None:
        return None
    scalar = int(scalar) % CURVE_ORDER
    if scalar == 0:
        return None
    if scalar == 1:
        return point
    return _from_jacobian(opt.multiply(_to_jacobian(point), scalar), _is_g2(point))


def ec_add(p1, p2):
    return bn128.add(p1, p2)


def ec_neg(point):
    return bn128.neg(point)


def ec_lincomb(points, scalars):
    """Σ scalars[i] · points[i] 를 한 번의 정규화로 계산한다."""
    acc = None
    g2 = None
    for point, scalar in zip(points, scalars):
        if point is None:
            continue
        if g2 is None:
            g2 = _is_g2(point)
        term = opt.multiply(_to_jacobian(point), int(scalar) % CURVE_ORDER)
        acc = term if acc is None else opt.add(acc, term)
    if acc is None:
        return None
    return _from_jacobian(acc, g2)


def pairing(g1_point, g2_point):
    """e(g1_point, g2_point). py_ecc와 달리 인자 순서는 (G1, G2)이다."""
    return opt.pairing(_to_jacobian(g2_point), _to_jacobian(g1_point))


def same_ratio(g1_pair, g2_pair):
    """두 쌍이 같은 숨은 지수를 가지는지 페어링으로 확인한다.

    (a, a^x) 와 (b, b^x) 에 대해 e(a, b^x) == e(a^x, b).
    항등원이 섞여 있으면 비율이 정의되지 않으므로 False.

    Args:
        g1_pair: (G1 점, G1 점)
        g2_pair: (G2 점, G2 점)

    Returns:
        bool
    """
    a, a_x = g1_pair
    b, b_x = g2_pair
    if a is None or a_x is None or b is None or b_x is None:
        return False
    return pairing(a, b_x) == pairing(a_x, b)


def is_on_curve(point):
    if point is None:
        return True
    if _is_g2(point):
        return bn128.is_on_curve(point, bn128.b2)
    return bn128.is_on_curve(point, bn128.b)


def is_in_subgroup(point):
    """점이 위수 r인 부분군에 있는지 확인한다."""
    if point is None:
        return True
    if not _is_g2(point):
        # G1 cofactor = 1
        return is_on_curve(point)
    return opt.is_inf(opt.multiply(_to_jacobian(point), CURVE_ORDER))


# ─────────────────────────────────────────────────────────────────────
# 제곱근
# ─────────────────────────────────────────────────────────────────────

def sqrt_fq(a):
    """FQ 제곱근. p ≡ 3 (mod 4) 이므로 a^((p+1)/4). 없으면 None."""
    root = a ** ((FIELD_MODULUS + 1) // 4)
    if root * root != a:
        return None
    return root


def sqrt_fq2(a):
    """FQ2 = FQ[i]/(i²+1) 위의 제곱근. 없으면 None.

    p ≡ 3 (mod 4)에 대한 복소 제곱근 알고리즘:
        a1 = a^((p-3)/4), α = a1²·a, x0 = a1·a
        α = -1 이면 x = i·x0, 아니면 x = (1+α)^((p-1)/2)·x0
    """
    if a == FQ2.zero():
        return FQ2.zero()
    minus_one = FQ2([FIELD_MODULUS - 1, 0])
    a1 = a ** ((FIELD_MODULUS - 3) // 4)
    alpha = a1 * a1 * a
    x0 = a1 * a
    if alpha == minus_one:
        root = FQ2([0, 1]) * x0
    else:
        root = (FQ2.one() + alpha) ** ((FIELD_MODULUS - 1) // 2) * x0
    if root * root != a:
        return None
    return root


# ─────────────────────────────────────────────────────────────────────
# 바이트 ↔ 필드 원소
# ─────────────────────────────────────────────────────────────────────

def _fq_to_bytes(value):
    return int(value).to_bytes(32, "big")


def _fq2_to_bytes(value):
    c0, c1 = (int(c) for c in value.coeffs)
    return c1.to_bytes(32, "big") + c0.to_bytes(32, "big")


def _read_fq(data):
    value = int.from_bytes(data, "big")
    if value >= FIELD_MODULUS:
        raise PointDecodeError("좌표가 베이스 필드 범위를 벗어났습니다")
    return FQ(value)


def _read_fq2(data):
    c1 = int.from_bytes(data[:32], "big")
    c0 = int.from_bytes(data[32:64], "big")
    if c0 >= FIELD_MODULUS or c1 >= FIELD_MODULUS:
        raise PointDecodeError("좌표가 베이스 필드 범위를 벗어났습니다")
    return FQ2([c0, c1])


def _fq2_key(value):
    # c1 우선 비교
    c0, c1 = (int(c) for c in value.coeffs)
    return (c1, c0)


def _y_is_greatest(y):
    neg_y = -y
    if isinstance(y, FQ2):
        return _fq2_key(y) > _fq2_key(neg_y)
    return int(y) > int(neg_y)


# ─────────────────────────────────────────────────────────────────────
# 점 인코딩
# ─────────────────────────────────────────────────────────────────────

def _encode(point, compressed, coord_to_bytes, size):
    if point is None:
        out = bytearray(size)
        out[0] |= INFINITY_FLAG
        return bytes(out)
    x, y = point
    if compressed:
        out = bytearray(coord_to_bytes(x))
        if _y_is_greatest(y):
            out[0] |= COMPRESSION_FLAG
        return bytes(out)
    return coord_to_bytes(x) + coord_to_bytes(y)


def encode_g1(point, compressed=False):
    """G1 점 → 바이트열 (32 또는 64바이트)."""
    return _encode(point, compressed, _fq_to_bytes, 32 if compressed else 64)


def encode_g2(point, compressed=False):
    """G2 점 → 바이트열 (64 또는 128바이트)."""
    return _encode(point, compressed, _fq2_to_bytes, 64 if compressed else 128)


def _decode(data, compressed, g2, check_subgroup):
    coord = 64 if g2 else 32
    expected = coord if compressed else 2 * coord
    if len(data) != expected:
        raise PointDecodeError(f"점 길이는 {expected}바이트여야 합니다: {len(data)}")

    buf = bytearray(data)
    flags = buf[0] & ~FLAG_MASK
    buf[0] &= FLAG_MASK

    if flags & INFINITY_FLAG:
        if flags & COMPRESSION_FLAG or any(buf):
            raise PointDecodeError("무한원점 인코딩에 불필요한 정보가 있습니다")
        return None

    read = _read_fq2 if g2 else _read_fq
    if compressed:
        x = read(bytes(buf))
        b = bn128.b2 if g2 else bn128.b
        rhs = x * x * x + b
        y = (sqrt_fq2 if g2 else sqrt_fq)(rhs)
        if y is None:
            raise PointDecodeError("x 좌표에 대응하는 점이 곡선 위에 없습니다")
        if _y_is_greatest(y) != bool(flags & COMPRESSION_FLAG):
            y = -y
        point = (x, y)
    else:
        if flags & COMPRESSION_FLAG:
            raise PointDecodeError("비압축 인코딩에 압축 플래그가 설정되어 있습니다")
        point = (read(bytes(buf[:coord])), read(bytes(buf[coord:])))
        if not is_on_curve(point):
            raise PointDecodeError("점이 곡선 위에 없습니다")

    if check_subgroup and not is_in_subgroup(point):
        raise SubgroupError("점이 소수 위수 부분군에 속하지 않습니다")
    return point


def decode_g1(data, compressed=False, check_subgroup=True):
    """바이트열 → G1 점.

    Raises:
        PointDecodeError: 길이, 플래그, 좌표 범위, 곡선 방정식 위반
        SubgroupError: check_subgroup이 참이고 부분군 밖의 점일 때
    """
    return _decode(data, compressed, False, check_subgroup)


def decode_g2(data, compressed=False, check_subgroup=True):
    """바이트열 → G2 점. 오류 조건은 decode_g1과 같다."""
    return _decode(data, compressed, True, check_subgroup)


def encode_scalar(value):
    return (int(value) % CURVE_ORDER).to_bytes(32, "big")


def decode_scalar(data):
    value = int.from_bytes(data, "big")
    if value >= CURVE_ORDER:
        raise PointDecodeError("스칼라가 필드 범위를 벗어났습니다")
    return value
