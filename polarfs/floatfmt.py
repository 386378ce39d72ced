"""Floating-point rendering for the printf formatter: %f, %e and %g."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from polarfs.numfmt import (
    BASE_DECIMAL,
    DECIMAL_BUFFER_SIZE,
    Flags,
    Output,
    out_rev,
    print_integer,
)

DEFAULT_FLOAT_PRECISION = 6
MAX_INTEGRAL_DIGITS_FOR_DECIMAL = 9
FLOAT_NOTATION_THRESHOLD = 1e9
MAX_PRECOMPUTED_POWER_OF_10 = 17
MAX_SUPPORTED_PRECISION = 17

_STORED_MANTISSA_BITS = 52
_EXPONENT_MASK = 0x7FF
_BASE_EXPONENT = 1023
_UINT64_MASK = (1 << 64) - 1
_UINT32_MASK = (1 << 32) - 1
_DBL_MAX = 1.7976931348623157e308
_DBL_MAX_10_EXP = 308
_MAX_SUBNORMAL_EXPONENT_OF_10 = -308
_MAX_SUBNORMAL_POWER_OF_10 = 1e-308

_POWERS_OF_10 = tuple(float(10**n) for n in range(MAX_PRECOMPUTED_POWER_OF_10 + 1))


def _pow10(n: int) -> float:
    if 0 <= n < len(_POWERS_OF_10):
        return _POWERS_OF_10[n]
    return float(10**n)


def _to_bits(x: float) -> int:
    return struct.unpack("<Q", struct.pack("<d", x))[0]


def _from_bits(u: int) -> float:
    return struct.unpack("<d", struct.pack("<Q", u & _UINT64_MASK))[0]


def _sign_bit(x: float) -> bool:
    return bool(_to_bits(x) >> 63)


def _exp2(x: float) -> int:
    return ((_to_bits(x) >> _STORED_MANTISSA_BITS) & _EXPONENT_MASK) - _BASE_EXPONENT


def _dec(count: int) -> int:
    """Decrement as an unsigned 32-bit counter would."""
    return (count - 1) & _UINT32_MASK


@dataclass
class _Components:
    integral: int
    fractional: int
    is_negative: bool


@dataclass
class _Scaling:
    raw_factor: float
    multiply: bool


def get_components(number: float, precision: int) -> _Components:
    """Split a finite number into integral and scaled fractional parts, rounded half to even."""
    is_negative = _sign_bit(number)
    abs_number = -number if is_negative else number
    integral = int(abs_number)
    scaled_remainder = (abs_number - float(integral)) * _pow10(precision)
    fractional = int(scaled_remainder)
    remainder = scaled_remainder - float(fractional)

    if remainder > 0.5:
        fractional += 1
        if float(fractional) >= _pow10(precision):
            fractional = 0
            integral += 1
    elif remainder == 0.5 and fractional & 1:
        fractional += 1

    if precision == 0:
        remainder = abs_number - float(integral)
        if remainder == 0.5 and integral & 1:
            integral += 1

    return _Components(integral, fractional, is_negative)


def _apply_scaling(num: float, sf: _Scaling) -> float:
    return num * sf.raw_factor if sf.multiply else num / sf.raw_factor


def _unapply_scaling(normalized: float, sf: _Scaling) -> float:
    return normalized / sf.raw_factor if sf.multiply else normalized * sf.raw_factor


def _update_normalization(sf: _Scaling, extra: float) -> _Scaling:
    if sf.multiply:
        return _Scaling(sf.raw_factor * extra, True)
    if abs(_exp2(sf.raw_factor)) > abs(_exp2(extra)):
        return _Scaling(sf.raw_factor / extra, False)
    return _Scaling(extra / sf.raw_factor, True)


def _get_normalized_components(
    negative: bool,
    precision: int,
    non_normalized: float,
    normalization: _Scaling,
    floored_exp10: int,
) -> _Components:
    scaled = _apply_scaling(non_normalized, normalization)
    if -floored_exp10 + precision >= _DBL_MAX_10_EXP - 1:
        # Too close to the representable range to fold the precision into the factor.
        return get_components(-scaled if negative else scaled, precision)

    integral = int(scaled)
    remainder = non_normalized - _unapply_scaling(float(integral), normalization)
    prec_power_of_10 = _pow10(precision)
    account = _update_normalization(normalization, prec_power_of_10)
    scaled_remainder = _apply_scaling(remainder, account)

    fractional = int(scaled_remainder)
    scaled_remainder -= float(fractional)
    if scaled_remainder >= 0.5:
        fractional += 1
    if scaled_remainder == 0.5:
        fractional &= ~1
    if float(fractional) >= prec_power_of_10:
        fractional = 0
        integral += 1
    return _Components(integral, fractional, negative)


def _print_broken_up_decimal(
    number: _Components,
    output: Output,
    precision: int,
    width: int,
    flags: Flags,
    buf: list[str],
) -> None:
    integral = number.integral
    fractional = number.fractional

    if precision != 0:
        count = precision
        if flags & Flags.ADAPT_EXP and not flags & Flags.HASH and fractional > 0:
            # %g drops trailing zero digits.
            while fractional % 10 == 0:
                count = _dec(count)
                fractional //= 10

        if fractional > 0 or not flags & Flags.ADAPT_EXP or flags & Flags.HASH:
            while len(buf) < DECIMAL_BUFFER_SIZE:
                count = _dec(count)
                buf.append(chr(ord("0") + fractional % 10))
                fractional //= 10
                if not fractional:
                    break
            while len(buf) < DECIMAL_BUFFER_SIZE and count > 0:
                buf.append("0")
                count = _dec(count)
            if len(buf) < DECIMAL_BUFFER_SIZE:
                buf.append(".")
    elif flags & Flags.HASH and len(buf) < DECIMAL_BUFFER_SIZE:
        buf.append(".")

    while len(buf) < DECIMAL_BUFFER_SIZE:
        buf.append(chr(ord("0") + integral % 10))
        integral //= 10
        if not integral:
            break

    if not flags & Flags.LEFT and flags & Flags.ZEROPAD:
        if width and (number.is_negative or flags & (Flags.PLUS | Flags.SPACE)):
            width -= 1
        while len(buf) < width and len(buf) < DECIMAL_BUFFER_SIZE:
            buf.append("0")

    if len(buf) < DECIMAL_BUFFER_SIZE:
        if number.is_negative:
            buf.append("-")
        elif flags & Flags.PLUS:
            buf.append("+")
        elif flags & Flags.SPACE:
            buf.append(" ")

    out_rev(output, buf, width, flags)


def _print_decimal_number(
    output: Output, number: float, precision: int, width: int, flags: Flags, buf: list[str]
) -> None:
    _print_broken_up_decimal(get_components(number, precision), output, precision, width, flags, buf)


def _bastardized_floor(x: float) -> int:
    if x >= 0:
        return int(x)
    n = int(x)
    return n if float(n) == x else n - 1


def log10_of_positive(number: float) -> float:
    """Approximate log10 of a positive normal number by a Taylor series around 1.5."""
    bits = _to_bits(number)
    exp2 = ((bits >> _STORED_MANTISSA_BITS) & _EXPONENT_MASK) - _BASE_EXPONENT
    mantissa_bits = (bits & ((1 << _STORED_MANTISSA_BITS) - 1)) | (
        _BASE_EXPONENT << _STORED_MANTISSA_BITS
    )
    z = _from_bits(mantissa_bits) - 1.5
    return (
        0.1760912590556812420
        + z * 0.2895296546021678851
        - z * z * 0.0965098848673892950
        + z * z * z * 0.0428932821632841311
        + float(exp2) * 0.30102999566398119521
    )


def pow10_of_int(floored_exp10: int) -> float:
    """Approximate 10 raised to an integer power without overflowing midway."""
    if floored_exp10 == _MAX_SUBNORMAL_EXPONENT_OF_10:
        return _MAX_SUBNORMAL_POWER_OF_10
    exp2 = _bastardized_floor(floored_exp10 * 3.321928094887362 + 0.5)
    z = floored_exp10 * 2.302585092994046 - exp2 * 0.6931471805599453
    z2 = z * z
    base = _from_bits((exp2 + _BASE_EXPONENT) << _STORED_MANTISSA_BITS)
    return base * (1 + 2 * z / (2 - z + (z2 / (6 + (z2 / (10 + z2 / 14))))))


def _print_exponential_number(
    output: Output, number: float, precision: int, width: int, flags: Flags, buf: list[str]
) -> None:
    negative = _sign_bit(number)
    abs_number = -number if negative else number
    covered = False
    normalization = _Scaling(1.0, False)

    if abs_number == 0.0:
        floored_exp10 = 0
    else:
        floored_exp10 = _bastardized_floor(log10_of_positive(abs_number))
        p10 = pow10_of_int(floored_exp10)
        if abs_number < p10:
            floored_exp10 -= 1
            p10 /= 10
        covered = abs(floored_exp10) < MAX_PRECOMPUTED_POWER_OF_10
        normalization.raw_factor = _POWERS_OF_10[abs(floored_exp10)] if covered else p10

    fall_back = False
    if flags & Flags.ADAPT_EXP:
        required = 1 if precision == 0 else precision
        fall_back = -4 <= floored_exp10 < required
        adjusted = precision - 1 - floored_exp10 if fall_back else precision - 1
        precision = adjusted if adjusted > 0 else 0
        flags |= Flags.PRECISION

    normalization.multiply = floored_exp10 < 0 and covered
    if fall_back or floored_exp10 == 0:
        components = get_components(-abs_number if negative else abs_number, precision)
    else:
        components = _get_normalized_components(
            negative, precision, abs_number, normalization, floored_exp10
        )

    if fall_back:
        if (
            flags & Flags.ADAPT_EXP
            and floored_exp10 >= -1
            and components.integral == _pow10(floored_exp10 + 1)
        ):
            floored_exp10 += 1
            if precision > 0:
                precision -= 1
    elif components.integral >= 10:
        floored_exp10 += 1
        components.integral = 1
        components.fractional = 0

    exp10_part_width = 0 if fall_back else (4 if abs(floored_exp10) < 100 else 5)
    if flags & Flags.LEFT and exp10_part_width:
        decimal_part_width = 0
    elif width > exp10_part_width:
        decimal_part_width = width - exp10_part_width
    else:
        decimal_part_width = 0

    start_pos = output.pos
    _print_broken_up_decimal(components, output, precision, decimal_part_width, flags, buf)

    if not fall_back:
        output.put("E" if flags & Flags.UPPERCASE else "e")
        print_integer(
            output,
            abs(floored_exp10),
            floored_exp10 < 0,
            BASE_DECIMAL,
            0,
            exp10_part_width - 1,
            Flags.ZEROPAD | Flags.PLUS,
        )
        if flags & Flags.LEFT:
            while output.pos - start_pos < width:
                output.put(" ")


def print_floating_point(
    output: Output,
    value: float,
    precision: int,
    width: int,
    flags: Flags,
    prefer_exponential: bool,
) -> None:
    """Render ``value`` in fixed (%f) or exponential/adaptive (%e, %g) notation."""
    flags = Flags(flags)
    value = float(value)
    buf: list[str] = []

    if value != value:
        out_rev(output, "nan", width, flags)
        return
    if value < -_DBL_MAX:
        out_rev(output, "fni-", width, flags)
        return
    if value > _DBL_MAX:
        out_rev(output, "fni+" if flags & Flags.PLUS else "fni", width, flags)
        return

    if not prefer_exponential and (
        value > FLOAT_NOTATION_THRESHOLD or value < -FLOAT_NOTATION_THRESHOLD
    ):
        # Too many integral digits for fixed notation.
        _print_exponential_number(output, value, precision, width, flags, buf)
        return

    if not flags & Flags.PRECISION:
        precision = DEFAULT_FLOAT_PRECISION

    while len(buf) < DECIMAL_BUFFER_SIZE and precision > MAX_SUPPORTED_PRECISION:
        buf.append("0")
        precision -= 1

    if prefer_exponential:
        _print_exponential_number(output, value, precision, width, flags, buf)
    else:
        _print_decimal_number(output, value, precision, width, flags, buf)