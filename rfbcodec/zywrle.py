"""Piecewise-linear Haar wavelet used by the ZYWRLE codec.

Coefficients are kept in a flat list holding three signed 8-bit values for
each position, so position ``i`` occupies indices ``3*i`` to ``3*i + 2``.
"""

from __future__ import annotations


def _s8(value: int) -> int:
    return ((value + 128) & 0xFF) - 128


def harr(x0: int, x1: int) -> tuple[int, int]:
    """Apply the reversible piecewise-linear Haar step to a pair of signed bytes."""
    x0 = _s8(x0)
    x1 = _s8(x1)
    org0, org1 = x0, x1
    if (x0 ^ x1) & 0x80:
        # different signs
        x1 += x0
        if ((x1 ^ org1) & 0x80) == 0:
            x0 -= x1
    else:
        # same sign
        x0 -= x1
        if ((x0 ^ org0) & 0x80) == 0:
            x1 += x0
    return _s8(x1), _s8(x0)


def calc_size(width: int, height: int, level: int) -> tuple[int, int]:
    """Round the dimensions down to a multiple of 2**level."""
    mask = ~((1 << level) - 1)
    return width & mask, height & mask


def wavelet_level(coeffs: list[int], start: int, size: int, level: int, skip: int) -> None:
    """Transform one line of ``size`` positions in place at the given level.

    ``start`` is the first position and ``skip`` the distance between
    neighbouring positions of the line (1 for rows, the width for columns).
    """
    step = (2 << level) * skip
    offset = (1 << level) * skip * 3
    for k in range(size >> (level + 1)):
        a = (start + k * step) * 3
        b = a + offset
        for c in range(3):
            coeffs[a + c], coeffs[b + c] = harr(coeffs[a + c], coeffs[b + c])


def inv_wavelet(coeffs: list[int], width: int, height: int, level: int) -> None:
    """Undo a ``level``-deep two-dimensional wavelet transform in place."""
    if len(coeffs) < width * height * 3:
        raise ValueError(
            f"need {width * height * 3} coefficients for {width}x{height}, "
            f"got {len(coeffs)}"
        )
    for l in reversed(range(level)):
        for top in range(0, width, 1 << l):
            wavelet_level(coeffs, top, height, l, width)
        for top in range(0, width * height, width << l):
            wavelet_level(coeffs, top, width, l, 1)