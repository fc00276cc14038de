"""Euler angle / quaternion conversion.

Euler angles are degrees applied in Z, X, Y order (yaw around Y outermost),
the convention used by the host engine. Quaternions are ``(x, y, z, w)``.
"""

from __future__ import annotations

import math

Vector3 = tuple[float, float, float]
Quaternion = tuple[float, float, float, float]

IDENTITY: Quaternion = (0.0, 0.0, 0.0, 1.0)


def quaternion_from_euler(euler: Vector3) -> Quaternion:
    """Return the quaternion for Euler angles given in degrees."""
    hx, hy, hz = (math.radians(a) * 0.5 for a in euler)
    cx, sx = math.cos(hx), math.sin(hx)
    cy, sy = math.cos(hy), math.sin(hy)
    cz, sz = math.cos(hz), math.sin(hz)
    return (
        cy * sx * cz + sy * cx * sz,
        sy * cx * cz - cy * sx * sz,
        cy * cx * sz - sy * sx * cz,
        cy * cx * cz + sy * sx * sz,
    )


def euler_from_quaternion(q: Quaternion) -> Vector3:
    """Return Euler angles in degrees, each normalised to ``[0, 360)``."""
    x, y, z, w = normalize(q)
    sin_pitch = max(-1.0, min(1.0, 2.0 * (w * x - y * z)))
    pitch = math.asin(sin_pitch)
    if abs(sin_pitch) > 0.9999:
        # Gimbal lock: fold roll into yaw.
        yaw = math.atan2(-2.0 * (x * z - w * y), 1.0 - 2.0 * (y * y + z * z))
        roll = 0.0
    else:
        yaw = math.atan2(2.0 * (x * z + w * y), 1.0 - 2.0 * (x * x + y * y))
        roll = math.atan2(2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z))
    return (
        _wrap_degrees(math.degrees(pitch)),
        _wrap_degrees(math.degrees(yaw)),
        _wrap_degrees(math.degrees(roll)),
    )


def normalize(q: Quaternion) -> Quaternion:
    length = math.sqrt(sum(c * c for c in q))
    if length == 0.0:
        return IDENTITY
    return (q[0] / length, q[1] / length, q[2] / length, q[3] / length)


def angle_between(a: Quaternion, b: Quaternion) -> float:
    """Angle in degrees between two orientations."""
    na, nb = normalize(a), normalize(b)
    dot = min(1.0, abs(sum(p * q for p, q in zip(na, nb))))
    return math.degrees(2.0 * math.acos(dot))


def _wrap_degrees(angle: float) -> float:
    wrapped = angle % 360.0
    # tiny negative angles round up to 360
    return 0.0 if wrapped >= 360.0 - 1e-9 else wrapped
