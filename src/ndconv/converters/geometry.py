from __future__ import annotations

from ndconv.types import BoxAnnotation, PoseAnnotation, SegmentAnnotation

VISIBLE = 2
NOT_VISIBLE = 0


def to_absolute(x: float, y: float, width: int, height: int) -> tuple[float, float]:
    return x * width, y * height


def box_corners(
    cx: float,
    cy: float,
    w: float,
    h: float,
    width: int,
    height: int,
) -> tuple[float, float, float, float]:
    """Center-based normalized box -> absolute (xmin, ymin, xmax, ymax), unclamped."""
    return (
        (cx - w / 2.0) * width,
        (cy - h / 2.0) * height,
        (cx + w / 2.0) * width,
        (cy + h / 2.0) * height,
    )


def box_xywh(cx: float, cy: float, w: float, h: float, width: int, height: int) -> tuple[float, float, float, float]:
    """COCO form: absolute top-left corner plus absolute size, float, unclamped."""
    return (cx - w / 2.0) * width, (cy - h / 2.0) * height, w * width, h * height


def box_center_abs(cx: float, cy: float, w: float, h: float, width: int, height: int) -> tuple[float, float, float, float]:
    """CreateML form: absolute center plus absolute size."""
    return cx * width, cy * height, w * width, h * height


def clamp_round_corners(
    corners: tuple[float, float, float, float],
    width: int,
    height: int,
) -> tuple[int, int, int, int]:
    """Clamp corners into the image and round to whole pixels (Pascal VOC)."""
    xmin, ymin, xmax, ymax = corners
    return (
        int(round(min(max(xmin, 0.0), float(width)))),
        int(round(min(max(ymin, 0.0), float(height)))),
        int(round(min(max(xmax, 0.0), float(width)))),
        int(round(min(max(ymax, 0.0), float(height)))),
    )


def polygon_abs(points: list[tuple[float, float]], width: int, height: int) -> list[float]:
    flat: list[float] = []
    for x, y in points:
        abs_x, abs_y = to_absolute(x, y, width, height)
        flat.append(abs_x)
        flat.append(abs_y)
    return flat


def polygon_extent(
    points: list[tuple[float, float]],
    width: int,
    height: int,
) -> tuple[float, float, float, float] | None:
    """Absolute (xmin, ymin, xmax, ymax) enclosing the polygon, or None when empty."""
    if not points:
        return None
    xs = [x * width for x, _ in points]
    ys = [y * height for _, y in points]
    return min(xs), min(ys), max(xs), max(ys)


def keypoint_visibility(abs_x: float, abs_y: float) -> int:
    return VISIBLE if abs_x > 0.0 or abs_y > 0.0 else NOT_VISIBLE


def annotation_corners(annotation, width: int, height: int) -> tuple[float, float, float, float] | None:
    """Absolute corner box for any geometric annotation; None for labels or empty polygons."""
    if isinstance(annotation, SegmentAnnotation):
        return polygon_extent(annotation.points, width, height)
    if isinstance(annotation, (BoxAnnotation, PoseAnnotation)):
        return box_corners(annotation.cx, annotation.cy, annotation.w, annotation.h, width, height)
    return None
