from .rect import (
    Point,
    Rect,
    rotate_point,
    add_points,
    rect_from_points,
    rect_union,
    inflate_rect,
    translate_rect,
    rect_width,
    rect_height,
    rect_area,
    rect_contains_point,
    clamp_rect,
)
