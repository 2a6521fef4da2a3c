"""Status colours for 3D highlighting."""
from dataclasses import asdict, dataclass
from typing import Dict

from assembly_tracker.services.payloads import StatusKind

STATUS_COLORS: Dict[StatusKind, str] = {
    StatusKind.INSTALLATION: "#4ade80",  # green
    StatusKind.DELIVERY: "#60a5fa",  # blue
    StatusKind.BOLTING: "#fb923c",  # orange
}


@dataclass(frozen=True)
class RGBA:
    """Colour channels in 0..1, as the viewer expects them."""

    r: float
    g: float
    b: float
    a: float = 1.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def hex_to_rgba(color: str, alpha: float = 1.0) -> RGBA:
    """Parse "#rrggbb" (leading # optional) into channels in 0..1."""
    digits = color.strip().lstrip("#")
    if len(digits) != 6:
        raise ValueError(f"expected a #rrggbb colour, got {color!r}")
    r, g, b = (int(digits[i:i + 2], 16) / 255 for i in (0, 2, 4))
    return RGBA(r=r, g=g, b=b, a=alpha)


def status_color(kind: StatusKind) -> RGBA:
    return hex_to_rgba(STATUS_COLORS[kind])
