"""Trust tiers a content item can occupy."""

from enum import IntEnum


class TrustLevel(IntEnum):
    """Ordered visibility tiers.

    Active tiers climb from WILD to LEGACY one step at a time. HIDDEN sits
    below every active tier and is only entered by a forced hide.
    """

    HIDDEN = -1
    WILD = 0
    REGIONAL = 1
    SURFACE = 2
    LEGACY = 3

    @property
    def is_active(self) -> bool:
        return self is not TrustLevel.HIDDEN


LEVEL_NAMES: dict[TrustLevel, str] = {
    TrustLevel.HIDDEN: "Hidden",
    TrustLevel.WILD: "Wild",
    TrustLevel.REGIONAL: "Regional",
    TrustLevel.SURFACE: "Surface",
    TrustLevel.LEGACY: "Legacy",
}
