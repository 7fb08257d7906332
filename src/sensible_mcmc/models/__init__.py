"""Case-study models: batting (beta-binomial) and irt (hierarchical 2PL)."""
from . import batting, irt

__all__ = ["batting", "irt"]
