from ._indexing import sizeY, sizeP, index_y, idx2lm, index_p, idx2lm_p
from ._spherical_coords import SphericalCoords, cart2spher, spher2cart, angles_to_spher, dspher_to_dcart
from ._legendre import ALPolynomials
from ._spherical_harmonics import CYlmBasis, cylm_, cylm_ed_


__all__ = [
    "sizeY",
    "sizeP",
    "index_y",
    "idx2lm",
    "index_p",
    "idx2lm_p",
    "SphericalCoords",
    "cart2spher",
    "spher2cart",
    "angles_to_spher",
    "dspher_to_dcart",
    "ALPolynomials",
    "CYlmBasis",
    "cylm_",
    "cylm_ed_",
]
