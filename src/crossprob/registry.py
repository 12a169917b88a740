"""
Table des types de croisement, indexée par leur étiquette.
"""

from functools import lru_cache

from .config import VALIDATION_FULL
from .cross_twoway import Backcross, DoubledHaploid, RISelf, RISib
from .cross_multiway import RISelf4, RISelf8

CROSS_TYPES = {
    cls.crosstype: cls
    for cls in (Backcross, DoubledHaploid, RISelf, RISib, RISelf4, RISelf8)
}


@lru_cache(maxsize=None)
def get_cross(crosstype, validation=VALIDATION_FULL):
    """
    Instance (partagée) du modèle HMM pour un type de croisement.

    Parameters
    ----------
    crosstype : str
        'bc', 'dh', 'riself', 'risib', 'riself4' ou 'riself8'
    validation : str
        'off', 'assert_only' ou 'full'
    """
    try:
        cls = CROSS_TYPES[crosstype]
    except KeyError:
        raise ValueError(f"Type de croisement inconnu: {crosstype} "
                         f"(disponibles: {', '.join(sorted(CROSS_TYPES))})") from None
    return cls(validation=validation)
