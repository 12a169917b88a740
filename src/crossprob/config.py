"""
Constantes et paramètres du moteur HMM de probabilités génotypiques.
"""

import numpy as np

# ============================================================
# Encodage des génotypes observés
#   0: manquant
#   1: A   (homozygote AA, ou allèle A chez un hémizygote)
#   2: H   (hétérozygote AB)
#   3: B   (homozygote BB)
#   4: not-B (AA ou AB)
#   5: not-A (AB ou BB)
# ============================================================

GENO_MISSING = 0
GENO_A = 1
GENO_H = 2
GENO_B = 3
GENO_NOT_B = 4
GENO_NOT_A = 5

OBSERVED_CODES = (GENO_MISSING, GENO_A, GENO_H, GENO_B, GENO_NOT_B, GENO_NOT_A)

# Allèles des fondateurs (panel de génotypes fondateurs)
FOUNDER_MISSING = 0
FOUNDER_A = 1
FOUNDER_B = 3

FOUNDER_GENO_CODES = (FOUNDER_MISSING, FOUNDER_A, FOUNDER_B)

# ============================================================
# Classes de topologie entre deux génotypes (ordre du croisement)
# ============================================================

IDENTICAL = 0
SIBLING = 1
NONSIBLING = 2

TOPOLOGY_NAMES = {IDENTICAL: 'identical', SIBLING: 'sibling', NONSIBLING: 'nonsibling'}

# ============================================================
# Niveaux de validation des codes génotypiques
#   off:         aucune vérification dans init/emit/step/nrec
#   assert_only: vérification par `assert` (supprimée sous python -O)
#   full:        vérification systématique, InvalidGenotypeError
# ============================================================

VALIDATION_OFF = 'off'
VALIDATION_ASSERT = 'assert_only'
VALIDATION_FULL = 'full'

VALIDATION_LEVELS = (VALIDATION_OFF, VALIDATION_ASSERT, VALIDATION_FULL)

# ============================================================
# Estimation de la carte (EM)
# ============================================================

DEFAULT_ERROR_PROB = 1e-4
DEFAULT_MAX_ITERATIONS = 10000
DEFAULT_TOL = 1e-6
DEFAULT_MAP_FUNCTION = 'haldane'

MAP_FUNCTIONS = ('haldane', 'kosambi', 'c-f', 'morgan')


class EstMapConfig:
    """Paramètres de l'estimation de la carte génétique par EM."""

    def __init__(self, error_prob=DEFAULT_ERROR_PROB,
                 max_iterations=DEFAULT_MAX_ITERATIONS, tol=DEFAULT_TOL,
                 map_function=DEFAULT_MAP_FUNCTION,
                 validation=VALIDATION_FULL):
        """
        Parameters
        ----------
        error_prob : float
            Probabilité d'erreur de génotypage, dans [0, 1)
        max_iterations : int
            Nombre maximal d'itérations EM
        tol : float
            Seuil sur l'amélioration de la log-vraisemblance
        map_function : str
            'haldane', 'kosambi', 'c-f' ou 'morgan'
        validation : str
            'off', 'assert_only' ou 'full'
        """
        if not 0.0 <= error_prob < 1.0:
            raise ValueError(f"error_prob doit être dans [0, 1): {error_prob}")
        if int(max_iterations) < 1:
            raise ValueError(f"max_iterations doit être >= 1: {max_iterations}")
        if not tol > 0.0:
            raise ValueError(f"tol doit être > 0: {tol}")
        if map_function not in MAP_FUNCTIONS:
            raise ValueError(f"Fonction de carte inconnue: {map_function}")
        if validation not in VALIDATION_LEVELS:
            raise ValueError(f"Niveau de validation inconnu: {validation}")

        self.error_prob = float(error_prob)
        self.max_iterations = int(max_iterations)
        self.tol = float(tol)
        self.map_function = map_function
        self.validation = validation

    @property
    def min_rec_frac(self):
        """Plancher des fractions de recombinaison utilisées par le HMM."""
        return self.tol / 1000.0

    def __repr__(self):
        return (f"EstMapConfig(error_prob={self.error_prob}, "
                f"max_iterations={self.max_iterations}, tol={self.tol}, "
                f"map_function={self.map_function!r}, validation={self.validation!r})")


def as_int_matrix(values, name):
    """
    Convertit une matrice d'entiers (individus × colonnes) en ndarray 2D
    de type int. Les valeurs non entières ou manquantes sont refusées.
    """
    arr = np.asarray(values)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise ValueError(f"{name} doit être une matrice 2D (forme reçue: {arr.shape})")
    if arr.dtype.kind in 'iu':
        return arr.astype(int, copy=False)

    try:
        as_float = arr.astype(float)
    except (TypeError, ValueError):
        raise ValueError(f"{name} doit contenir des entiers") from None
    if not np.all(np.isfinite(as_float)) or np.any(as_float != np.round(as_float)):
        raise ValueError(f"{name} doit contenir des entiers (valeurs manquantes "
                         "ou non entières trouvées)")
    return as_float.astype(int)
