"""
crossprob — Probabilités génotypiques et cartes génétiques de croisements
=========================================================================

Moteur HMM pour populations expérimentales (RIL multi-fondateurs,
backcross, haploïdes doublés, RIL à deux fondateurs) : probabilités
initiales, de transition et d'émission par plan de croisement, et
réestimation en forme close des fractions de recombinaison par EM.

Modules:
    config: Codes génotypiques, niveaux de validation, paramètres de l'EM
    cross: Interface CrossModel et topologie des fondateurs
    cross_twoway / cross_multiway: Implémentations par plan de croisement
    registry: Accès aux modèles par étiquette ('riself8', 'bc', ...)
    validation: Vérification de cross_info et du panel fondateurs
    recomb: Étape M (fractions de recombinaison en forme close)
    hmm: Décodeur forward-backward de référence
    est_map: Estimation de la carte par EM
    map_function: Conversions cM ↔ fraction de recombinaison
    compare_geno: Comparaison des génotypes entre individus
"""

__version__ = "1.0.0"

from .config import EstMapConfig
from .cross import CrossModel, InvalidGenotypeError, founder_topology, founder_topology_class
from .registry import CROSS_TYPES, get_cross
from .validation import check_cross_info, check_founder_geno_size, check_founder_geno_values
from .recomb import TopologyCounts, topology_counts
from .hmm import ForwardBackward, calc_genoprob
from .est_map import MapRefinement, EstMapConvergenceWarning, est_map
from .map_function import mf, imf
from .compare_geno import compare_geno, summary_compare_geno, max_compare_geno

__all__ = [
    "EstMapConfig",
    "CrossModel",
    "InvalidGenotypeError",
    "founder_topology",
    "founder_topology_class",
    "CROSS_TYPES",
    "get_cross",
    "check_cross_info",
    "check_founder_geno_size",
    "check_founder_geno_values",
    "TopologyCounts",
    "topology_counts",
    "ForwardBackward",
    "calc_genoprob",
    "MapRefinement",
    "EstMapConvergenceWarning",
    "est_map",
    "mf",
    "imf",
    "compare_geno",
    "summary_compare_geno",
    "max_compare_geno",
]
