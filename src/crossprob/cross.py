"""
Interface commune des types de croisement pour le HMM.

Chaque plan de croisement (backcross, RIL par autofécondation, RIL à
8 fondateurs, ...) fournit les probabilités initiales, de transition
et d'émission en log, la taille de l'espace d'états et ses propres
vérifications. Le décodeur forward-backward ne connaît que cette interface.
"""

import math
from abc import ABC, abstractmethod
from functools import lru_cache

import numpy as np

from .config import (
    IDENTICAL, SIBLING, NONSIBLING, GENO_MISSING,
    FOUNDER_A, FOUNDER_B,
    VALIDATION_OFF, VALIDATION_ASSERT, VALIDATION_FULL, VALIDATION_LEVELS,
)


class InvalidGenotypeError(ValueError):
    """Code génotypique hors de l'espace d'états du croisement."""


def safe_log(x):
    """log(x), avec log(0) = -inf (probabilité nulle légitime)."""
    if x <= 0.0:
        return -math.inf
    return math.log(x)


def inbred_emit(obs_gen, allele, error_prob):
    """
    Émission pour une lignée homozygote portant `allele` (1=A, 3=B).

    Observé manquant ou allèle fondateur manquant → log(1) : aucune
    information, quel que soit error_prob. Seul un appel identique au
    code de l'allèle compte comme concordant : H, not-A et not-B coûtent
    log(error_prob).
    """
    if obs_gen == GENO_MISSING:
        return 0.0
    if allele != FOUNDER_A and allele != FOUNDER_B:
        return 0.0
    if obs_gen == allele:
        return safe_log(1.0 - error_prob)
    return safe_log(error_prob)


# ============================================================
# Topologie des fondateurs
# ============================================================

def invert_founder_index(cross_info):
    """
    Position de chaque fondateur dans l'ordre du croisement.

    cross_info[i] = fondateur placé en position i (codé 1..n)
    → index[f-1] = i
    """
    order = np.asarray(cross_info, dtype=int)
    index = np.empty(len(order), dtype=int)
    index[order - 1] = np.arange(len(order))
    return index


@lru_cache(maxsize=4096)
def _topology_from_order(order):
    index = invert_founder_index(order)
    pair = index // 2
    topo = np.where(pair[:, None] == pair[None, :], SIBLING, NONSIBLING).astype(np.int8)
    np.fill_diagonal(topo, IDENTICAL)
    topo.setflags(write=False)
    return topo


def founder_topology(cross_info):
    """
    Matrice G×G des classes de topologie pour un individu.

    Deux fondateurs sont « frères » s'ils ont été croisés directement
    l'un avec l'autre au premier niveau du croisement (même paire dans
    l'ordre du croisement). Le résultat est mis en cache par ordre.
    """
    return _topology_from_order(tuple(int(f) for f in cross_info))


def founder_topology_class(gen_left, gen_right, cross_info):
    """IDENTICAL, SIBLING ou NONSIBLING pour deux génotypes (codés 1..G)."""
    return int(founder_topology(cross_info)[gen_left - 1, gen_right - 1])


# ============================================================
# Interface
# ============================================================

class CrossModel(ABC):
    """
    Modèle HMM d'un plan de croisement.

    Les instances sont sans état : toutes les méthodes sont des fonctions
    pures de leurs arguments. Le niveau de validation contrôle la
    vérification des codes génotypiques dans init/emit/step/nrec.
    """

    crosstype = None
    n_founders = 0

    def __init__(self, validation=VALIDATION_FULL):
        if validation not in VALIDATION_LEVELS:
            raise ValueError(f"Niveau de validation inconnu: {validation}")
        self._validation = validation

    @property
    def validation(self):
        return self._validation

    def __repr__(self):
        return f"{type(self).__name__}(validation={self._validation!r})"

    def _check_true_gen(self, gens, is_x_chr, is_female, cross_info):
        if self._validation == VALIDATION_OFF:
            return
        if self._validation == VALIDATION_ASSERT:
            assert all(self.check_geno(g, False, is_x_chr, is_female, cross_info)
                       for g in gens), f"genotype value not allowed: {gens}"
            return
        for g in gens:
            if not self.check_geno(g, False, is_x_chr, is_female, cross_info):
                raise InvalidGenotypeError(
                    f"Génotype {g} non autorisé pour le croisement '{self.crosstype}'")

    def _check_obs_gen(self, obs_gen, is_x_chr, is_female, cross_info):
        if self._validation == VALIDATION_OFF:
            return
        if self._validation == VALIDATION_ASSERT:
            assert self.check_geno(obs_gen, True, is_x_chr, is_female, cross_info), \
                f"observed genotype value not allowed: {obs_gen}"
            return
        if not self.check_geno(obs_gen, True, is_x_chr, is_female, cross_info):
            raise InvalidGenotypeError(
                f"Génotype observé {obs_gen} non autorisé pour le croisement '{self.crosstype}'")

    # ------------------------------------------------------------------
    # Espace d'états
    # ------------------------------------------------------------------
    @abstractmethod
    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        """True si le code est autorisé (observé ou latent)."""

    @abstractmethod
    def possible_gen(self, is_x_chr, is_female, cross_info):
        """Génotypes latents possibles pour un individu, dans l'ordre."""

    @abstractmethod
    def ngen(self, is_x_chr):
        """Nombre de génotypes latents (taille des matrices du HMM)."""

    @abstractmethod
    def nalleles(self):
        """Nombre d'allèles (fondateurs)."""

    # ------------------------------------------------------------------
    # Probabilités du HMM (log)
    # ------------------------------------------------------------------
    @abstractmethod
    def init(self, true_gen, is_x_chr, is_female, cross_info):
        """log P(génotype au premier marqueur)."""

    @abstractmethod
    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        """log P(observé | vrai génotype)."""

    @abstractmethod
    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        """log P(génotype droit | génotype gauche)."""

    @abstractmethod
    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        """Nombre de recombinaisons entre deux génotypes."""

    # ------------------------------------------------------------------
    # Métadonnées du croisement
    # ------------------------------------------------------------------
    @abstractmethod
    def need_founder_geno(self):
        """True si le croisement nécessite un panel de génotypes fondateurs."""

    @abstractmethod
    def geno_names(self, alleles, is_x_chr):
        """Noms des génotypes à partir des noms d'allèles."""

    @abstractmethod
    def check_handle_x_chr(self, any_x_chr):
        """True si le chromosome X peut être traité spécifiquement."""

    @abstractmethod
    def check_crossinfo(self, cross_info, any_x_chr):
        """Vérifie cross_info (individus × colonnes)."""

    @abstractmethod
    def check_founder_geno_size(self, founder_geno, n_markers):
        """Vérifie les dimensions du panel fondateurs."""

    @abstractmethod
    def check_founder_geno_values(self, founder_geno):
        """Vérifie les codes du panel fondateurs."""

    # ------------------------------------------------------------------
    # Estimation (étape M)
    # ------------------------------------------------------------------
    @abstractmethod
    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        """Fraction de recombinaison à partir des probabilités a posteriori des paires."""
