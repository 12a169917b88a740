"""
Étape M de l'EM : fraction de recombinaison d'un intervalle en forme close.

Les probabilités a posteriori des paires de génotypes (gamma) sont
résumées en quelques sommes (masse sur les paires identiques, frères,
non-frères, ou simplement recombinantes), puis la vraisemblance du
multinomial correspondant est maximisée analytiquement. Les sommes sont
additives : on peut les accumuler par paquets d'individus puis les
fusionner.
"""

import math

import numpy as np

from .config import IDENTICAL, SIBLING, NONSIBLING
from .cross import founder_topology


class TopologyCounts:
    """Masses a posteriori (u, v, w) : identique, frères, non-frères."""

    __slots__ = ('u', 'v', 'w')

    def __init__(self, u=0.0, v=0.0, w=0.0):
        self.u = float(u)
        self.v = float(v)
        self.w = float(w)

    @property
    def n(self):
        return self.u + self.v + self.w

    def __add__(self, other):
        return TopologyCounts(self.u + other.u, self.v + other.v, self.w + other.w)

    def __iter__(self):
        return iter((self.u, self.v, self.w))

    def __repr__(self):
        return f"TopologyCounts(u={self.u:.6g}, v={self.v:.6g}, w={self.w:.6g})"


def as_pair_array(gamma, n_gen):
    """gamma aplati (individus × G²) ou 3D → tableau (individus, G, G)."""
    g = np.asarray(gamma, dtype=float)
    if g.size % (n_gen * n_gen) != 0:
        raise ValueError(f"gamma ({g.size} valeurs) n'est pas un multiple de "
                         f"n_gen² = {n_gen * n_gen}")
    return g.reshape(-1, n_gen, n_gen)


def topology_counts(gamma, cross_info, n_gen):
    """
    Accumule la masse a posteriori par classe de topologie des fondateurs.

    Parameters
    ----------
    gamma : array (n_ind, n_gen, n_gen) ou (n_ind, n_gen²)
        P(génotype gauche, génotype droit | données) pour chaque individu
    cross_info : array (n_ind, n_founders)
        Ordre du croisement de chaque individu
    n_gen : int
        Nombre de génotypes (= nombre de fondateurs)

    Returns
    -------
    counts : TopologyCounts
    """
    g = as_pair_array(gamma, n_gen)
    ci = np.asarray(cross_info, dtype=int).reshape(g.shape[0], -1)
    if ci.shape[1] != n_gen:
        raise ValueError(f"cross_info devrait contenir {n_gen} fondateurs "
                         f"(reçu: {ci.shape[1]})")

    # les individus de même ordre partagent la même topologie
    orders, inverse = np.unique(ci, axis=0, return_inverse=True)
    inverse = np.asarray(inverse).ravel()

    counts = TopologyCounts()
    for k, order in enumerate(orders):
        total = g[inverse == k].sum(axis=0)
        topo = founder_topology(order)
        counts = counts + TopologyCounts(
            total[topo == IDENTICAL].sum(),
            total[topo == SIBLING].sum(),
            total[topo == NONSIBLING].sum(),
        )
    return counts


def recombinant_mass(gamma, n_gen):
    """(masse hors diagonale, masse totale) sur tous les individus."""
    g = as_pair_array(gamma, n_gen)
    n = float(g.sum())
    diag = float(np.einsum('ikk->', g))
    return n - diag, n


# ============================================================
# Formes closes par plan de croisement
# ============================================================

def rec_frac_riself8(counts):
    """
    EMV de r pour les RIL à 8 fondateurs par autofécondation.

    Par génotype de gauche : P(identique) = (1-r)²/(1+2r),
    P(frère) = r(1-r)/(1+2r), P(chacun des 6 non-frères) = r/(2(1+2r))
    (Teuscher & Broman 2007, Broman 2005). La solution négative est
    ramenée à 0 ; aucune borne supérieure.
    """
    u, v, w = counts
    n = u + v + w
    if n <= 0.0:
        return math.nan

    denom = n - w - 2.0 * v - 2.0 * u
    if denom == 0.0:
        # toute la masse sur les paires non-frères
        return 0.5

    A = math.sqrt(max(4.0 * n * n + 4.0 * n * (2.0 * u - 2.0 * v - 3.0 * w)
                      + 9.0 * w * w + 12.0 * w * (u + 2.0 * v)
                      + 16.0 * v * v + 16.0 * u * v + 4.0 * u * u, 0.0))
    result = (2.0 * n + 2.0 * u - w - A) / 4.0 / denom

    if result < 0.0:
        result = 0.0
    return result


def rec_frac_riself4(n_rec, n):
    """RIL à 4 fondateurs par autofécondation : R = 3r/(1+2r)."""
    if n <= 0.0:
        return math.nan
    R = n_rec / n
    return max(R / (3.0 - 2.0 * R), 0.0)


def rec_frac_riself(n_rec, n):
    """RIL à 2 fondateurs par autofécondation : R = 2r/(1+2r)."""
    if n <= 0.0:
        return math.nan
    R = n_rec / n
    if R >= 1.0:
        return 0.5
    return max(R / (2.0 * (1.0 - R)), 0.0)


def rec_frac_risib(n_rec, n):
    """RIL à 2 fondateurs par croisements frère-sœur : R = 4r/(1+6r)."""
    if n <= 0.0:
        return math.nan
    R = n_rec / n
    if R >= 2.0 / 3.0:
        return 0.5
    return max(R / (4.0 - 6.0 * R), 0.0)


def rec_frac_backcross(n_rec, n):
    """Une méiose informative par intervalle : R = r."""
    if n <= 0.0:
        return math.nan
    return max(n_rec / n, 0.0)
