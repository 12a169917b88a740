"""
Vérifications structurelles des métadonnées d'un croisement.

Ces fonctions ne lèvent pas d'exception : chaque problème est signalé
par un message du logger et le résultat est un booléen unique. C'est à
l'appelant de décider s'il faut interrompre l'analyse.
"""

import numpy as np
import pandas as pd

from .config import FOUNDER_GENO_CODES, GENO_MISSING
from .log import logger


def cross_info_problems(cross_info, n_founders):
    """
    Compte les valeurs manquantes et invalides de cross_info.

    Chaque ligne doit être une permutation de {1, ..., n_founders}.
    Une valeur hors intervalle compte comme invalide ; en plus, pour chaque
    valeur attendue v, |nombre d'occurrences de v - 1| s'ajoute au nombre
    de valeurs invalides (doublons et valeurs absentes).

    Returns
    -------
    problems : dict avec les clés 'n_missing', 'n_invalid'
    """
    ci = pd.DataFrame(cross_info)
    missing = ci.isna().to_numpy()
    values = ci.to_numpy(dtype=float, na_value=np.nan)

    n_missing = int(missing.sum())
    in_range = (~missing & (values >= 1) & (values <= n_founders)
                & (values == np.round(values)))
    n_invalid = int((~missing & ~in_range).sum())

    for i in range(values.shape[0]):
        row = values[i, in_range[i]].astype(int)
        counts = np.bincount(row - 1, minlength=n_founders)
        n_invalid += int(np.abs(counts - 1).sum())

    return {'n_missing': n_missing, 'n_invalid': n_invalid}


def check_cross_info(cross_info, n_founders, any_x_chr=False):
    """
    Vérifie que cross_info (individus × fondateurs) donne l'ordre du croisement.

    Pour les croisements sans ordre de fondateurs (n_founders == 0),
    cross_info doit avoir zéro colonne.
    """
    ci = pd.DataFrame(cross_info)
    n_col = ci.shape[1]

    if n_founders == 0:
        if n_col != 0:
            logger.warning("cross_info n'est pas utilisé pour ce croisement ; "
                           "il devrait avoir 0 colonne")
            return False
        return True

    if n_col != n_founders:
        logger.warning(f"cross_info devrait avoir {n_founders} colonnes, "
                       f"indiquant l'ordre du croisement (reçu: {n_col})")
        return False

    problems = cross_info_problems(ci, n_founders)
    result = True
    if problems['n_missing'] > 0:
        result = False
        logger.warning(f"cross_info contient {problems['n_missing']} valeurs manquantes")
    if problems['n_invalid'] > 0:
        result = False
        logger.warning(f"cross_info contient {problems['n_invalid']} valeurs invalides ; "
                       f"chaque ligne doit être une permutation de {{1, ..., {n_founders}}}")
    return result


def check_founder_geno_size(founder_geno, n_markers, n_founders):
    """Vérifie les dimensions du panel fondateurs (fondateurs × marqueurs)."""
    fg = np.asarray(founder_geno)
    if fg.ndim != 2:
        logger.warning(f"founder_geno doit être une matrice 2D (forme reçue: {fg.shape})")
        return False

    result = True
    if fg.shape[1] != n_markers:
        result = False
        logger.warning(f"founder_geno a un nombre de marqueurs incorrect "
                       f"({fg.shape[1]} au lieu de {n_markers})")
    if fg.shape[0] != n_founders:
        result = False
        logger.warning(f"founder_geno devrait avoir {n_founders} fondateurs "
                       f"(reçu: {fg.shape[0]})")
    return result


def check_founder_geno_values(founder_geno, allowed=FOUNDER_GENO_CODES):
    """Vérifie les codes du panel fondateurs ; s'arrête à la première valeur invalide."""
    fg = np.asarray(founder_geno)
    bad = ~np.isin(fg, allowed)
    if bad.any():
        f, mar = np.argwhere(bad)[0]
        logger.warning(f"founder_geno contient des valeurs invalides "
                       f"(fondateur {f + 1}, marqueur {mar + 1}: {fg[f, mar]}) ; "
                       f"valeurs autorisées {set(allowed)}")
        return False
    return True


def check_genotypes(cross, genotypes, is_x_chr, is_female, cross_info):
    """
    Vérifie que tous les génotypes observés (individus × marqueurs) sont
    autorisés pour le type de croisement.
    """
    geno = np.asarray(genotypes)
    n_invalid = 0
    n_ind_bad = 0
    for i in range(geno.shape[0]):
        bad = 0
        for g in np.unique(geno[i]):
            if g == GENO_MISSING:
                continue
            if not cross.check_geno(int(g), True, is_x_chr, bool(is_female[i]), cross_info[i]):
                bad += int((geno[i] == g).sum())
        if bad:
            n_invalid += bad
            n_ind_bad += 1

    if n_invalid > 0:
        logger.warning(f"{n_invalid} génotypes observés invalides pour le croisement "
                       f"'{cross.crosstype}' ({n_ind_bad} individus)")
        return False
    return True
