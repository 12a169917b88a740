"""
Comparaison des génotypes entre paires d'individus, pour repérer des
individus anormalement apparentés (doublons d'échantillons, etc.).
"""

import numpy as np
import pandas as pd

from .config import GENO_MISSING, as_int_matrix

SUMMARY_COLUMNS = ['ind1', 'ind2', 'prop_match', 'n_mismatch', 'n_typed',
                   'n_match', 'index1', 'index2']


def compare_geno(genotypes, ind_names=None, proportion=True):
    """
    Compte les génotypes identiques entre toutes les paires d'individus.

    Parameters
    ----------
    genotypes : array (n_ind, n_mar)
        Génotypes observés, 0 = manquant
    ind_names : list, optional
    proportion : bool
        Si True, le triangle supérieur contient des proportions plutôt
        que des nombres de génotypes identiques

    Returns
    -------
    cg : DataFrame (n_ind × n_ind)
        Diagonale = nombre de génotypes observés par individu ;
        triangle inférieur = nombre de marqueurs typés chez les deux ;
        triangle supérieur = nombre (ou proportion) de génotypes identiques.
        cg.attrs['proportion'] indique le contenu du triangle supérieur.
    """
    geno = as_int_matrix(genotypes, 'genotypes')
    n_ind = geno.shape[0]
    if ind_names is None:
        ind_names = [str(i + 1) for i in range(n_ind)]

    typed = (geno != GENO_MISSING).astype(np.int64)
    n_both = typed @ typed.T

    n_match = np.zeros((n_ind, n_ind), dtype=np.int64)
    for code in np.unique(geno):
        if code == GENO_MISSING:
            continue
        same = (geno == code).astype(np.int64)
        n_match += same @ same.T

    upper = np.triu_indices(n_ind, k=1)
    lower = np.tril_indices(n_ind, k=-1)

    result = np.zeros((n_ind, n_ind), dtype=float)
    result[lower] = n_both[lower]
    np.fill_diagonal(result, typed.sum(axis=1))
    if proportion:
        with np.errstate(divide='ignore', invalid='ignore'):
            result[upper] = np.where(n_both[upper] > 0,
                                     n_match[upper] / n_both[upper], np.nan)
    else:
        result[upper] = n_match[upper]

    cg = pd.DataFrame(result, index=ind_names, columns=ind_names)
    cg.attrs['proportion'] = proportion
    return cg


def compare_founder_geno(founder_geno, founder_names=None, proportion=True):
    """compare_geno appliqué au panel fondateurs (fondateurs × marqueurs)."""
    return compare_geno(founder_geno, ind_names=founder_names, proportion=proportion)


def _match_tables(cg):
    """(proportions symétriques, nombre d'identiques, nombre de typés) depuis compare_geno."""
    values = cg.to_numpy(dtype=float)
    n = values.shape[0]
    upper = np.triu(np.ones((n, n), dtype=bool), k=1)

    n_typed = values.T.copy()          # triangle inférieur transposé vers le haut
    if cg.attrs.get('proportion', True):
        p = values
        n_match = np.round(values * n_typed)
    else:
        n_match = values
        with np.errstate(divide='ignore', invalid='ignore'):
            p = np.where(n_typed > 0, values / n_typed, np.nan)

    p_sym = np.full((n, n), np.nan)
    p_sym[upper] = p[upper]
    p_sym.T[upper] = p[upper]
    return p_sym, np.nan_to_num(n_match), n_typed


def _pairs_frame(cg, p, n_match, n_typed, rows, cols):
    names = np.asarray(cg.index)
    n_m = n_match[rows, cols]
    n_t = n_typed[rows, cols]
    df = pd.DataFrame({
        'ind1': names[rows],
        'ind2': names[cols],
        'prop_match': p[rows, cols],
        'n_mismatch': n_t - n_m,
        'n_typed': n_t,
        'n_match': n_m,
        'index1': rows,
        'index2': cols,
    }, columns=SUMMARY_COLUMNS)
    return df.sort_values('prop_match', ascending=False, kind='stable').reset_index(drop=True)


def summary_compare_geno(cg, threshold=0.9):
    """
    Paires d'individus dont la proportion de génotypes identiques
    atteint `threshold`, triées par proportion décroissante.
    """
    p, n_match, n_typed = _match_tables(cg)
    with np.errstate(invalid='ignore'):
        hit = np.triu(np.nan_to_num(p, nan=-1.0) >= threshold, k=1)
    rows, cols = np.nonzero(hit)
    df = _pairs_frame(cg, p, n_match, n_typed, rows, cols)
    df.attrs['threshold'] = threshold
    return df


def max_compare_geno(cg):
    """Paire(s) d'individus aux génotypes les plus semblables."""
    p, n_match, n_typed = _match_tables(cg)
    if np.all(np.isnan(p)):
        return _pairs_frame(cg, p, n_match, n_typed,
                            np.array([], dtype=int), np.array([], dtype=int))
    best = np.nanmax(p)
    hit = np.triu(np.nan_to_num(p, nan=-1.0) == best, k=1)
    rows, cols = np.nonzero(hit)
    return _pairs_frame(cg, p, n_match, n_typed, rows, cols)
