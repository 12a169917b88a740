"""
Fonctions de carte : distance génétique (cM) ↔ fraction de recombinaison.
"""

import numpy as np
from scipy.optimize import brentq

from .config import MAP_FUNCTIONS


def _check_model(model):
    if model not in MAP_FUNCTIONS:
        raise ValueError(f"Fonction de carte inconnue: {model}")


def _cf_imf(r):
    # Carter-Falconer, en Morgans
    return 0.25 * (np.arctan(2.0 * r) + np.arctanh(2.0 * r))


def _cf_mf(d):
    # pas de forme close : inversion numérique de _cf_imf sur [0, 0.5)
    if d <= 0.0:
        return 0.0
    hi = 0.5 - 1e-12
    if _cf_imf(hi) <= d:
        return hi
    return brentq(lambda r: _cf_imf(r) - d, 0.0, hi, xtol=1e-14)


def mf(d_cm, model='haldane'):
    """Distance en cM → fraction de recombinaison."""
    _check_model(model)
    d = np.asarray(d_cm, dtype=float) / 100.0
    if np.any(d < 0):
        raise ValueError("Les distances doivent être positives ou nulles")

    if model == 'haldane':
        r = 0.5 * (1.0 - np.exp(-2.0 * d))
    elif model == 'kosambi':
        r = 0.5 * np.tanh(2.0 * d)
    elif model == 'c-f':
        r = np.vectorize(_cf_mf, otypes=[float])(d)
    else:
        r = np.minimum(d, 0.5)
    return r if r.ndim else float(r)


def imf(rec_frac, model='haldane'):
    """Fraction de recombinaison → distance en cM."""
    _check_model(model)
    r = np.asarray(rec_frac, dtype=float)
    if np.any(r < 0) or np.any(r > 0.5):
        raise ValueError("Les fractions de recombinaison doivent être dans [0, 0.5]")

    with np.errstate(divide='ignore'):
        if model == 'haldane':
            d = -0.5 * np.log(1.0 - 2.0 * r)
        elif model == 'kosambi':
            d = 0.25 * np.log((1.0 + 2.0 * r) / (1.0 - 2.0 * r))
        elif model == 'c-f':
            d = _cf_imf(r)
        else:
            d = r.copy()
    d = d * 100.0
    return d if d.ndim else float(d)


def positions_to_rec_frac(positions, model='haldane'):
    """Positions ordonnées (cM) → fractions de recombinaison des intervalles."""
    pos = np.asarray(positions, dtype=float)
    gaps = np.diff(pos)
    if np.any(gaps < 0):
        raise ValueError("Les positions doivent être triées par ordre croissant")
    return np.atleast_1d(mf(gaps, model))


def rec_frac_to_positions(rec_frac, model='haldane', start=0.0):
    """Fractions de recombinaison → positions cumulées (cM), à partir de `start`."""
    r = np.minimum(np.asarray(rec_frac, dtype=float), 0.5)
    d = np.atleast_1d(imf(r, model))
    return np.concatenate([[start], start + np.cumsum(d)])
