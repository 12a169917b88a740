"""
Décodeur forward-backward de référence.

Construit, pour chaque individu, le vecteur initial, la matrice
d'émission et les matrices de transition à partir d'un CrossModel, puis
calcule en log-espace :
  - les probabilités a posteriori des paires de génotypes (gamma) pour
    chaque intervalle, consommées par l'étape M de l'EM ;
  - la log-vraisemblance de la carte ;
  - les probabilités génotypiques a posteriori à chaque marqueur.

Les individus de même sexe et de même ordre de croisement partagent
leurs matrices de transition.
"""

import numpy as np
from scipy.special import logsumexp
from tqdm import tqdm

from .config import DEFAULT_ERROR_PROB, as_int_matrix


def _forward(init, emit, steps):
    n_mar, n_gen = emit.shape
    alpha = np.empty((n_mar, n_gen))
    alpha[0] = init + emit[0]
    for t in range(1, n_mar):
        alpha[t] = logsumexp(alpha[t - 1][:, None] + steps[t - 1], axis=0) + emit[t]
    return alpha


def _backward(emit, steps):
    n_mar, n_gen = emit.shape
    beta = np.zeros((n_mar, n_gen))
    for t in range(n_mar - 2, -1, -1):
        beta[t] = logsumexp(steps[t] + (emit[t + 1] + beta[t + 1])[None, :], axis=1)
    return beta


def _check_possible(impossible):
    if impossible:
        shown = ', '.join(str(i + 1) for i in impossible[:10])
        more = '' if len(impossible) <= 10 else f" (+{len(impossible) - 10})"
        raise ValueError(f"Vraisemblance nulle pour {len(impossible)} individus "
                         f"({shown}{more}) : observations impossibles avec "
                         "error_prob = 0 ?")


class ForwardBackward:
    """Décodeur HMM pour un chromosome et un type de croisement."""

    def __init__(self, cross, genotypes, founder_geno=None, is_x_chr=False,
                 is_female=None, cross_info=None, error_prob=DEFAULT_ERROR_PROB,
                 verbose=False):
        """
        Parameters
        ----------
        cross : CrossModel
        genotypes : array (n_ind, n_mar)
            Génotypes observés (0 = manquant)
        founder_geno : array (n_founders, n_mar), optional
            Panel fondateurs, requis si cross.need_founder_geno()
        is_x_chr : bool
        is_female : array (n_ind,) de bool, optional
        cross_info : array (n_ind, n_col), optional
        error_prob : float
        verbose : bool
        """
        self.cross = cross
        self.verbose = verbose
        self.error_prob = float(error_prob)

        geno = as_int_matrix(genotypes, 'genotypes')
        self.n_ind, self.n_mar = geno.shape
        if self.n_ind == 0 or self.n_mar == 0:
            raise ValueError("genotypes est vide")

        if is_x_chr and not cross.check_handle_x_chr(True):
            is_x_chr = False
        self.is_x_chr = bool(is_x_chr)

        if is_female is None:
            is_female = np.zeros(self.n_ind, dtype=bool)
        self.is_female = np.asarray(is_female, dtype=bool)

        if cross_info is None:
            cross_info = np.zeros((self.n_ind, 0), dtype=int)
        self.cross_info = as_int_matrix(cross_info, 'cross_info')
        if self.cross_info.shape[0] != self.n_ind or len(self.is_female) != self.n_ind:
            raise ValueError("is_female et cross_info doivent avoir une ligne par individu")

        if cross.need_founder_geno() and founder_geno is None:
            raise ValueError(f"Le croisement '{cross.crosstype}' nécessite founder_geno")
        if founder_geno is not None:
            founder_geno = as_int_matrix(founder_geno, 'founder_geno')
            if founder_geno.shape[1] != self.n_mar:
                raise ValueError("founder_geno doit avoir une colonne par marqueur")
        self.founder_geno = founder_geno

        self.n_gen = cross.ngen(self.is_x_chr)

        # Groupes (sexe, ordre du croisement)
        keys = [(bool(self.is_female[i]), tuple(int(x) for x in self.cross_info[i]))
                for i in range(self.n_ind)]
        self.group_keys = sorted(set(keys))
        index = {k: j for j, k in enumerate(self.group_keys)}
        self.group_of = np.array([index[k] for k in keys], dtype=int)

        self._init = np.full((self.n_ind, self.n_gen), -np.inf)
        self._emit = np.full((self.n_ind, self.n_mar, self.n_gen), -np.inf)
        self._build_init_emit(geno)

    # ------------------------------------------------------------------
    def _build_init_emit(self, geno):
        cross = self.cross
        e = self.error_prob
        cache = {}
        for i in range(self.n_ind):
            is_female, order = self.group_keys[self.group_of[i]]
            gens = cross.possible_gen(self.is_x_chr, is_female, order)
            for g in gens:
                self._init[i, g - 1] = cross.init(g, self.is_x_chr, is_female, order)

            for m in range(self.n_mar):
                key = (self.group_of[i], m, int(geno[i, m]))
                vec = cache.get(key)
                if vec is None:
                    fcol = self.founder_geno[:, m] if self.founder_geno is not None else None
                    vec = np.full(self.n_gen, -np.inf)
                    for g in gens:
                        vec[g - 1] = cross.emit(int(geno[i, m]), g, e, fcol,
                                                self.is_x_chr, is_female, order)
                    cache[key] = vec
                self._emit[i, m] = vec

    def step_matrices(self, rec_frac):
        """Matrices de transition (n_groupes, n_int, G, G) en log."""
        rf = np.asarray(rec_frac, dtype=float)
        if len(rf) != self.n_mar - 1:
            raise ValueError(f"rec_frac doit avoir {self.n_mar - 1} valeurs (reçu: {len(rf)})")

        cross = self.cross
        mats = np.full((len(self.group_keys), len(rf), self.n_gen, self.n_gen), -np.inf)
        for j, (is_female, order) in enumerate(self.group_keys):
            gens = cross.possible_gen(self.is_x_chr, is_female, order)
            for t, r in enumerate(rf):
                for gl in gens:
                    for gr in gens:
                        mats[j, t, gl - 1, gr - 1] = cross.step(
                            gl, gr, r, self.is_x_chr, is_female, order)
        return mats

    def _individuals(self, desc):
        return tqdm(range(self.n_ind), desc=desc, leave=False, disable=not self.verbose)

    # ------------------------------------------------------------------
    # API du décodeur
    # ------------------------------------------------------------------
    def run(self, rec_frac):
        """
        Probabilités a posteriori des paires de génotypes.

        Returns
        -------
        gamma : array (n_int, n_ind, G, G)
        loglik : float

        Raises
        ------
        ValueError
            Si les observations d'un individu sont impossibles (vraisemblance
            nulle, typiquement avec error_prob = 0) ; les individus sont nommés.
        """
        steps = self.step_matrices(rec_frac)
        n_int = self.n_mar - 1
        gamma = np.zeros((n_int, self.n_ind, self.n_gen, self.n_gen))
        loglik = 0.0
        impossible = []

        with np.errstate(divide='ignore', under='ignore'):
            for i in self._individuals("      Forward-backward"):
                S = steps[self.group_of[i]]
                E = self._emit[i]
                alpha = _forward(self._init[i], E, S)
                ll = logsumexp(alpha[-1])
                if not np.isfinite(ll):
                    impossible.append(i)
                    continue
                beta = _backward(E, S)
                loglik += ll
                for t in range(n_int):
                    lg = alpha[t][:, None] + S[t] + (E[t + 1] + beta[t + 1])[None, :] - ll
                    gamma[t, i] = np.exp(lg)

        _check_possible(impossible)
        return gamma, float(loglik)

    def loglik(self, rec_frac):
        """Log-vraisemblance de la carte (somme sur les individus)."""
        steps = self.step_matrices(rec_frac)
        loglik = 0.0
        impossible = []
        with np.errstate(divide='ignore', under='ignore'):
            for i in range(self.n_ind):
                alpha = _forward(self._init[i], self._emit[i], steps[self.group_of[i]])
                ll = logsumexp(alpha[-1])
                if np.isfinite(ll):
                    loglik += ll
                else:
                    impossible.append(i)
        _check_possible(impossible)
        return float(loglik)

    def genoprob(self, rec_frac):
        """Probabilités génotypiques a posteriori, array (n_ind, G, n_mar)."""
        steps = self.step_matrices(rec_frac)
        probs = np.zeros((self.n_ind, self.n_gen, self.n_mar))
        impossible = []
        with np.errstate(divide='ignore', under='ignore'):
            for i in self._individuals("      Genoprob"):
                S = steps[self.group_of[i]]
                E = self._emit[i]
                alpha = _forward(self._init[i], E, S)
                if not np.isfinite(logsumexp(alpha[-1])):
                    impossible.append(i)
                    continue
                beta = _backward(E, S)
                lp = alpha + beta
                probs[i] = np.exp(lp - logsumexp(lp, axis=1, keepdims=True)).T
        _check_possible(impossible)
        return probs


def calc_genoprob(cross, genotypes, rec_frac, founder_geno=None, is_x_chr=False,
                  is_female=None, cross_info=None, error_prob=DEFAULT_ERROR_PROB,
                  verbose=False):
    """Probabilités génotypiques a posteriori (n_ind, G, n_mar) pour un chromosome."""
    fb = ForwardBackward(cross, genotypes, founder_geno=founder_geno, is_x_chr=is_x_chr,
                         is_female=is_female, cross_info=cross_info,
                         error_prob=error_prob, verbose=verbose)
    return fb.genoprob(rec_frac)
