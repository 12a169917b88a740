"""
Estimation de la carte génétique d'un chromosome par EM.

Chaque itération :
  1. le décodeur calcule, pour la carte courante, les probabilités a
     posteriori des paires de génotypes et la log-vraisemblance ;
  2. point d'annulation coopératif ;
  3. l'étape M en forme close du croisement réestime chaque intervalle.
L'EM s'arrête quand la log-vraisemblance ne progresse plus de `tol`, ou
au nombre maximal d'itérations (avertissement, meilleure carte renvoyée).
"""

import warnings

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import EstMapConfig, as_int_matrix
from .hmm import ForwardBackward
from .log import logger
from .map_function import positions_to_rec_frac, rec_frac_to_positions
from .registry import get_cross


class EstMapConvergenceWarning(UserWarning):
    """L'EM n'a pas atteint la tolérance dans le nombre d'itérations permis."""


class MapRefinement:
    """EM sur les fractions de recombinaison d'un chromosome."""

    def __init__(self, cross, genotypes, founder_geno=None, rec_frac=None,
                 positions=None, marker_names=None, is_x_chr=False, is_female=None,
                 cross_info=None, config=None, decoder=None, verbose=False):
        """
        Parameters
        ----------
        cross : CrossModel ou str
            Modèle du croisement, ou son étiquette ('riself8', 'bc', ...)
        genotypes : array (n_ind, n_mar)
        founder_geno : array (n_founders, n_mar), optional
        rec_frac : array (n_mar - 1,), optional
            Carte de départ en fractions de recombinaison
        positions : array (n_mar,), optional
            Carte de départ en cM (convertie avec config.map_function)
        marker_names : list, optional
        is_x_chr : bool
        is_female : array (n_ind,), optional
        cross_info : array (n_ind, n_col), optional
        config : EstMapConfig, optional
        decoder : objet avec run(rec_frac) et loglik(rec_frac), optional
            Par défaut, ForwardBackward
        verbose : bool
        """
        self.config = config if config is not None else EstMapConfig()
        cfg = self.config
        if isinstance(cross, str):
            cross = get_cross(cross, cfg.validation)
        self.cross = cross
        self.verbose = verbose

        geno = as_int_matrix(genotypes, 'genotypes')
        n_ind, n_mar = geno.shape
        if n_ind == 0:
            raise ValueError("Aucun individu")
        if n_mar < 2:
            raise ValueError("Il faut au moins deux marqueurs pour estimer une carte")

        # Carte de départ
        if (rec_frac is None) == (positions is None):
            raise ValueError("Donner soit rec_frac, soit positions")
        if positions is not None:
            positions = np.asarray(positions, dtype=float)
            if len(positions) != n_mar:
                raise ValueError(f"positions doit avoir {n_mar} valeurs")
            rec_frac = positions_to_rec_frac(positions, cfg.map_function)
            self.start = float(positions[0])
        else:
            rec_frac = np.asarray(rec_frac, dtype=float)
            if len(rec_frac) != n_mar - 1:
                raise ValueError(f"rec_frac doit avoir {n_mar - 1} valeurs")
            self.start = 0.0
        self.rec_frac = np.clip(rec_frac, cfg.min_rec_frac, 0.5)

        if marker_names is None:
            marker_names = [f"m{j + 1}" for j in range(n_mar)]
        if len(marker_names) != n_mar:
            raise ValueError(f"marker_names doit avoir {n_mar} noms")
        self.marker_names = list(marker_names)

        if is_x_chr and not cross.check_handle_x_chr(True):
            is_x_chr = False
        self.is_x_chr = bool(is_x_chr)

        # Métadonnées du croisement : les erreurs sont fatales ici
        if cross_info is None:
            cross_info = np.zeros((n_ind, 0), dtype=int)
        if not cross.check_crossinfo(cross_info, self.is_x_chr):
            raise ValueError("cross_info invalide pour le croisement "
                             f"'{cross.crosstype}' (voir les messages ci-dessus)")
        self.cross_info = as_int_matrix(cross_info, 'cross_info')
        if cross.need_founder_geno():
            if founder_geno is None:
                raise ValueError(f"Le croisement '{cross.crosstype}' nécessite founder_geno")
            if not (cross.check_founder_geno_size(founder_geno, n_mar)
                    and cross.check_founder_geno_values(founder_geno)):
                raise ValueError("founder_geno invalide (voir les messages ci-dessus)")

        if decoder is None:
            decoder = ForwardBackward(cross, geno, founder_geno=founder_geno,
                                      is_x_chr=self.is_x_chr, is_female=is_female,
                                      cross_info=self.cross_info,
                                      error_prob=cfg.error_prob, verbose=False)
        self.decoder = decoder

    # ------------------------------------------------------------------
    def m_step(self, gamma):
        """Nouvelles fractions de recombinaison à partir de gamma (n_int, n_ind, G, G)."""
        n_gen = gamma.shape[-1]
        new = np.array([
            self.cross.est_rec_frac(gamma[t], self.is_x_chr, self.cross_info, n_gen)
            for t in range(gamma.shape[0])
        ])
        bad = np.flatnonzero(~np.isfinite(new))
        if bad.size:
            raise ValueError("Étape M : fraction de recombinaison non définie pour les "
                             f"intervalles {', '.join(str(t + 1) for t in bad)} "
                             "(gamma vide ou non fini)")
        return np.clip(new, self.config.min_rec_frac, 0.5)

    def run(self, cancel=None):
        """
        Lance l'EM.

        Parameters
        ----------
        cancel : objet avec is_set() (ex. threading.Event), optional
            Vérifié une fois par itération, entre le décodeur et l'étape M

        Returns
        -------
        result : dict avec les clés:
            'rec_frac': array (n_mar - 1,)
            'map': DataFrame ['name', 'cm', 'rec_frac']
            'loglik': float
            'loglik_trace': list des log-vraisemblances successives
            'n_iterations': int
            'converged': bool
            'cancelled': bool
        """
        cfg = self.config
        rec_frac = self.rec_frac.copy()
        best_rf, best_ll = rec_frac.copy(), -np.inf
        prev_ll = -np.inf
        trace = []
        converged = cancelled = False
        n_iter = 0

        for it in tqdm(range(cfg.max_iterations), desc="      EM", leave=False,
                       disable=not self.verbose):
            gamma, ll = self.decoder.run(rec_frac)
            if not np.isfinite(ll):
                raise ValueError(f"Log-vraisemblance non finie ({ll}) à l'itération "
                                 f"{it + 1} : données incompatibles avec le modèle")
            n_iter = it + 1
            trace.append(ll)
            if ll > best_ll:
                best_ll, best_rf = ll, rec_frac.copy()

            if ll - prev_ll < cfg.tol:
                converged = True
                break
            prev_ll = ll

            if cancel is not None and cancel.is_set():
                cancelled = True
                logger.warning(f"Estimation de la carte annulée après {n_iter} itérations ; "
                               "meilleure carte courante renvoyée")
                break

            rec_frac = self.m_step(gamma)
        else:
            # dernière carte estimée, pas encore évaluée
            ll = self.decoder.loglik(rec_frac)
            trace.append(ll)
            if ll > best_ll:
                best_ll, best_rf = ll, rec_frac.copy()
            warnings.warn(EstMapConvergenceWarning(
                f"L'EM n'a pas convergé en {cfg.max_iterations} itérations "
                f"(tol={cfg.tol}) ; meilleure carte renvoyée"), stacklevel=2)

        if self.verbose:
            print(f"    EM: {n_iter} itérations, log-vraisemblance = {best_ll:.4f}"
                  f"{'' if converged else ' (non convergé)'}")

        positions = rec_frac_to_positions(best_rf, cfg.map_function, start=self.start)
        map_df = pd.DataFrame({
            'name': self.marker_names,
            'cm': positions,
            'rec_frac': np.append(best_rf, np.nan),
        })
        return {
            'rec_frac': best_rf,
            'map': map_df,
            'loglik': float(best_ll),
            'loglik_trace': trace,
            'n_iterations': n_iter,
            'converged': converged,
            'cancelled': cancelled,
        }


def est_map(cross, genotypes, founder_geno=None, rec_frac=None, positions=None,
            marker_names=None, is_x_chr=False, is_female=None, cross_info=None,
            error_prob=None, max_iterations=None, tol=None, map_function=None,
            validation=None, cancel=None, verbose=False):
    """Raccourci : construit un MapRefinement et lance l'EM."""
    params = {
        'error_prob': error_prob, 'max_iterations': max_iterations, 'tol': tol,
        'map_function': map_function, 'validation': validation,
    }
    config = EstMapConfig(**{k: v for k, v in params.items() if v is not None})
    refinement = MapRefinement(cross, genotypes, founder_geno=founder_geno,
                               rec_frac=rec_frac, positions=positions,
                               marker_names=marker_names, is_x_chr=is_x_chr,
                               is_female=is_female, cross_info=cross_info,
                               config=config, verbose=verbose)
    return refinement.run(cancel=cancel)
