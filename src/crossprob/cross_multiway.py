"""
RIL multi-fondateurs par autofécondation (4 et 8 fondateurs).

Un génotype latent par fondateur (lignées fixées, homozygotes). Les
émissions passent par le panel de génotypes fondateurs ; les transitions
dépendent de l'ordre du croisement donné par cross_info.
"""

import math

from .config import OBSERVED_CODES, SIBLING, FOUNDER_GENO_CODES
from .cross import CrossModel, safe_log, inbred_emit, founder_topology_class
from .log import logger
from .recomb import topology_counts, recombinant_mass, rec_frac_riself8, rec_frac_riself4
from . import validation


class RISelf8(CrossModel):
    """RIL à 8 fondateurs par autofécondation."""

    crosstype = 'riself8'
    n_founders = 8

    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        if is_observed_value:
            return gen in OBSERVED_CODES
        return 1 <= gen <= self.n_founders

    def possible_gen(self, is_x_chr, is_female, cross_info):
        return list(range(1, self.n_founders + 1))

    def ngen(self, is_x_chr):
        return self.n_founders

    def nalleles(self):
        return self.n_founders

    def init(self, true_gen, is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        return -math.log(8.0)

    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        self._check_obs_gen(obs_gen, is_x_chr, is_female, cross_info)
        return inbred_emit(obs_gen, founder_geno[true_gen - 1], error_prob)

    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)

        # Teuscher & Broman, Genetics 175:1267-1274, 2007 (équation 1, p. 1269)
        # et Broman, Genetics 169:1133-1146, 2005 (table 2), multipliées par 8
        r = rec_frac
        if gen_left == gen_right:
            return 2.0 * safe_log(1.0 - r) - math.log(1.0 + 2.0 * r)

        topo = founder_topology_class(gen_left, gen_right, cross_info)
        if topo == SIBLING:
            return safe_log(r) + safe_log(1.0 - r) - math.log(1.0 + 2.0 * r)

        return safe_log(r) - math.log(2.0) - math.log(1.0 + 2.0 * r)

    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def need_founder_geno(self):
        return True

    def geno_names(self, alleles, is_x_chr):
        if len(alleles) < self.n_founders:
            raise ValueError(f"alleles doit contenir {self.n_founders} noms "
                             f"(reçu: {len(alleles)})")
        return [a + a for a in alleles[:self.n_founders]]

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("Chromosome X ignoré pour les RIL par autofécondation "
                           "(traité comme un autosome)")
            return False
        return True

    def check_crossinfo(self, cross_info, any_x_chr):
        return validation.check_cross_info(cross_info, self.n_founders, any_x_chr)

    def check_founder_geno_size(self, founder_geno, n_markers):
        return validation.check_founder_geno_size(founder_geno, n_markers, self.n_founders)

    def check_founder_geno_values(self, founder_geno):
        return validation.check_founder_geno_values(founder_geno, FOUNDER_GENO_CODES)

    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        if n_gen != self.n_founders:
            raise ValueError(f"n_gen devrait valoir {self.n_founders} (reçu: {n_gen})")
        return rec_frac_riself8(topology_counts(gamma, cross_info, n_gen))


class RISelf4(CrossModel):
    """
    RIL à 4 fondateurs par autofécondation.

    Toutes les paires de fondateurs distincts ont la même probabilité de
    transition r/(1+2r) : l'ordre du croisement n'intervient pas dans le
    noyau, mais cross_info reste vérifié.
    """

    crosstype = 'riself4'
    n_founders = 4

    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        if is_observed_value:
            return gen in OBSERVED_CODES
        return 1 <= gen <= self.n_founders

    def possible_gen(self, is_x_chr, is_female, cross_info):
        return list(range(1, self.n_founders + 1))

    def ngen(self, is_x_chr):
        return self.n_founders

    def nalleles(self):
        return self.n_founders

    def init(self, true_gen, is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        return -math.log(4.0)

    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        self._check_obs_gen(obs_gen, is_x_chr, is_female, cross_info)
        return inbred_emit(obs_gen, founder_geno[true_gen - 1], error_prob)

    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)

        # Broman 2005, table 2 (multipliée par 4)
        r = rec_frac
        if gen_left == gen_right:
            return safe_log(1.0 - r) - math.log(1.0 + 2.0 * r)
        return safe_log(r) - math.log(1.0 + 2.0 * r)

    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def need_founder_geno(self):
        return True

    def geno_names(self, alleles, is_x_chr):
        if len(alleles) < self.n_founders:
            raise ValueError(f"alleles doit contenir {self.n_founders} noms "
                             f"(reçu: {len(alleles)})")
        return [a + a for a in alleles[:self.n_founders]]

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("Chromosome X ignoré pour les RIL par autofécondation "
                           "(traité comme un autosome)")
            return False
        return True

    def check_crossinfo(self, cross_info, any_x_chr):
        return validation.check_cross_info(cross_info, self.n_founders, any_x_chr)

    def check_founder_geno_size(self, founder_geno, n_markers):
        return validation.check_founder_geno_size(founder_geno, n_markers, self.n_founders)

    def check_founder_geno_values(self, founder_geno):
        return validation.check_founder_geno_values(founder_geno, FOUNDER_GENO_CODES)

    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        if n_gen != self.n_founders:
            raise ValueError(f"n_gen devrait valoir {self.n_founders} (reçu: {n_gen})")
        return rec_frac_riself4(*recombinant_mass(gamma, n_gen))
