"""
Croisements à deux fondateurs : backcross, haploïdes doublés et RIL
(autofécondation ou croisements frère-sœur).

Aucun panel de fondateurs : les allèles A et B sont directement ceux des
deux lignées parentales. Seul le backcross traite le chromosome X
(mâles hémizygotes AY / BY).
"""

import math

from .config import OBSERVED_CODES, GENO_MISSING, GENO_A, GENO_H, GENO_B, FOUNDER_A, FOUNDER_B
from .cross import CrossModel, safe_log, inbred_emit
from .log import logger
from .recomb import (
    recombinant_mass, rec_frac_backcross, rec_frac_riself, rec_frac_risib,
)
from . import validation

# Génotypes latents
AA = 1
AB = 2
AY = 3
BY = 4
BB = 2   # lignées fixées : le second état est BB

# allèle porté par chaque état d'une lignée fixée
_INBRED_ALLELE = {1: FOUNDER_A, 2: FOUNDER_B}


class Backcross(CrossModel):
    """Backcross (AB × AA) ; sur le X, les mâles sont AY ou BY."""

    crosstype = 'bc'
    n_founders = 2

    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        male_x = is_x_chr and not is_female
        if is_observed_value:
            if gen == GENO_MISSING:
                return True
            return gen in ((GENO_A, GENO_B) if male_x else (GENO_A, GENO_H))
        return gen in ((AY, BY) if male_x else (AA, AB))

    def possible_gen(self, is_x_chr, is_female, cross_info):
        if is_x_chr and not is_female:
            return [AY, BY]
        return [AA, AB]

    def ngen(self, is_x_chr):
        return 4 if is_x_chr else 2

    def nalleles(self):
        return 2

    def init(self, true_gen, is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        return -math.log(2.0)

    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        self._check_obs_gen(obs_gen, is_x_chr, is_female, cross_info)
        if obs_gen == GENO_MISSING:
            return 0.0

        if is_x_chr and not is_female:
            expected = GENO_A if true_gen == AY else GENO_B
        else:
            expected = true_gen     # AA=1 observé 1, AB=2 observé 2

        if obs_gen == expected:
            return safe_log(1.0 - error_prob)
        return safe_log(error_prob)

    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        if gen_left == gen_right:
            return safe_log(1.0 - rec_frac)
        return safe_log(rec_frac)

    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def need_founder_geno(self):
        return False

    def geno_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            raise ValueError(f"alleles doit contenir 2 noms (reçu: {len(alleles)})")
        a, b = alleles[0], alleles[1]
        names = [a + a, a + b]
        if is_x_chr:
            names += [a + 'Y', b + 'Y']
        return names

    def check_handle_x_chr(self, any_x_chr):
        return True

    def check_crossinfo(self, cross_info, any_x_chr):
        return validation.check_cross_info(cross_info, 0, any_x_chr)

    def check_founder_geno_size(self, founder_geno, n_markers):
        return True

    def check_founder_geno_values(self, founder_geno):
        return True

    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        return rec_frac_backcross(*recombinant_mass(gamma, n_gen))


class DoubledHaploid(CrossModel):
    """Haploïdes doublés : AA ou BB, une méiose par lignée."""

    crosstype = 'dh'
    n_founders = 2

    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        if is_observed_value:
            return gen in OBSERVED_CODES
        return gen in (AA, BB)

    def possible_gen(self, is_x_chr, is_female, cross_info):
        return [AA, BB]

    def ngen(self, is_x_chr):
        return 2

    def nalleles(self):
        return 2

    def init(self, true_gen, is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        return -math.log(2.0)

    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        self._check_obs_gen(obs_gen, is_x_chr, is_female, cross_info)
        return inbred_emit(obs_gen, _INBRED_ALLELE[true_gen], error_prob)

    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        if gen_left == gen_right:
            return safe_log(1.0 - rec_frac)
        return safe_log(rec_frac)

    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def need_founder_geno(self):
        return False

    def geno_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            raise ValueError(f"alleles doit contenir 2 noms (reçu: {len(alleles)})")
        return [alleles[0] * 2, alleles[1] * 2]

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("Chromosome X ignoré pour les haploïdes doublés "
                           "(traité comme un autosome)")
            return False
        return True

    def check_crossinfo(self, cross_info, any_x_chr):
        return validation.check_cross_info(cross_info, 0, any_x_chr)

    def check_founder_geno_size(self, founder_geno, n_markers):
        return True

    def check_founder_geno_values(self, founder_geno):
        return True

    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        return rec_frac_backcross(*recombinant_mass(gamma, n_gen))


class RISelf(CrossModel):
    """RIL à 2 fondateurs par autofécondation (Haldane & Waddington 1931)."""

    crosstype = 'riself'
    n_founders = 2

    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        if is_observed_value:
            return gen in OBSERVED_CODES
        return gen in (AA, BB)

    def possible_gen(self, is_x_chr, is_female, cross_info):
        return [AA, BB]

    def ngen(self, is_x_chr):
        return 2

    def nalleles(self):
        return 2

    def init(self, true_gen, is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        return -math.log(2.0)

    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        self._check_obs_gen(obs_gen, is_x_chr, is_female, cross_info)
        return inbred_emit(obs_gen, _INBRED_ALLELE[true_gen], error_prob)

    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        # R = 2r/(1+2r)
        if gen_left == gen_right:
            return -math.log(1.0 + 2.0 * rec_frac)
        return safe_log(2.0 * rec_frac) - math.log(1.0 + 2.0 * rec_frac)

    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def need_founder_geno(self):
        return False

    def geno_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            raise ValueError(f"alleles doit contenir 2 noms (reçu: {len(alleles)})")
        return [alleles[0] * 2, alleles[1] * 2]

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("Chromosome X ignoré pour les RIL par autofécondation "
                           "(traité comme un autosome)")
            return False
        return True

    def check_crossinfo(self, cross_info, any_x_chr):
        return validation.check_cross_info(cross_info, 0, any_x_chr)

    def check_founder_geno_size(self, founder_geno, n_markers):
        return True

    def check_founder_geno_values(self, founder_geno):
        return True

    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        return rec_frac_riself(*recombinant_mass(gamma, n_gen))


class RISib(CrossModel):
    """RIL à 2 fondateurs par croisements frère-sœur (Haldane & Waddington 1931)."""

    crosstype = 'risib'
    n_founders = 2

    def check_geno(self, gen, is_observed_value, is_x_chr, is_female, cross_info):
        if is_observed_value:
            return gen in OBSERVED_CODES
        return gen in (AA, BB)

    def possible_gen(self, is_x_chr, is_female, cross_info):
        return [AA, BB]

    def ngen(self, is_x_chr):
        return 2

    def nalleles(self):
        return 2

    def init(self, true_gen, is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        return -math.log(2.0)

    def emit(self, obs_gen, true_gen, error_prob, founder_geno,
             is_x_chr, is_female, cross_info):
        self._check_true_gen((true_gen,), is_x_chr, is_female, cross_info)
        self._check_obs_gen(obs_gen, is_x_chr, is_female, cross_info)
        return inbred_emit(obs_gen, _INBRED_ALLELE[true_gen], error_prob)

    def step(self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        # R = 4r/(1+6r)
        r = rec_frac
        if gen_left == gen_right:
            return math.log(1.0 + 2.0 * r) - math.log(1.0 + 6.0 * r)
        return safe_log(4.0 * r) - math.log(1.0 + 6.0 * r)

    def nrec(self, gen_left, gen_right, is_x_chr, is_female, cross_info):
        self._check_true_gen((gen_left, gen_right), is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def need_founder_geno(self):
        return False

    def geno_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            raise ValueError(f"alleles doit contenir 2 noms (reçu: {len(alleles)})")
        return [alleles[0] * 2, alleles[1] * 2]

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("Chromosome X ignoré pour les RIL par croisements "
                           "frère-sœur (traité comme un autosome)")
            return False
        return True

    def check_crossinfo(self, cross_info, any_x_chr):
        return validation.check_cross_info(cross_info, 0, any_x_chr)

    def check_founder_geno_size(self, founder_geno, n_markers):
        return True

    def check_founder_geno_values(self, founder_geno):
        return True

    def est_rec_frac(self, gamma, is_x_chr, cross_info, n_gen):
        return rec_frac_risib(*recombinant_mass(gamma, n_gen))
