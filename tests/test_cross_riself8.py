"""Tests du modèle HMM des RIL à 8 fondateurs par autofécondation."""

import math

import numpy as np
import pytest

from crossprob.config import (
    IDENTICAL, SIBLING, NONSIBLING,
    VALIDATION_OFF, VALIDATION_ASSERT,
)
from crossprob.cross import InvalidGenotypeError, founder_topology, founder_topology_class
from crossprob.registry import get_cross

ORDER = [1, 2, 3, 4, 5, 6, 7, 8]
# paires croisées directement : (2,5), (1,7), (3,8), (4,6)
SHUFFLED = [2, 5, 1, 7, 3, 8, 4, 6]


@pytest.fixture
def cross():
    return get_cross('riself8')


class TestCheckGeno:
    def test_latent_range(self, cross):
        assert all(cross.check_geno(g, False, False, False, ORDER) for g in range(1, 9))
        assert not cross.check_geno(0, False, False, False, ORDER)
        assert not cross.check_geno(9, False, False, False, ORDER)

    def test_observed_codes(self, cross):
        # 0 manquant, 1 A, 2 H, 3 B, 4 not-B, 5 not-A
        assert all(cross.check_geno(g, True, False, False, ORDER) for g in range(6))
        assert not cross.check_geno(6, True, False, False, ORDER)
        assert not cross.check_geno(-1, True, False, False, ORDER)


class TestInit:
    def test_uniform(self, cross):
        for g in range(1, 9):
            assert cross.init(g, False, False, ORDER) == pytest.approx(-math.log(8.0))

    def test_invalid_genotype_raises(self, cross):
        with pytest.raises(InvalidGenotypeError):
            cross.init(9, False, False, ORDER)
        # erreur typée, mais toujours un ValueError
        with pytest.raises(ValueError):
            cross.init(0, False, False, ORDER)


class TestEmit:
    def test_missing_is_uninformative(self, cross):
        fg = [1, 3, 1, 3, 0, 1, 3, 1]
        for g in range(1, 9):
            for e in (0.0, 0.01, 0.5):
                assert cross.emit(0, g, e, fg, False, False, ORDER) == 0.0

    def test_all_founders_a(self, cross):
        fg = [1] * 8
        assert cross.emit(1, 1, 0.01, fg, False, False, ORDER) == pytest.approx(math.log(0.99))
        assert cross.emit(1, 2, 0.01, fg, False, False, ORDER) == pytest.approx(math.log(0.99))

    def test_founder_mismatch(self, cross):
        fg = [1, 3, 1, 1, 1, 1, 1, 1]
        assert cross.emit(1, 2, 0.01, fg, False, False, ORDER) == pytest.approx(math.log(0.01))
        assert cross.emit(3, 2, 0.01, fg, False, False, ORDER) == pytest.approx(math.log(0.99))

    def test_missing_founder_allele(self, cross):
        fg = [0] * 8
        for obs in (1, 3):
            assert cross.emit(obs, 4, 0.2, fg, False, False, ORDER) == 0.0

    def test_partial_calls(self, cross):
        """Seul l'appel identique à l'allèle concorde : H, not-A et not-B coûtent log(e)."""
        fg = [1, 3, 1, 1, 1, 1, 1, 1]
        for obs in (2, 4, 5):
            for g in (1, 2):
                assert cross.emit(obs, g, 0.01, fg, False, False, ORDER) == \
                    pytest.approx(math.log(0.01))

    def test_partial_calls_with_all_a_founders(self, cross):
        fg = [1] * 8
        assert cross.emit(4, 1, 0.01, fg, False, False, ORDER) == pytest.approx(math.log(0.01))
        assert cross.emit(1, 1, 0.01, fg, False, False, ORDER) == pytest.approx(math.log(0.99))

    def test_zero_error_is_hard_constraint(self, cross):
        fg = [1] * 8
        assert cross.emit(1, 1, 0.0, fg, False, False, ORDER) == 0.0
        assert cross.emit(3, 1, 0.0, fg, False, False, ORDER) == -math.inf

    def test_invalid_observed_raises(self, cross):
        with pytest.raises(InvalidGenotypeError):
            cross.emit(7, 1, 0.01, [1] * 8, False, False, ORDER)


class TestStep:
    def test_closed_forms(self, cross):
        r = 0.1
        assert cross.step(1, 1, r, False, False, ORDER) == pytest.approx(
            2 * math.log(0.9) - math.log(1.2))
        assert cross.step(1, 2, r, False, False, ORDER) == pytest.approx(
            math.log(0.1) + math.log(0.9) - math.log(1.2))
        assert cross.step(1, 3, r, False, False, ORDER) == pytest.approx(
            math.log(0.1) - math.log(2.0) - math.log(1.2))

    def test_symmetric(self, cross):
        for order in (ORDER, SHUFFLED):
            for r in (0.01, 0.1, 0.3):
                for gl in range(1, 9):
                    for gr in range(1, 9):
                        assert cross.step(gl, gr, r, False, False, order) == pytest.approx(
                            cross.step(gr, gl, r, False, False, order))

    def test_ordered_by_topology(self, cross):
        for r in (0.001, 0.05, 0.2, 0.45, 0.4999):
            same = cross.step(1, 1, r, False, False, ORDER)
            sib = cross.step(1, 2, r, False, False, ORDER)
            nonsib = cross.step(1, 3, r, False, False, ORDER)
            assert same >= sib >= nonsib

    def test_rows_sum_to_one(self, cross):
        for order in (ORDER, SHUFFLED):
            for r in (0.0, 0.02, 0.25, 0.5):
                for gl in range(1, 9):
                    total = sum(math.exp(cross.step(gl, gr, r, False, False, order))
                                for gr in range(1, 9))
                    assert total == pytest.approx(1.0)

    def test_tight_linkage(self, cross):
        assert cross.step(4, 4, 1e-12, False, False, ORDER) == pytest.approx(0.0, abs=1e-9)
        assert cross.step(1, 2, 1e-12, False, False, ORDER) < -25
        assert cross.step(1, 2, 0.0, False, False, ORDER) == -math.inf
        assert cross.step(1, 3, 0.0, False, False, ORDER) == -math.inf

    def test_independence_at_half(self, cross):
        """À r = 0.5, les trois branches valent -log(8) : transition uniforme."""
        values = [cross.step(1, g, 0.5, False, False, ORDER) for g in (1, 2, 3)]
        for v in values:
            assert v == pytest.approx(-math.log(8.0), abs=1e-9)

    def test_uses_cross_order(self, cross):
        r = 0.1
        sib = math.log(0.1) + math.log(0.9) - math.log(1.2)
        nonsib = math.log(0.1) - math.log(2.0) - math.log(1.2)
        assert cross.step(2, 5, r, False, False, SHUFFLED) == pytest.approx(sib)
        assert cross.step(1, 2, r, False, False, SHUFFLED) == pytest.approx(nonsib)

    def test_invalid_genotype_raises(self, cross):
        with pytest.raises(InvalidGenotypeError):
            cross.step(1, 9, 0.1, False, False, ORDER)


class TestFounderTopology:
    def test_classes(self):
        topo = founder_topology(ORDER)
        assert topo.shape == (8, 8)
        assert np.all(np.diag(topo) == IDENTICAL)
        assert topo[0, 1] == SIBLING
        assert topo[0, 2] == NONSIBLING
        assert (topo == IDENTICAL).sum() == 8
        assert (topo == SIBLING).sum() == 8
        assert (topo == NONSIBLING).sum() == 48

    def test_cached_and_read_only(self):
        topo = founder_topology(ORDER)
        assert founder_topology(tuple(ORDER)) is topo
        with pytest.raises(ValueError):
            topo[0, 0] = SIBLING

    def test_class_lookup(self):
        assert founder_topology_class(2, 5, SHUFFLED) == SIBLING
        assert founder_topology_class(5, 2, SHUFFLED) == SIBLING
        assert founder_topology_class(1, 2, SHUFFLED) == NONSIBLING
        assert founder_topology_class(3, 3, SHUFFLED) == IDENTICAL


class TestNrec:
    def test_nrec(self, cross):
        for gl in range(1, 9):
            for gr in range(1, 9):
                n = cross.nrec(gl, gr, False, False, ORDER)
                if gl == gr:
                    assert n == 0
                else:
                    assert n > 0


class TestMetadata:
    def test_state_space(self, cross):
        assert cross.possible_gen(False, False, ORDER) == list(range(1, 9))
        assert cross.ngen(False) == 8
        assert cross.nalleles() == 8
        assert cross.need_founder_geno() is True

    def test_geno_names(self, cross):
        names = cross.geno_names(list('ABCDEFGH'), False)
        assert names == ['AA', 'BB', 'CC', 'DD', 'EE', 'FF', 'GG', 'HH']
        with pytest.raises(ValueError):
            cross.geno_names(list('ABC'), False)

    def test_x_chr_not_handled(self, cross, caplog):
        assert cross.check_handle_x_chr(False) is True
        assert cross.check_handle_x_chr(True) is False
        assert "Chromosome X ignoré" in caplog.text


class TestValidationLevels:
    def test_off_skips_checks(self):
        cross = get_cross('riself8', VALIDATION_OFF)
        assert cross.init(9, False, False, ORDER) == pytest.approx(-math.log(8.0))

    @pytest.mark.skipif(not __debug__, reason="assertions désactivées (python -O)")
    def test_assert_only(self):
        cross = get_cross('riself8', VALIDATION_ASSERT)
        with pytest.raises(AssertionError):
            cross.nrec(0, 1, False, False, ORDER)

    @pytest.mark.skipif(not __debug__, reason="assertions désactivées (python -O)")
    def test_assert_only_observed(self):
        cross = get_cross('riself8', VALIDATION_ASSERT)
        with pytest.raises(AssertionError):
            cross.emit(7, 1, 0.01, [1] * 8, False, False, ORDER)

    def test_off_skips_observed_check(self):
        cross = get_cross('riself8', VALIDATION_OFF)
        assert cross.emit(7, 1, 0.01, [1] * 8, False, False, ORDER) == \
            pytest.approx(math.log(0.01))

    def test_shared_instances(self):
        assert get_cross('riself8') is get_cross('riself8')
        assert get_cross('riself8', VALIDATION_OFF) is not get_cross('riself8')

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_cross('f17')
        with pytest.raises(ValueError):
            get_cross('riself8', 'debug')
