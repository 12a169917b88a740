"""Tests du décodeur forward-backward de référence."""

import numpy as np
import pytest

from crossprob.cross import InvalidGenotypeError
from crossprob.hmm import ForwardBackward, calc_genoprob
from crossprob.registry import get_cross

ORDER = [1, 2, 3, 4, 5, 6, 7, 8]


@pytest.fixture
def riself8_data():
    rng = np.random.default_rng(11)
    n_ind, n_mar = 6, 5
    founder_geno = rng.choice([1, 3], size=(8, n_mar))
    genotypes = rng.choice([0, 1, 3], size=(n_ind, n_mar))
    cross_info = np.array([ORDER, [2, 5, 1, 7, 3, 8, 4, 6]] * 3)
    return genotypes, founder_geno, cross_info


class TestForwardBackward:
    def test_no_data(self):
        fb = ForwardBackward(get_cross('riself8'), np.zeros((3, 4), dtype=int),
                             founder_geno=np.ones((8, 4), dtype=int),
                             cross_info=np.array([ORDER] * 3))
        rf = [0.1, 0.2, 0.05]
        assert fb.loglik(rf) == pytest.approx(0.0, abs=1e-10)
        assert fb.genoprob(rf) == pytest.approx(np.full((3, 8, 4), 1 / 8))

    def test_pair_posteriors(self, riself8_data):
        genotypes, founder_geno, cross_info = riself8_data
        fb = ForwardBackward(get_cross('riself8'), genotypes, founder_geno=founder_geno,
                             cross_info=cross_info, error_prob=0.01)
        rf = np.array([0.05, 0.1, 0.2, 0.02])
        gamma, ll = fb.run(rf)

        assert gamma.shape == (4, 6, 8, 8)
        assert gamma.sum(axis=(2, 3)) == pytest.approx(np.ones((4, 6)))
        assert ll == pytest.approx(fb.loglik(rf))
        assert ll < 0

        probs = fb.genoprob(rf)
        for t in range(4):
            assert gamma[t].sum(axis=2) == pytest.approx(probs[:, :, t])
            assert gamma[t].sum(axis=1) == pytest.approx(probs[:, :, t + 1])

    def test_groups_by_cross_order(self, riself8_data):
        genotypes, founder_geno, cross_info = riself8_data
        fb = ForwardBackward(get_cross('riself8'), genotypes, founder_geno=founder_geno,
                             cross_info=cross_info)
        assert len(fb.group_keys) == 2
        assert list(fb.group_of) == [fb.group_of[0], fb.group_of[1]] * 3
        assert fb.step_matrices([0.1] * 4).shape == (2, 4, 8, 8)

    def test_informative_markers(self):
        genotypes = np.array([[1, 1, 3], [3, 0, 3]])
        probs = calc_genoprob(get_cross('riself'), genotypes, [0.01, 0.01],
                              error_prob=1e-4)
        assert probs.shape == (2, 2, 3)
        assert probs[0, 0, 0] == pytest.approx(1.0, abs=1e-3)
        assert probs[1, 1, 1] == pytest.approx(1.0, abs=1e-3)

    def test_backcross_x(self):
        genotypes = np.array([[1, 3, 3], [1, 2, 2]])
        is_female = np.array([False, True])
        fb = ForwardBackward(get_cross('bc'), genotypes, is_x_chr=True, is_female=is_female)
        probs = fb.genoprob([0.1, 0.1])
        assert probs.shape == (2, 4, 3)
        # mâle : uniquement AY / BY ; femelle : uniquement AA / AB
        assert probs[0, :2] == pytest.approx(0.0)
        assert probs[1, 2:] == pytest.approx(0.0)
        assert probs.sum(axis=1) == pytest.approx(np.ones((2, 3)))

    def test_x_chr_fallback(self, caplog, riself8_data):
        genotypes, founder_geno, cross_info = riself8_data
        fb = ForwardBackward(get_cross('riself8'), genotypes, founder_geno=founder_geno,
                             is_x_chr=True, cross_info=cross_info)
        assert fb.is_x_chr is False
        assert "Chromosome X" in caplog.text

    def test_errors(self, riself8_data):
        genotypes, founder_geno, cross_info = riself8_data
        cross = get_cross('riself8')
        with pytest.raises(ValueError, match="founder_geno"):
            ForwardBackward(cross, genotypes, cross_info=cross_info)
        fb = ForwardBackward(cross, genotypes, founder_geno=founder_geno,
                             cross_info=cross_info)
        with pytest.raises(ValueError):
            fb.run([0.1, 0.1])
        bad = genotypes.copy()
        bad[0, 0] = 9
        with pytest.raises(InvalidGenotypeError):
            ForwardBackward(cross, bad, founder_geno=founder_geno, cross_info=cross_info)


class TestImpossibleData:
    """Avec error_prob = 0, une observation incompatible annule la vraisemblance."""

    def setup_method(self):
        self.fb = ForwardBackward(get_cross('riself8'), np.array([[1, 1, 1], [1, 3, 1]]),
                                  founder_geno=np.ones((8, 3), dtype=int),
                                  cross_info=np.array([ORDER] * 2), error_prob=0.0)

    def test_run_names_individuals(self):
        with pytest.raises(ValueError, match=r"1 individus \(2\)"):
            self.fb.run([0.1, 0.1])

    def test_loglik_and_genoprob(self):
        with pytest.raises(ValueError, match="Vraisemblance nulle"):
            self.fb.loglik([0.1, 0.1])
        with pytest.raises(ValueError, match="Vraisemblance nulle"):
            self.fb.genoprob([0.1, 0.1])

    def test_possible_data_unaffected(self):
        fb = ForwardBackward(get_cross('riself8'), np.array([[1, 1, 1]]),
                             founder_geno=np.ones((8, 3), dtype=int),
                             cross_info=np.array([ORDER]), error_prob=0.0)
        gamma, ll = fb.run([0.1, 0.1])
        assert ll == pytest.approx(0.0)
        assert np.all(np.isfinite(gamma))
