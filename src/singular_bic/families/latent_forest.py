"""
Gaussian latent forests whose trees are single edges or latent stars.

A forest is encoded by a set partition of the observed variables: a block of
one variable is isolated, a block of two is an edge between them, and a block
of three or more is a star whose hub is a latent variable. Every structure on
``m`` variables is a model, so the family has Bell(m) models, ordered by
dimension.

A forest F is nested in a forest G when every non-singleton block of F lies
inside a block of G and no two such blocks share a block of G (two trees of
F cannot be merged into one tree of G by zeroing parameters). This is not a
chain, so the poset is built as the Hasse diagram of that relation.

Learning coefficients are additive over the trees of the larger forest: m/2
for the variances, plus for each tree of G

* an edge: 1/2
* a star on |b| leaves containing a star of F: |b|/2
* a star containing an edge of F: (|b| - 1)/2
* a star containing nothing of F: |b|/4
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..config import get_settings
from ..exceptions import DimensionMismatchError
from ..models.forest import Structure, fit_latent_forest, partition_blocks
from ..poset import Poset
from ..schemas import LatentForestParams
from .base import BaseModelPoset, FitFunction, LearnCoef


def _set_partitions(items: Sequence[int]) -> Iterator[List[Tuple[int, ...]]]:
    if not items:
        yield []
        return
    first, rest = items[0], items[1:]
    for partition in _set_partitions(rest):
        yield [(first,)] + partition
        for idx, block in enumerate(partition):
            yield partition[:idx] + [(first,) + block] + partition[idx + 1:]


def block_dimension(block: Sequence[int]) -> int:
    """Parameters a tree adds on top of the variances: 0, 1 or |b|."""
    if len(block) == 1:
        return 0
    if len(block) == 2:
        return 1
    return len(block)


def forest_dimension(structure: Structure) -> int:
    num_variables = sum(len(block) for block in structure)
    return num_variables + sum(block_dimension(block) for block in structure)


def forest_structures(num_variables: int) -> List[Structure]:
    """Every forest structure on ``num_variables`` variables, simplest first."""
    structures = {
        tuple(sorted(tuple(sorted(block)) for block in partition))
        for partition in _set_partitions(list(range(num_variables)))
    }
    return sorted(structures, key=lambda s: (forest_dimension(s), s))


def forest_is_nested(super_structure: Structure, sub_structure: Structure) -> bool:
    """Whether ``sub_structure`` is a (singular) submodel of ``super_structure``."""
    home = {v: idx for idx, block in enumerate(super_structure) for v in block}
    used = set()
    for block in partition_blocks(sub_structure):
        target = home[block[0]]
        if any(home[v] != target for v in block) or target in used:
            return False
        used.add(target)
    return True


class LatentForests(BaseModelPoset):
    """
    Poset of all edge/star latent forests over ``num_covariates`` Gaussian variables.

    Args:
        num_covariates: Number of observed variables (at most 7, Bell(7) = 877 models)
        fit_fn: Optional replacement fit routine ``fit_fn(data, structure, **options)``
    """

    def __init__(self, num_covariates: int, fit_fn: Optional[FitFunction] = None):
        params = LatentForestParams(num_covariates=num_covariates)
        self.num_covariates = params.num_covariates

        structures = forest_structures(self.num_covariates)
        poset = Poset.from_relation(
            len(structures),
            lambda sup, sub: forest_is_nested(structures[sup - 1], structures[sub - 1]),
        )
        dimensions = [forest_dimension(s) for s in structures]
        super().__init__(poset, dimensions, structures, fit_fn)

    def get_structure(self, model: int) -> Structure:
        return self.get_complexity(model)

    def get_model(self, structure: Sequence[Sequence[int]]) -> int:
        """Model id of a structure given as blocks (singletons may be omitted)."""
        covered = {v for block in structure for v in block}
        blocks = [tuple(sorted(block)) for block in structure]
        blocks += [(v,) for v in range(self.num_covariates) if v not in covered]
        key = tuple(sorted(blocks))
        try:
            return self._complexities.index(key) + 1
        except ValueError:
            raise ValueError(f"{structure} is not a partition of the variables") from None

    def _validate_data(self, data: Any) -> Tuple[np.ndarray, int]:
        data, n_obs = super()._validate_data(data)
        if data.shape[1] != self.num_covariates:
            raise DimensionMismatchError(
                f"Data has {data.shape[1]} columns but the family was built "
                f"for {self.num_covariates} covariates"
            )
        return data, n_obs

    def _fit(self, model: int, data: np.ndarray, **fit_options) -> Dict:
        settings = get_settings()
        options = {'n_starts': settings.fa_n_starts, 'seed': settings.random_seed}
        options.update(fit_options)
        return fit_latent_forest(data, self.get_structure(model), **options)

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        sup = self.get_structure(super_model)
        sub_blocks = partition_blocks(self.get_structure(sub_model))
        lam = self.num_covariates / 2
        for block in partition_blocks(sup):
            inner = [b for b in sub_blocks if set(b) <= set(block)]
            if len(block) == 2:
                lam += 1 / 2
            elif not inner:
                lam += len(block) / 4
            elif len(inner[0]) == 2:
                lam += (len(block) - 1) / 2
            else:
                lam += len(block) / 2
        return LearnCoef(lam, 1)
