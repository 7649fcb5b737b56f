"""
Singular BIC
============

Model selection for singular statistical models with the singular Bayesian
information criterion (sBIC) of Drton and Plummer.

This package provides:
- Posets of nested models (factor analyses, latent class models, Gaussian
  mixtures, reduced-rank regressions, Gaussian latent forests, or any
  user-supplied DAG) with learning coefficient bounds for nested pairs
- Memoized maximum likelihood fits shared across scoring calls
- BIC and sBIC scoring, with cheap re-scoring under a new penalty
- Simulation studies comparing the two criteria

Quick Start:
    from singular_bic import LatentClassAnalyses, score

    family = LatentClassAnalyses(num_states=2, num_variables=8, max_num_classes=5)
    result = score(family, data)
    print(result.table, result.selected_sbic)

    # New penalty, no refitting
    result = score(family, None, penalty=4.0)
"""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .engine import ScoreTable, score, singular_bic
from .exceptions import (DataNotSetError, DimensionMismatchError, FitFailureError,
                         InvalidModelIdError, InvalidPenaltyError, InvalidRelationError,
                         MalformedPosetError, SingularBICError)
from .families import (CustomModelPoset, FactorAnalyses, FamilyState,
                       GaussianMixtures, LatentClassAnalyses, LatentForests,
                       LearnCoef, ModelPoset, ReducedRankRegressions)
from .poset import Poset
from .simulation import run_replicates, tabulate_selections

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "ScoreTable",
    "score",
    "singular_bic",
    "SingularBICError",
    "MalformedPosetError",
    "DimensionMismatchError",
    "InvalidModelIdError",
    "InvalidRelationError",
    "InvalidPenaltyError",
    "DataNotSetError",
    "FitFailureError",
    "CustomModelPoset",
    "FactorAnalyses",
    "FamilyState",
    "GaussianMixtures",
    "LatentClassAnalyses",
    "LatentForests",
    "LearnCoef",
    "ModelPoset",
    "ReducedRankRegressions",
    "Poset",
    "run_replicates",
    "tabulate_selections",
]
