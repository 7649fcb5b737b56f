"""
Model families scored by the singular BIC engine.

Available Families:
- FactorAnalyses: factor analysis models, chain over the number of factors
- LatentClassAnalyses: latent class models for categorical data
- GaussianMixtures: full-covariance Gaussian mixtures
- ReducedRankRegressions: reduced-rank regressions, chain over the rank
- LatentForests: Gaussian latent forests (a general DAG of models)
- CustomModelPoset: any caller-supplied poset
"""

from .base import BaseModelPoset, FamilyState, LearnCoef, ModelPoset
from .custom import CustomModelPoset
from .factor import FactorAnalyses, factor_analysis_dimension
from .latent_class import LatentClassAnalyses, mixture_learning_coefficient
from .latent_forest import (LatentForests, forest_dimension, forest_is_nested,
                            forest_structures)
from .mixture import GaussianMixtures
from .reduced_rank import (ReducedRankRegressions, reduced_rank_dimension,
                           reduced_rank_learning_coefficient)

__all__ = [
    'BaseModelPoset',
    'FamilyState',
    'LearnCoef',
    'ModelPoset',
    'CustomModelPoset',
    'FactorAnalyses',
    'factor_analysis_dimension',
    'LatentClassAnalyses',
    'mixture_learning_coefficient',
    'LatentForests',
    'forest_dimension',
    'forest_is_nested',
    'forest_structures',
    'GaussianMixtures',
    'ReducedRankRegressions',
    'reduced_rank_dimension',
    'reduced_rank_learning_coefficient',
]
