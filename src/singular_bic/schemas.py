"""
Pydantic schemas for the structural parameters of each model family.

A family is constructed from structural parameters only (no data, no
penalty). These schemas validate them up front so that a bad value fails at
construction time with a ``pydantic.ValidationError`` rather than deep inside
a fit.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FamilyParams(BaseModel):
    """Common configuration for all family parameter schemas."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class FactorAnalysesParams(FamilyParams):
    """Parameters for a poset of factor analysis models."""
    num_covariates: int = Field(ge=1, description="Number of observed variables")
    max_num_factors: int = Field(ge=0, description="Largest number of factors")

    @field_validator("max_num_factors")
    @classmethod
    def _dimension_grows(cls, value, info):
        # dim(k) = (k + 1) m - k (k - 1) / 2 drops once k exceeds m + 1
        m = info.data.get("num_covariates")
        if m is not None and value > m + 1:
            raise ValueError(
                f"max_num_factors={value} exceeds num_covariates + 1 = {m + 1}; "
                "model dimension would decrease with more factors"
            )
        return value


class LatentClassParams(FamilyParams):
    """Parameters for a poset of latent class models."""
    num_states: tuple[int, ...] = Field(min_length=1, description="Categories per variable")
    max_num_classes: int = Field(ge=1, description="Largest number of latent classes")
    phi: Optional[float] = Field(default=None, gt=0, description="Dirichlet shape of class weights")

    @field_validator("num_states")
    @classmethod
    def _at_least_two_states(cls, value):
        if any(s < 2 for s in value):
            raise ValueError("every variable needs at least two states")
        return value


class GaussianMixtureParams(FamilyParams):
    """Parameters for a poset of Gaussian mixture models."""
    dim: int = Field(ge=1, description="Dimension of the observations")
    max_num_components: int = Field(ge=1, description="Largest number of components")
    phi: Optional[float] = Field(default=None, gt=0, description="Dirichlet shape of mixture weights")


class ReducedRankParams(FamilyParams):
    """Parameters for a poset of reduced-rank regression models."""
    num_covariates: int = Field(ge=1, description="Number of covariates (M)")
    num_responses: int = Field(ge=1, description="Number of responses (N)")
    max_rank: int = Field(ge=0, description="Largest coefficient rank")

    @field_validator("max_rank")
    @classmethod
    def _rank_fits(cls, value, info):
        m = info.data.get("num_covariates")
        n = info.data.get("num_responses")
        if m is not None and n is not None and value > min(m, n):
            raise ValueError("max_rank cannot exceed min(num_covariates, num_responses)")
        return value


class LatentForestParams(FamilyParams):
    """Parameters for a poset of Gaussian latent forest models."""
    num_covariates: int = Field(ge=1, le=7, description="Number of observed variables")
