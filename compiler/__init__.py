"""
Campaign compiler: inputs, funding arithmetic, tree construction and
persistence of compiled campaigns.
"""
from .campaign_compiler import CampaignCompiler, compile_campaign
from .eligibility import Eligibility, check_eligibility
from .funding import CohortFunding, amount_from_share, check_budget, compute_cohort_funding
from .inputs import (
    CampaignInputs,
    CampaignParameters,
    ClaimantRow,
    CohortRow,
    load_inputs,
    read_claimants,
    read_cohorts,
)
from .models import CompiledCampaign, CompiledCohort, CompiledVault

__all__ = [
    "CampaignCompiler",
    "compile_campaign",
    "Eligibility",
    "check_eligibility",
    "CohortFunding",
    "amount_from_share",
    "check_budget",
    "compute_cohort_funding",
    "CampaignInputs",
    "CampaignParameters",
    "ClaimantRow",
    "CohortRow",
    "load_inputs",
    "read_claimants",
    "read_cohorts",
    "CompiledCampaign",
    "CompiledCohort",
    "CompiledVault",
]
