"""Lead generation providers."""

from outreach_flow.leadgen.apollo import ApolloLeadProvider, LeadProvider, LeadSearchResult

__all__ = ["ApolloLeadProvider", "LeadProvider", "LeadSearchResult"]
