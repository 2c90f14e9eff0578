"""Company Website Resolver

Resolves a company's official website from its name by running a cascade of
candidate strategies (domain guessing, web search, profile and directory
mining) and arbitrating between them with confidence scoring and
cross-validation.
"""

__version__ = "0.1.0"
__description__ = "Resolve official company websites from company names"
