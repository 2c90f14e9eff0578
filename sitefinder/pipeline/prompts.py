"""
Search requests for each external stage.

Every instruction asks for a bare URL or the NOTFOUND sentinel so answers can
go straight through the candidate extractor.
"""

from typing import Sequence

from sitefinder.core.models import CompanyQuery
from sitefinder.filtering.extractor import NOT_FOUND_SENTINEL
from sitefinder.naming.normalizer import country_hint
from sitefinder.search.client import SearchRequest


ANSWER_FORMAT = (
    "Return ONLY one of these:\n"
    "- The full URL like https://www.example.com\n"
    f"- {NOT_FOUND_SENTINEL} (only if you truly cannot find the company's own website)\n\n"
    "No explanation. Just the URL or " + NOT_FOUND_SENTINEL + "."
)


def _employee_hint(query: CompanyQuery) -> str:
    if not query.employee_count_hint:
        return ""
    return f" with approximately {query.employee_count_hint} employees"


def _persistence(attempt: int) -> str:
    if attempt > 0:
        return ("Try multiple search queries if needed. Look at the search results "
                "carefully - the website is very likely to exist.\n\n")
    return ""


def official_site(query: CompanyQuery, attempt: int = 0) -> SearchRequest:
    phrase = f"{query.name} official website"
    instruction = (
        f'You MUST perform a web search to find the official website URL for this company: '
        f'"{query.name}"{_employee_hint(query)}.\n\n'
        f'Search the web for "{phrase}" and look through the results for the '
        f"company's own homepage.\n"
        f"{_persistence(attempt)}"
        f"{ANSWER_FORMAT}"
    )
    return SearchRequest(query=phrase, instruction=instruction)


def name_search(query: CompanyQuery, attempt: int = 0) -> SearchRequest:
    phrase = f"{query.name} company"
    instruction = (
        f'Search the web for "{phrase}" and find the homepage of the company '
        f'"{query.name}"{_employee_hint(query)}.\n'
        "Ignore news articles, social profiles and directory listings; only the "
        "company's own domain counts.\n"
        f"{_persistence(attempt)}"
        f"{ANSWER_FORMAT}"
    )
    return SearchRequest(query=phrase, instruction=instruction)


def linkedin_profile(query: CompanyQuery, attempt: int = 0) -> SearchRequest:
    phrase = f"site:linkedin.com/company {query.name}"
    instruction = (
        f'Search LinkedIn company pages for "{query.name}"{_employee_hint(query)} '
        f'(for example "{phrase}").\n'
        'Open the matching company profile and read its listed "Website" field. '
        "Return that website, NOT the LinkedIn profile URL itself.\n"
        f"{_persistence(attempt)}"
        f"{ANSWER_FORMAT}"
    )
    return SearchRequest(query=phrase, instruction=instruction)


def directory_lookup(query: CompanyQuery, attempt: int = 0) -> SearchRequest:
    phrase = f"{query.name} crunchbase OR bloomberg OR zoominfo company profile"
    instruction = (
        f'Look up "{query.name}"{_employee_hint(query)} in business directories such as '
        "Crunchbase, Bloomberg, ZoomInfo, Dun & Bradstreet or OpenCorporates.\n"
        "From the company profile, extract the company's OWN website. Never return "
        "the directory's URL.\n"
        f"{_persistence(attempt)}"
        f"{ANSWER_FORMAT}"
    )
    return SearchRequest(query=phrase, instruction=instruction)


def last_resort(query: CompanyQuery, attempt: int = 0) -> SearchRequest:
    country = country_hint(query.name)
    location = f" in {country}" if country else ""
    phrase = f"{query.name}{(' ' + country) if country else ''} homepage"
    instruction = (
        f'Find any website that belongs to the company "{query.name}"{location}'
        f"{_employee_hint(query)}.\n"
        "Try several different searches (abbreviations, product names, the name "
        "without its legal suffix). An imperfect but plausible match is acceptable.\n"
        f"{ANSWER_FORMAT}"
    )
    return SearchRequest(query=phrase, instruction=instruction)


def judgment(query: CompanyQuery, candidates: Sequence[str]) -> SearchRequest:
    listing = "\n".join(f"{index}. {url}" for index, url in enumerate(candidates, 1))
    instruction = (
        f'Which of these websites is the official website of the company '
        f'"{query.name}"{_employee_hint(query)}?\n\n'
        f"{listing}\n\n"
        "Answer with exactly one URL from the list, or "
        f"{NOT_FOUND_SENTINEL} if none of them is acceptable."
    )
    return SearchRequest(query=query.name, instruction=instruction, use_web_search=False)
