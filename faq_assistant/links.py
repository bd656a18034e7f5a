import re
from typing import List

from faq_assistant.models import ExtractedLink, LinkExtraction, LinkType

URL_PATTERN = re.compile(
    r"(?:https?://|www\.)?[a-zA-Z0-9-]+(?:\.[a-zA-Z0-9-]+)+(?:/[^\s]*)?"
)

# Phrases in FAQ answers that refer to a link the text doesn't spell out.
VAGUE_REFERENCES = [
    (re.compile(r"using this form", re.I), "[Form link - visit hubermanlab.com/faq]"),
    (re.compile(r"through this form", re.I), "[Form link - visit hubermanlab.com/faq]"),
    (re.compile(r"complete this form", re.I), "[Form link - visit hubermanlab.com/faq]"),
    (re.compile(r"available here", re.I), "[Link - visit hubermanlab.com/faq]"),
    (re.compile(r"review these help articles", re.I), "[Help articles - visit support.supercast.com]"),
    (re.compile(r"Stanford lab website", re.I), "[Stanford lab - visit profiles.stanford.edu/andrew-huberman]"),
    (re.compile(r"join the Neural Network newsletter", re.I), "[Newsletter signup - visit hubermanlab.com]"),
    (re.compile(r"join our email list", re.I), "[Email signup - visit hubermanlab.com]"),
]


def _is_email_domain(answer: str, start: int) -> bool:
    return start > 0 and answer[start - 1] == "@"


def extract_links(answer: str) -> LinkExtraction:
    links: List[ExtractedLink] = []
    seen = set()

    for match in URL_PATTERN.finditer(answer):
        if _is_email_domain(answer, match.start()):
            continue
        text = match.group(0).rstrip(".,;!?)")
        host = re.sub(r"^https?://", "", text).split("/")[0]
        # Skip tokens like "e.g" and version numbers.
        if not re.search(r"[a-zA-Z]{2,}$", host):
            continue
        href = text if text.startswith("http") else f"https://{text}"
        if href in seen:
            continue
        seen.add(href)
        links.append(ExtractedLink(type=LinkType.URL, text=text, href=href))

    for pattern, placeholder in VAGUE_REFERENCES:
        if placeholder in seen or not pattern.search(answer):
            continue
        seen.add(placeholder)
        links.append(ExtractedLink(type=LinkType.PLACEHOLDER, text=placeholder))

    return LinkExtraction(has_links=bool(links), links=links)
