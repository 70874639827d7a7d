# backend/logic/platform.py

GFG = "gfg"
LEETCODE = "leetcode"
INTERVIEWBIT = "interviewbit"
UNKNOWN = "unknown"

# Checked in order, first hit wins
_DOMAIN_PATTERNS = (
    (GFG, ("geeksforgeeks.org", "practice.geeksforgeeks.org")),
    (LEETCODE, ("leetcode.com",)),
    (INTERVIEWBIT, ("interviewbit.com",)),
)

DISPLAY_NAMES = {
    GFG: "GFG",
    LEETCODE: "LeetCode",
    INTERVIEWBIT: "InterviewBit",
    UNKNOWN: "Unknown",
}

# Providers the sync engine can fetch from
SYNC_PROVIDERS = (GFG, LEETCODE)


def identify_platform(url) -> str:
    """Classify a question link into one of the known provider tags."""
    if not isinstance(url, str) or not url:
        return UNKNOWN
    lowered = url.lower()
    for provider, patterns in _DOMAIN_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return provider
    return UNKNOWN


def display_name(provider: str) -> str:
    return DISPLAY_NAMES.get(provider, provider)
