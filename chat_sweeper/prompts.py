"""
Category labels and the classification prompt
"""

from typing import List, Optional

from chat_sweeper.models import DEFAULT_CATEGORY


TITLES_PLACEHOLDER = "{{TITLES}}"

SYSTEM_PROMPT = "You are a helpful assistant that categorizes conversation titles."

CATEGORIES = [
    "Technology & Software Development",
    "Finance & Investments",
    "Gaming & Entertainment",
    "Food & Cooking",
    "Lifestyle",
    "Home Improvement",
    "Automotive",
    "Legal",
    "Meeting Summaries",
    "Education & Learning",
    "Health & Wellness",
    "Travel & Leisure",
    "Business & Management",
    "Arts, Culture & Entertainment",
    "Sports & Recreation",
    "News & Current Affairs",
]

ALL_CATEGORIES = CATEGORIES + [DEFAULT_CATEGORY]

_category_lines = "\n".join(f"  - {category}" for category in CATEGORIES)

DEFAULT_PROMPT = f"""
  I have a list of conversation titles, and I need you to categorize each title into one of the following categories. If a title doesn't clearly fit into any of these categories, please place it under '{DEFAULT_CATEGORY}.' If a title might belong to multiple categories, choose the category that best represents its main subject.

  Categories:
{_category_lines}
  - {DEFAULT_CATEGORY} (for titles that are ambiguous or don't clearly fit into any of the above)

  Here are the conversation titles:
  {TITLES_PLACEHOLDER}

  Please respond with a JSON array where each element contains:
  1. "title": The original conversation title
  2. "category": The category you've assigned (must be exactly one of the categories listed above)

  Example format:
  [
    {{"title": "Create Electron App", "category": "Technology & Software Development"}},
    {{"title": "Dinner Ideas with Ground Beef", "category": "Food & Cooking"}}
  ]

  Only respond with the JSON array, no additional text.
  """


def number_titles(titles: List[str]) -> str:
    """Render titles as a 1-indexed numbered list"""
    return "\n".join(f"{index}. {title}" for index, title in enumerate(titles, start=1))


def build_prompt(titles: List[str], template: Optional[str] = None) -> str:
    """Substitute the numbered titles into the template (first placeholder only)"""
    template = template or DEFAULT_PROMPT
    return template.replace(TITLES_PLACEHOLDER, number_titles(titles), 1)
