"""
Prompt construction for resume extraction.

Pure functions: given resume text or a rendered page image plus the empty
ResumeData template, build the exact chat message list sent to the LLM.
"""

import json
from typing import Any

DEFAULT_MAX_PROMPT_CHARS = 50_000


# =============================================================================
# System Prompts
# =============================================================================

TEXT_SYSTEM_PROMPT = (
    "You are an expert resume parser. Your task is to extract all available "
    "information from the resume text or OCR data and populate the JSON structure. "
    "Extract every piece of information you can find - names, emails, work experience, "
    "education, skills, etc. Do NOT leave fields empty if the information exists in "
    "the resume. Only leave fields empty if the information is truly not present in "
    "the resume."
)

IMAGE_SYSTEM_PROMPT = (
    "You are an expert resume parser. Your task is to extract all available "
    "information from the resume image using OCR and populate the JSON structure. "
    "Extract every piece of information you can find - names, emails, work experience, "
    "education, skills, etc. Do NOT leave fields empty if the information exists in "
    "the resume. Only leave fields empty if the information is truly not present in "
    "the resume."
)

EXTRACTION_INSTRUCTIONS = """Instructions:
1. Extract the person's name and split it into name and surname fields
2. Extract email address and phone number if present
3. Extract all work experience with job titles, companies, dates, and descriptions
4. Extract all education with schools, degrees, majors, and dates
5. Extract all skills listed
6. Extract licenses, languages, achievements, publications, and honors if mentioned
7. For dates: extract startMonth (1-12), startYear (number), endMonth (number or null), endYear (number or null), current (boolean)
8. For employmentType use: FULL_TIME, PART_TIME, INTERNSHIP, or CONTRACT (infer if not explicitly stated)
9. For locationType use: ONSITE, REMOTE, or HYBRID (infer if not explicitly stated)
10. For degree use: HIGH_SCHOOL, ASSOCIATE, BACHELOR, MASTER, or DOCTORATE (infer based on common degree names)
11. For language level use: BEGINNER, INTERMEDIATE, ADVANCED, or NATIVE (infer if not explicitly stated)
12. Extract professional summary/objective if present
13. Extract LinkedIn, website, location (country, city), and work preferences if mentioned
14. Return dates in YYYY-MM format where applicable (for achievements and honors)
15. Use ISO8601 format for publicationDate

IMPORTANT: Do not return empty strings or empty arrays unless the information is truly not in the resume. Extract everything you can find!"""

TEXT_PREAMBLE = (
    "Extract all information from the following resume data and populate the JSON "
    "structure. Fill in ALL fields with actual data from the resume. Only leave fields "
    "empty if the information is not available in the resume."
)

IMAGE_PREAMBLE = (
    "Extract all information from this resume image and populate the JSON structure. "
    "Fill in ALL fields with actual data from the resume. Only leave fields empty if "
    "the information is not available in the resume."
)


# =============================================================================
# Builders
# =============================================================================


def truncate_resume_text(text: str, limit: int = DEFAULT_MAX_PROMPT_CHARS) -> str:
    """Cut resume text to at most ``limit`` characters."""
    return text[:limit]


def _schema_block(template: dict[str, Any]) -> str:
    return (
        "Return a complete JSON object matching this schema with all available "
        f"data extracted:\n{json.dumps(template, indent=2)}"
    )


def build_text_messages(
    text: str,
    template: dict[str, Any],
    max_chars: int = DEFAULT_MAX_PROMPT_CHARS,
) -> list[dict[str, Any]]:
    """
    Build the message list for a text-based resume.

    Args:
        text: Extracted resume text; truncated to ``max_chars``.
        template: Empty ResumeData template.
        max_chars: Character budget for the resume text.

    Returns:
        System and user messages.
    """
    resume_text = truncate_resume_text(text, max_chars)
    user_content = (
        f"{TEXT_PREAMBLE}\n\n"
        f"Resume content:\n{resume_text}\n\n"
        f"{_schema_block(template)}\n\n"
        f"{EXTRACTION_INSTRUCTIONS}"
    )
    return [
        {"role": "system", "content": TEXT_SYSTEM_PROMPT},
        {"role": "user", "content": user_content},
    ]


def build_image_messages(
    image_data_url: str,
    template: dict[str, Any],
) -> list[dict[str, Any]]:
    """
    Build the message list for a scanned resume.

    Args:
        image_data_url: ``data:image/png;base64,...`` URL of the first page.
        template: Empty ResumeData template.

    Returns:
        System message and a user message with text and image parts.
    """
    prompt = (
        f"{IMAGE_PREAMBLE}\n\n"
        f"{_schema_block(template)}\n\n"
        f"{EXTRACTION_INSTRUCTIONS}"
    )
    return [
        {"role": "system", "content": IMAGE_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": image_data_url},
                },
            ],
        },
    ]
