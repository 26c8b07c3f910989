"""
Extract Application Prompt - classify an email and extract application fields
"""

# ATS platforms the model must not report as the hiring company
ATS_PLATFORMS = (
    "Greenhouse",
    "Lever",
    "Workday",
    "Myworkday",
    "Jobvite",
    "Ashbyhq",
    "iCIMS",
    "SmartRecruiters",
    "Workable",
    "Taleo",
)


def truncate_body(body: str, max_chars: int = 2000) -> str:
    """Keep only the first max_chars characters of an email body."""
    body = body or ""
    if len(body) > max_chars:
        return body[:max_chars] + "\n... [TRUNCATED]"
    return body


def build_extract_application_prompt(
    sender: str, subject: str, body: str, max_chars: int = 2000
) -> str:
    """
    Build the classify-and-extract prompt for one email.

    Args:
        sender: Email From header
        subject: Email subject line
        body: Email body text (truncated to max_chars)
        max_chars: Maximum characters of body to include

    Returns:
        Formatted prompt string
    """
    platforms = ", ".join(f'"{p}"' for p in ATS_PLATFORMS)

    return f"""You are an expert at analyzing job application emails.

Analyze this email and determine:
1. Is it about one of the recipient's own job applications? (true/false)
2. If yes, extract: company name, job title, application status, location

Email From: {sender}
Email Subject: {subject}
Email Body:
---
{truncate_body(body, max_chars)}
---

Rules for classification:
- is_job_related: true if this is about an application, interview, offer, or rejection
- is_job_related: false if this is marketing, a newsletter, a job alert digest, spam, or unrelated

Rules for extraction (only if is_job_related is true):
- company: The actual hiring company, NOT an ATS platform such as {platforms}
- title: The COMPLETE job title. If not found in the email, use "Not specified"
- status: Must be exactly one of "Applied", "Interview", "Offer", "Rejected"
  * "Applied" = application received or confirmed
  * "Interview" = invitation to interview or to schedule a call
  * "Offer" = job offer
  * "Rejected" = application declined or not moving forward
- location: City/state if mentioned, "Remote" for remote work, otherwise "Not specified"

Return a JSON object with exactly these keys:
{{"is_job_related": true, "company": "Acme", "title": "Senior Engineer", "status": "Interview", "location": "Remote"}}

For emails that are not job-related:
{{"is_job_related": false, "company": "", "title": "", "status": "", "location": ""}}

Return ONLY the JSON object, no other text."""
