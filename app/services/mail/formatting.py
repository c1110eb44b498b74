import html
from typing import Optional


def format_reply_subject(original_subject: Optional[str]) -> str:
    """Prefix ``Re: `` unless the subject already starts with it in any case."""
    subject = (original_subject or "").strip()
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def reply_to_html(text: str) -> str:
    """Escape the plain-text reply and turn line breaks into ``<br />`` tags."""
    escaped = html.escape(text.rstrip(), quote=True)
    escaped = escaped.replace("\r\n", "\n").replace("\r", "\n")
    return escaped.replace("\n", "<br />\n")


def append_signature(text: str, signature: Optional[str]) -> str:
    """Append the signature after a blank line unless the text already ends with it."""
    body = text.strip()
    signature = (signature or "").strip()
    if not signature or body.endswith(signature):
        return body
    return f"{body}\n\n{signature}"
