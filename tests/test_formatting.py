import pytest

from app.services.mail.formatting import append_signature, format_reply_subject, reply_to_html
from app.services.mail.signatures import SignatureService


@pytest.mark.parametrize(
    "subject, expected",
    [
        ("Meeting notes", "Re: Meeting notes"),
        ("RE: Meeting notes", "RE: Meeting notes"),
        ("re: lunch", "re: lunch"),
        ("Report on re: budgeting", "Re: Report on re: budgeting"),
        ("", "Re: "),
        (None, "Re: "),
    ],
)
def test_format_reply_subject(subject, expected):
    assert format_reply_subject(subject) == expected


def test_reply_to_html_escapes_and_breaks_lines():
    html = reply_to_html("Hi <Bob> & team,\r\nSee you.\n\n")
    assert html == "Hi &lt;Bob&gt; &amp; team,<br />\nSee you."


def test_append_signature():
    assert append_signature("Thanks!\n", "Jane") == "Thanks!\n\nJane"
    assert append_signature("Thanks!\n\nJane", "Jane") == "Thanks!\n\nJane"
    assert append_signature("Thanks!", "") == "Thanks!"
    assert append_signature("Thanks!", None) == "Thanks!"
    assert append_signature("Jane will call you.", "Jane") == "Jane will call you.\n\nJane"


def test_signature_service_falls_back_to_default():
    service = SignatureService({"default": "Regards", "info": "Info Desk"})

    assert service.get("info") == "Info Desk"
    assert service.get("damian") == "Regards"
    assert SignatureService({}).get("info") == ""
