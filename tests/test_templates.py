import pytest

from booking_api.newsletter.exceptions import TemplateRenderError
from booking_api.newsletter.schemas import NewsletterTemplate, TemplateContent, TemplateVariable
from booking_api.newsletter.templates import render_template, substitute

def _template(**overrides):
    data = dict(
        name="Monthly digest",
        category="digest",
        created_by="33333333-3333-4333-8333-333333333333",
        content=TemplateContent(
            html="<h1>Hi {{name}}</h1><a href='{{ link }}'>{{cta}}</a> {{unknown}}",
            text="Hi {{name}}",
            css="h1 { color: red; }",
        ),
        variables=[
            TemplateVariable(name="name", type="text", required=True),
            TemplateVariable(name="link", type="url", default_value="https://example.com"),
            TemplateVariable(name="cta", type="text", default_value="Read more"),
        ],
    )
    data.update(overrides)
    return NewsletterTemplate(**data)

def test_values_and_defaults_are_substituted():
    rendered = render_template(_template(), {"name": "Ada"})

    assert rendered["html"].startswith("<style>h1 { color: red; }</style>")
    assert "<h1>Hi Ada</h1>" in rendered["html"]
    assert "href='https://example.com'" in rendered["html"]
    assert "Read more" in rendered["html"]
    assert rendered["text"] == "Hi Ada"

def test_unknown_placeholders_are_left_alone():
    rendered = render_template(_template(), {"name": "Ada"})
    assert "{{unknown}}" in rendered["html"]

def test_all_problems_are_reported_together():
    template = _template(variables=[
        TemplateVariable(name="name", type="text", required=True),
        TemplateVariable(name="count", type="number"),
        TemplateVariable(name="link", type="url"),
        TemplateVariable(name="day", type="date"),
    ])

    with pytest.raises(TemplateRenderError) as exc:
        render_template(template, {"count": "many", "link": "ftp://x", "day": "tomorrow"})

    assert exc.value.errors == [
        "Variable 'name' is required",
        "Variable 'count' must be a number",
        "Variable 'link' must be an http(s) URL",
        "Variable 'day' must be an ISO date",
    ]

def test_substitute_handles_missing_text():
    assert substitute(None, {"a": "b"}) is None
    assert substitute("{{a}}-{{ b }}", {"a": "1", "b": "2"}) == "1-2"

@pytest.mark.parametrize("kind, value", [
    ("date", "2024-01-01garbage"),
    ("date", "2024-13-01"),
    ("number", "nan"),
    ("number", "inf"),
    ("number", "-Infinity"),
])
def test_whole_value_must_fit_the_type(kind, value):
    template = _template(variables=[TemplateVariable(name="v", type=kind, required=True)])

    with pytest.raises(TemplateRenderError):
        render_template(template, {"v": value})

@pytest.mark.parametrize("kind, value", [
    ("date", "2024-01-01"),
    ("date", "2024-01-01T09:30:00"),
    ("number", "12.5"),
    ("number", 3),
])
def test_well_formed_values_are_accepted(kind, value):
    template = _template(variables=[TemplateVariable(name="v", type=kind, required=True)])

    render_template(template, {"v": value})
