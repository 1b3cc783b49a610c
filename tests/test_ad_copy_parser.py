from bolt.services.ad_copy_parser import (
    format_email_line,
    parse_ad_copy,
    parse_variations,
    parse_visual_concepts,
    should_display,
    title_for,
)

CAROUSEL_VISUAL = """**Ratings:**
- **Concept 1:** Clarity 8, Impact 7
- **Concept 3:** Clarity 6, Impact 9

**Selected Concepts:**
- **Concept 3: Bold Numbers**
  **Visual Elements:** Large stat callouts
  **Layout:** Grid
- **Concept 1: Team Story**
  **Imagery:** Office photos"""


def test_titles_and_display_rules():
    assert title_for("LI / Carousel 2") == "LinkedIn Carousel Copies"
    assert title_for("Email 1") == "Email Copies"
    assert title_for("FB/IG All 2") == "Facebook/Instagram Copies"
    assert title_for("LI / Documents 2") == "LinkedIn Documents Copies"

    assert should_display("Email 1")
    assert should_display("Reddit All 2")
    assert not should_display("LI / Carousel 1")
    assert not should_display("G / Search 1")


def test_parse_variations_keeps_known_non_empty_keys():
    variations = parse_variations(
        {
            "G / Search 2": "<ad_copy>Plain line one\nPlain line two</ad_copy>",
            "Unknown Key": "<ad_copy>ignored</ad_copy>",
            "Reddit All 2": "   ",
            "Twitter All 2": {"not": "a string"},
        }
    )
    assert [variation["key"] for variation in variations] == ["G / Search 2"]
    assert variations[0]["adCopy"] == {"format": "lines", "lines": ["Plain line one", "Plain line two"]}
    assert variations[0]["visualConcepts"] is None


def test_pipe_table_skips_separator_and_short_rows():
    parsed = parse_ad_copy(
        "Intro text\n| Element | Copy |\n|---|---|\n| Headline | Save time |\n| orphan |\n| Body | Try it free |"
    )
    assert parsed["format"] == "table"
    assert parsed["headers"] == ["Element", "Copy"]
    assert parsed["rows"] == [["Headline", "Save time"], ["Body", "Try it free"]]


def test_linkedin_conversation_sections():
    text = (
        "## LinkedIn Conversation Ad Content - Variation A\n"
        "### Opening Message\n"
        "Hi there\n"
        "#### Buttons\n"
        "1. Learn more\n"
        "2. Book a demo\n"
        "## LinkedIn Conversation Ad Content - Variation B\n"
        "### Opening Message\n"
        "Hello again\n"
    )
    parsed = parse_ad_copy(text)
    assert parsed["format"] == "conversation"
    first, second = parsed["sections"]
    assert first["title"] == "LinkedIn Conversation Ad Content - Variation A"
    assert first["subsections"][0]["title"] == "Opening Message"
    assert first["subsections"][0]["content"] == [
        {"type": "text", "text": "Hi there"},
        {"type": "subheading", "text": "Buttons"},
        {"type": "listItem", "text": "Learn more"},
        {"type": "listItem", "text": "Book a demo"},
    ]
    assert second["subsections"][0]["content"] == [{"type": "text", "text": "Hello again"}]


def test_carousel_concepts_are_padded_and_sorted():
    parsed = parse_visual_concepts("LI / Carousel 2", CAROUSEL_VISUAL)
    assert parsed["format"] == "carousel"
    assert parsed["ratings"] == [
        {"concept": "Concept 1", "ratings": "Clarity 8, Impact 7"},
        {"concept": "Concept 3", "ratings": "Clarity 6, Impact 9"},
    ]
    titles = [concept["title"] for concept in parsed["concepts"]]
    assert titles == ["Concept 1: Team Story", "Concept 2", "Concept 3: Bold Numbers"]
    bold_numbers = parsed["concepts"][2]["details"]
    assert bold_numbers["name"] == "Bold Numbers"
    assert bold_numbers["Visual Elements"] == "Large stat callouts"
    assert bold_numbers["Layout"] == "Grid"
    assert bold_numbers["Imagery"] == ""


def test_single_image_concepts():
    text = (
        "Visual Concept 1: Dashboard hero\n"
        "- Visual: Product screenshot\n"
        "- Colors: Navy and white\n"
        "Visual Concept 2: Customer quote\n"
        "- Visual: Portrait photo\n"
    )
    parsed = parse_visual_concepts("LI / Single Image 2", text)
    assert parsed["concepts"] == [
        {
            "title": "Visual Concept 1: Dashboard hero",
            "details": {"Visual": "Product screenshot", "Colors": "Navy and white"},
        },
        {"title": "Visual Concept 2: Customer quote", "details": {"Visual": "Portrait photo"}},
    ]


def test_heading_sections_for_other_platforms():
    parsed = parse_visual_concepts("Reddit All 2", "### Concept A\n- Meme format\n- Bright colors\n### Concept B\n- Chart")
    assert parsed["sections"] == [
        {"title": "Concept A", "points": ["Meme format", "Bright colors"]},
        {"title": "Concept B", "points": ["Chart"]},
    ]


def test_email_lines_are_formatted():
    [variation] = parse_variations(
        {"Email 1": "<email>Subject: Save **10 hours**\n\nHi *there*, see [our demo](https://example.com/demo)</email>"}
    )
    assert variation["email"] == [
        {"type": "subject", "text": "Subject: Save **10 hours**"},
        {
            "type": "body",
            "html": 'Hi <em>there</em>, see <a href="https://example.com/demo">our demo</a>',
        },
    ]
    assert format_email_line("**bold**") == "<strong>bold</strong>"


def test_format_email_line_escapes_markup_and_unsafe_links():
    assert format_email_line("<script>x</script> & more") == "&lt;script&gt;x&lt;/script&gt; &amp; more"
    assert format_email_line("[click](javascript:steal)") == "click"
    assert format_email_line("[site](http://a.test/?q=1&r=2)") == '<a href="http://a.test/?q=1&amp;r=2">site</a>'
