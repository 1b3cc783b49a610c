import json

import pytest

from bolt.services.response_content import NO_RESPONSE_CONTENT, extract_response_content


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        ("plain reply", "plain reply"),
        ([{"output": "from output"}], "from output"),
        ([{"response": "from response", "output": ""}], "from response"),
        ([{"other": 1}, "two"], '{"other": 1}\ntwo'),
        ({"text": "from text"}, "from text"),
        ({"response": "first", "content": "second"}, "first"),
        (None, NO_RESPONSE_CONTENT),
        ([], NO_RESPONSE_CONTENT),
        ({}, NO_RESPONSE_CONTENT),
    ],
)
def test_extract_response_content(data, expected):
    assert extract_response_content(data) == expected


def test_unknown_object_is_pretty_printed():
    data = {"rows": [1, 2]}
    assert extract_response_content(data) == json.dumps(data, indent=2)
