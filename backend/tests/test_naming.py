"""Tests for upload filename sanitising."""

import re

import pytest

from cad_showcase.conversion.naming import (
    output_base_name,
    safe_extension,
    safe_filename_segment,
    to_slug,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Bracket", "bracket"),
        ("Gear Box (v2)", "gear-box-v2"),
        ("Crème brûlée", "creme-brulee"),
        ("--part--", "part"),
        ("a.b.c", "a-b-c"),
    ],
)
def test_safe_filename_segment(value, expected):
    assert safe_filename_segment(value) == expected


def test_safe_filename_segment_falls_back_to_random_token():
    token = safe_filename_segment("***")
    assert re.fullmatch(r"[0-9a-z]{4}", token)


def test_to_slug():
    assert to_slug("My First Showcase!") == "my-first-showcase"
    assert re.fullmatch(r"[0-9a-z]{8}", to_slug("!!!"))


def test_safe_extension():
    assert safe_extension("part.STEP") == ".step"
    assert safe_extension("part") == ""
    assert safe_extension("part.st p") == ""


def test_output_base_name():
    assert output_base_name("Turbine Blade.igs") == "turbine-blade"
    assert output_base_name("???.step", "Jet Engine") == "jet-engine"
