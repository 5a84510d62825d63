from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from atelier.core.copywriting import (
    build_copy_prompt,
    build_name_prompt,
    clean_design_name,
    format_sales_text,
    readable_key,
    trend_level,
)
from atelier.core.errors import InferenceError
from atelier.core.ontology import (
    build_attribute_schema,
    clamp_score,
    extract_ontology_attributes,
    parse_json_object,
    round_half_up,
    validate_attributes,
)
from atelier.core.prompting import (
    PromptComponents,
    assemble_prompts,
    build_fallback_components,
    build_system_prompt,
    extract_product_type,
    model_profile,
    photography_category,
    preprocess_product_data,
)


# ----------------------------------------------------------------------
# ontology
# ----------------------------------------------------------------------
def test_schema_flattens_ontology_and_validates_responses():
    ontology = {
        "Dress": {"color": ["red", "blue"], "neckline": ["v", "round"]},
        "Shirt": {"collar": ["button-down"]},
    }
    schema = build_attribute_schema(ontology)

    assert schema.required == ["color", "neckline", "collar"]
    assert schema.properties["color"].allowed == ["red", "blue"]
    assert extract_ontology_attributes(ontology) == ["collar", "color", "neckline"]

    raw = parse_json_object('```json\n{"color": "red", "neckline": "v", "collar": "button-down", "extra": 1}\n```')
    assert validate_attributes(raw, schema) == {"color": "red", "neckline": "v", "collar": "button-down"}

    with pytest.raises(InferenceError):
        validate_attributes({"color": "red"}, schema)


def test_unusable_model_responses_raise():
    with pytest.raises(InferenceError):
        parse_json_object("")
    with pytest.raises(InferenceError):
        parse_json_object("not json")
    with pytest.raises(InferenceError):
        parse_json_object("[1, 2]")


def test_clamp_score():
    assert clamp_score(150) == 100
    assert clamp_score(-4) == 0
    assert clamp_score("81.6") == 82
    assert clamp_score(None, default=7) == 7
    assert clamp_score(72.5) == 73
    assert round_half_up(72.5) == 73
    assert round_half_up(64.4) == 64


# ----------------------------------------------------------------------
# image prompts
# ----------------------------------------------------------------------
def test_product_type_and_category_detection():
    assert extract_product_type({"article_product_type": "Blazer", "ontology_Dress_color": "red"}) == "Blazer"
    assert (
        extract_product_type(
            {"ontology_t-shirt_color": "red", "ontology_t-shirt_fit": "slim", "ontology_dress_neckline": "v"}
        )
        == "T-Shirt"
    )
    assert extract_product_type({}) == "Fashion Item"

    assert photography_category("Shoes", "Anything") == "footwear"
    assert photography_category(None, "Leather Handbag") == "accessories"
    assert photography_category("Unknown group", "Scented Cushion") == "non_wearable"
    assert photography_category(None, "Blouse") == "wearable"


def test_model_profile_requires_exact_segment():
    assert model_profile("Baby/Children").age_group == "child"
    assert model_profile("Menswear").descriptor == "an adult male model"
    assert model_profile("Children's Accessories").age_group == "adult"
    assert model_profile(None).descriptor == "an adult model"


def test_preprocess_merges_and_cleans_attributes():
    data = preprocess_product_data(
        locked={"article_product_type": "Trousers", "article_product_group": "Garment Lower body"},
        predicted={"ontology_Trousers_color": "navy", "ontology_Trousers_fit": "wide", "_targetSuccessScore": "90"},
        context={"article_customer_segment": "Ladieswear", "ontology_Trousers_color": "black"},
    )

    assert data.product_type == "Trousers"
    assert data.product_group == "Garment Lower body"
    assert data.photography_category == "wearable"
    assert data.model_profile.descriptor == "an adult female model"
    assert data.attributes == {"color": "navy", "fit": "wide"}


def test_fallback_uses_flat_lay_for_lower_body_garments():
    trousers = preprocess_product_data({"article_product_type": "Trousers"}, {"ontology_Trousers_color": "navy"})
    dress = preprocess_product_data({"article_product_type": "Dress"}, {"ontology_Dress_pattern": "floral"})

    trouser_prompts = assemble_prompts(build_fallback_components(trousers), source="fallback")
    dress_prompts = assemble_prompts(build_fallback_components(dress), source="fallback")

    assert trouser_prompts.front.startswith("Professional flat lay photography, overhead view of navy Trousers.")
    assert dress_prompts.front.startswith("Ghost mannequin fashion photography, front view of Dress with pattern: floral.")
    assert "an adult model wearing" in dress_prompts.model
    assert dress_prompts.source == "fallback"


def test_components_require_every_field():
    payload = {
        "productDescription": "red dress",
        "frontPrefix": "front",
        "backPrefix": "back",
        "modelPrefix": "model",
        "frontDetails": "fd",
        "backDetails": "bd",
        "modelDetails": "",
    }
    with pytest.raises(InferenceError):
        PromptComponents.from_payload(payload)

    payload["modelDetails"] = "md"
    prompts = assemble_prompts(PromptComponents.from_payload(payload))
    assert prompts.for_view("model").startswith("model red dress. md. Plain white studio background")


def test_system_prompt_enforces_model_profile():
    prompt = build_system_prompt("footwear", "a child model")

    assert "FOOTWEAR CATEGORY RULES" in prompt
    assert "This product requires a CHILD model." in prompt
    assert '"a child model"' in prompt


# ----------------------------------------------------------------------
# sales copy
# ----------------------------------------------------------------------
def test_copy_prompt_reflects_trend_level():
    assert trend_level(85) == "high-trend"
    assert trend_level(60) == "moderate-trend"
    assert trend_level(12) == "classic"
    assert readable_key("ontology_Dress_sleeve_length") == "sleeve length"
    assert readable_key("article_colourGroup") == "colour group"

    prompt = build_copy_prompt("Dress", [("ontology_Dress_color", "red")], 90, has_image=True)

    assert "- color: red" in prompt
    assert "TREND SCORE: 90/100 (This indicates high-trend appeal)" in prompt
    assert "IMAGE CONTEXT" in prompt
    assert "trending, high-demand design" in prompt
    assert "timeless" not in build_copy_prompt("Dress", [], 70)
    assert "timeless, versatile piece" in build_copy_prompt("Dress", [], 40)


def test_sales_text_markdown():
    text = format_sales_text(
        {
            "headline": "Summer in Full Bloom",
            "description": "A floral dress for long days.",
            "keyFeatures": ["Lightweight cotton", " ", "Midi length"],
            "stylingTips": "Pair with sandals.",
        }
    )

    assert text == (
        "## Summer in Full Bloom\n\nA floral dress for long days.\n\n"
        "**KEY FEATURES:**\n- Lightweight cotton\n- Midi length\n\n*STYLING: Pair with sandals.*"
    )
    with pytest.raises(InferenceError):
        format_sales_text({"headline": "Only a headline"})


def test_design_name_prompt_and_cleanup():
    prompt = build_name_prompt("Dress", {"_targetSuccessScore": "80"}, {"ontology_Dress_color": "red"})

    assert "Given Attributes:\n(none specified)" in prompt
    assert "AI-Predicted Attributes:\n- color: red" in prompt
    assert 'Do NOT include the word "Dress" in the name' in prompt

    assert clean_design_name("'Coastal Drift'") == "Coastal Drift"
    assert clean_design_name("   ") == "Unnamed Design"
    assert clean_design_name(None) == "Unnamed Design"
