import pytest

from eduvox.services import prompt_registry


def test_inventory_lists_every_prompt_with_version():
    inventory = prompt_registry.get_prompt_inventory()

    assert [item["id"] for item in inventory] == ["my_study_path", "edvisor_pathway", "uniguide_analysis"]
    assert all(item["version"] == prompt_registry.PROMPT_REGISTRY_VERSION for item in inventory)


def test_every_prompt_asks_for_strict_json_in_the_pathway_shape():
    for prompt_id in ("my_study_path", "edvisor_pathway", "uniguide_analysis"):
        rendered = prompt_registry.build_prompt(
            prompt_id,
            request={"preferredCountry": "Germany"},
            country="Germany",
            course="Physics",
            academic_level="Master",
            request_text="help",
        )
        assert "Return ONLY valid JSON" in rendered
        assert '"steps": [' in rendered
        assert "{{" not in rendered


def test_missing_values_render_as_not_provided_and_braces_are_neutralized():
    rendered = prompt_registry.build_edvisor_prompt("Canada", "Law {hack}", "", "")

    assert "Law (hack)" in rendered
    assert "not provided" in rendered


def test_unknown_prompt_id_raises_key_error():
    with pytest.raises(KeyError):
        prompt_registry.build_prompt("missing")


def test_metadata_matches_inventory():
    metadata = prompt_registry.get_prompt_metadata()

    assert metadata["count"] == len(prompt_registry.get_prompt_inventory())
    assert metadata["version"] == prompt_registry.PROMPT_REGISTRY_VERSION
