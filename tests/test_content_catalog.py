"""
Unit tests for the content catalog.

Tests sidekick/content/content_catalog.py: registration, validation and
lookup of classes, ancestries and backgrounds.
"""

import json

import pytest

from sidekick.content import ContentCatalog, load_builtin_content
from sidekick.content.builtin import HUMAN_DEFINITION, HUNTER_DEFINITION
from sidekick.data_models import AbilityDefinition, ResourceDefinition, ValueSpec
from sidekick.errors import ContentValidationError
from sidekick.traits.trait_models import (
    AbilityTrait,
    ChoiceTrait,
    ClassDefinition,
    ClassFeature,
    PickFeatureFromPoolTrait,
    ResourceTrait,
)


def single_trait_class(trait) -> ClassDefinition:
    return ClassDefinition(
        id="tester",
        name="Tester",
        features=[ClassFeature(id="f", level=1, name="Feature", traits=[trait])],
    )


class TestBuiltinContent:
    """Tests for the bundled content."""

    def test_classes_loaded(self, catalog):
        ids = {c.id for c in catalog.get_all_classes()}
        assert ids == {"hunter", "oathsworn", "commander"}

    def test_ancestries_and_backgrounds(self, catalog):
        assert catalog.get_ancestry("human").name == "Human"
        assert catalog.get_background("fearless").name == "Fearless"
        assert catalog.get_ancestry("elf") is None

    def test_feature_pool_lookup(self, catalog):
        pool = catalog.get_feature_pool("thrill-of-the-hunt-pool")
        assert pool is not None
        assert pool.get_feature("fleet-feet").name == "Fleet Feet"
        assert catalog.get_feature_pool("thrill-of-the-hunt-pool", class_id="oathsworn") is None

    def test_subclass_lookup(self, catalog):
        assert catalog.get_subclass("shadowpath").class_id == "hunter"
        assert catalog.get_subclass("oath-of-refuge", class_id="oathsworn").name == "Oath of Refuge"
        assert catalog.get_subclass("missing") is None

    def test_fills_given_catalog(self):
        catalog = ContentCatalog()
        assert load_builtin_content(catalog) is catalog
        assert catalog.get_class("hunter") is not None


class TestValidation:
    """Tests for rejecting malformed content at registration."""

    def test_unknown_formula_variable(self):
        trait = ResourceTrait(
            id="bad-resource",
            resource_definition=ResourceDefinition(
                id="bad", name="Bad", max_value=ValueSpec.formula("FOO + 1")
            ),
        )
        with pytest.raises(ContentValidationError, match="bad-resource"):
            ContentCatalog().register_class(single_trait_class(trait))

    def test_bad_dice_formula(self):
        trait = AbilityTrait(
            id="bad-ability",
            ability=AbilityDefinition(id="bad", name="Bad", dice_formula="1d6 + $"),
        )
        with pytest.raises(ContentValidationError, match="bad-ability"):
            ContentCatalog().register_class(single_trait_class(trait))

    def test_missing_feature_pool(self):
        trait = PickFeatureFromPoolTrait(id="pick", pool_id="nowhere", choices_allowed=1)
        with pytest.raises(ContentValidationError, match="nowhere"):
            ContentCatalog().register_class(single_trait_class(trait))

    def test_empty_choice(self):
        with pytest.raises(ContentValidationError):
            ContentCatalog().register_class(single_trait_class(ChoiceTrait(id="empty")))

    def test_invalid_class_not_registered(self):
        catalog = ContentCatalog()
        trait = PickFeatureFromPoolTrait(id="pick", pool_id="nowhere", choices_allowed=1)
        with pytest.raises(ContentValidationError):
            catalog.register_class(single_trait_class(trait))
        assert catalog.get_class("tester") is None


class TestLoading:
    """Tests for loading content from plain data."""

    def test_load_from_dict(self):
        catalog = ContentCatalog()
        catalog.load_from_dict({
            "classes": [HUNTER_DEFINITION.to_dict()],
            "ancestries": [HUMAN_DEFINITION.to_dict()],
        })
        hunter = catalog.get_class("hunter")
        assert [f.id for f in hunter.features] == [f.id for f in HUNTER_DEFINITION.features]
        assert catalog.get_ancestry("human") is not None

    def test_load_json_file(self, tmp_path):
        path = tmp_path / "content.json"
        path.write_text(json.dumps({"classes": [HUNTER_DEFINITION.to_dict()]}))
        catalog = ContentCatalog()
        catalog.load_json_file(path)
        assert catalog.get_class("hunter").hit_die_size == 8

    def test_malformed_entry(self):
        with pytest.raises(ContentValidationError):
            ContentCatalog().load_from_dict({"classes": [{"name": "No id"}]})

    def test_unknown_trait_type(self):
        data = {
            "classes": [{
                "id": "odd",
                "features": [{"id": "f", "traits": [{"id": "t", "type": "telepathy"}]}],
            }]
        }
        with pytest.raises(ContentValidationError):
            ContentCatalog().load_from_dict(data)
