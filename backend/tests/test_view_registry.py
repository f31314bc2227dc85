"""
couchmodel — View Registry Tests
===================================

What:  Tests for view registration options, descriptors and the registry.

What we test:
    ✅ Default exposed name is the last path segment
    ✅ Explicit names override it
    ✅ Duplicate exposed names are rejected
    ✅ Unknown names raise UnknownView
    ✅ REST option keys match by exposed name or camelCase form
"""

import pytest
from pydantic import ValidationError

from couchmodel.exceptions import ConfigurationError, DuplicateViewName, UnknownView
from couchmodel.models.view import ViewDescriptor, ViewRegistry, to_snake_case
from couchmodel.schemas.options import ViewRegistration


def _descriptor(option):
    return ViewDescriptor.from_registration(ViewRegistration.coerce(option))


class TestViewRegistration:

    def test_plain_path(self):
        registration = ViewRegistration.coerce("_design/article/_view/by_date")
        assert registration.path == "_design/article/_view/by_date"
        assert registration.name is None

    def test_surrounding_slashes_stripped(self):
        registration = ViewRegistration.coerce({"path": "/_design/article/_view/by_date/"})
        assert registration.path == "_design/article/_view/by_date"

    def test_empty_path_rejected(self):
        with pytest.raises(ValidationError):
            ViewRegistration(path="/")

    @pytest.mark.parametrize("option", ["/", {"name": "by_slug"}, {"path": 42}])
    def test_malformed_registration_is_configuration_error(self, option):
        with pytest.raises(ConfigurationError):
            ViewRegistration.coerce(option)


class TestViewDescriptor:

    def test_default_name_is_last_segment(self):
        descriptor = _descriptor("_design/article/_view/by_date")
        assert descriptor.exposed_name == "by_date"
        assert descriptor.canonical_path == "_design/article/_view/by_date"

    def test_explicit_name(self):
        descriptor = _descriptor({"path": "_design/article/_view/by_tag", "name": "by_one_of_the_tags"})
        assert descriptor.exposed_name == "by_one_of_the_tags"
        assert descriptor.canonical_path == "_design/article/_view/by_tag"


class TestViewRegistry:

    def setup_method(self):
        self.registry = ViewRegistry()
        self.registry.register(_descriptor("_design/article/_view/by_date"))
        self.registry.register(
            _descriptor({"path": "_design/article/_view/by_tag", "name": "by_one_of_the_tags"})
        )

    def test_resolve(self):
        assert self.registry.resolve("by_one_of_the_tags") == "_design/article/_view/by_tag"
        assert "by_date" in self.registry
        assert "by_tag" not in self.registry
        assert len(self.registry) == 2
        assert self.registry.names() == ["by_date", "by_one_of_the_tags"]

    def test_unknown_name(self):
        with pytest.raises(UnknownView) as exc_info:
            self.registry.resolve("by_color")
        assert isinstance(exc_info.value, ConfigurationError)

    def test_duplicate_name_rejected(self):
        """Same exposed name from another design document is still a clash."""
        with pytest.raises(DuplicateViewName):
            self.registry.register(_descriptor("_design/other/_view/by_date"))
        assert self.registry.resolve("by_date") == "_design/article/_view/by_date"

    def test_config_key_lookup(self):
        assert self.registry.lookup_config_key("by_date") == "by_date"
        assert self.registry.lookup_config_key("byDate") == "by_date"
        assert self.registry.lookup_config_key("byOneOfTheTags") == "by_one_of_the_tags"
        assert self.registry.lookup_config_key("byColor") is None


class TestSnakeCase:

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("bySlug", "by_slug"),
            ("byOneOfTheTags", "by_one_of_the_tags"),
            ("by_slug", "by_slug"),
            ("by2Tags", "by2_tags"),
        ],
    )
    def test_to_snake_case(self, name, expected):
        assert to_snake_case(name) == expected
