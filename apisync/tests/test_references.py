"""Test reference name extraction."""

import pytest

from apisync.codegen.references import resolve_ref_to_type, unescape_json_pointer


class TestResolveRefToType:
    """Test resolve_ref_to_type function."""

    @pytest.mark.parametrize(
        'ref,expected',
        [
            ('#/components/schemas/User', 'User'),
            ('#/definitions/Order', 'Order'),
            ('./models/Address.json', 'Address'),
            ('models/Address.yaml', 'Address'),
            ('https://example.com/Order.yaml#/definitions/Detail', 'Detail'),
            ('SimpleType', 'SimpleType'),
            ('#', '#'),
        ],
    )
    def test_names(self, ref, expected):
        """Test the last meaningful segment becomes the name."""
        assert resolve_ref_to_type(ref) == expected

    def test_pointer_escapes(self):
        """Test JSON pointer escapes are undone in the fragment."""
        assert resolve_ref_to_type('#/components/schemas/a~1b') == 'a/b'
        assert resolve_ref_to_type('#/components/schemas/a~0b') == 'a~b'

    def test_percent_encoded_fragment(self):
        """Test percent-encoded fragments are decoded."""
        assert resolve_ref_to_type('#/components/schemas/My%20Type') == 'My Type'

    def test_percent_encoded_file(self):
        """Test percent-encoded file names are decoded."""
        assert resolve_ref_to_type('schemas/My%20Type.json') == 'My Type'


class TestUnescapeJsonPointer:
    """Test unescape_json_pointer function."""

    def test_order(self):
        """Test '~01' decodes to '~1' and not to '/'."""
        assert unescape_json_pointer('~01') == '~1'
