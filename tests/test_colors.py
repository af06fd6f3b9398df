import re
import unittest

from geocell_analyst import colors


class NamedColorTests(unittest.TestCase):
    def test_every_table_entry_is_eight_lowercase_hex_digits(self):
        pattern = re.compile(r"^[0-9a-f]{8}$")
        self.assertGreaterEqual(len(colors.NAMED_COLORS), 140)
        for name, value in colors.NAMED_COLORS.items():
            self.assertRegex(value, pattern, msg=f"{name} has a malformed color")
            self.assertTrue(value.startswith("ff"), msg=f"{name} should be opaque")

    def test_byte_order_is_aabbggrr(self):
        self.assertEqual(colors.color_for("red"), "ff0000ff")
        self.assertEqual(colors.color_for("blue"), "ffff0000")
        self.assertEqual(colors.color_for("lime"), "ff00ff00")
        self.assertEqual(colors.color_for("orange"), "ff00a5ff")

    def test_lookup_ignores_case_and_spaces(self):
        self.assertEqual(colors.color_for("Light Blue"), "ffe6d8ad")
        self.assertEqual(colors.color_for("LIGHTBLUE"), "ffe6d8ad")
        self.assertEqual(colors.color_for("  light blue "), "ffe6d8ad")

    def test_unknown_or_missing_names_fall_back_to_red(self):
        self.assertEqual(colors.color_for("not-a-color"), colors.FALLBACK_COLOR)
        self.assertEqual(colors.color_for(""), colors.FALLBACK_COLOR)
        self.assertEqual(colors.color_for(None), colors.FALLBACK_COLOR)
        self.assertEqual(colors.FALLBACK_COLOR, "ff0000ff")


class DefaultColorTests(unittest.TestCase):
    def test_technology_defaults(self):
        self.assertEqual(colors.color_for_technology(2), "ffff0000")
        self.assertEqual(colors.color_for_technology(3), "ff00ff00")
        self.assertEqual(colors.color_for_technology(4), "ff0000ff")
        self.assertEqual(colors.color_for_technology(5), "ff000000")
        self.assertEqual(colors.color_for_technology(10), colors.DEFAULT_TECHNOLOGY_COLOR)
        self.assertEqual(colors.color_for_technology(None), colors.DEFAULT_TECHNOLOGY_COLOR)

    def test_operator_defaults_match_brand_case_insensitively(self):
        self.assertEqual(colors.color_for_operator("MEO"), "ffff0000")
        self.assertEqual(colors.color_for_operator("vodafone"), "ff0000ff")
        self.assertEqual(colors.color_for_operator(" nos "), "ff0080ff")
        self.assertEqual(colors.color_for_operator("Unknown Telecom"), colors.DEFAULT_OPERATOR_COLOR)
        self.assertEqual(colors.color_for_operator(None), colors.DEFAULT_OPERATOR_COLOR)


class TransparencyTests(unittest.TestCase):
    def test_alpha_replaces_first_byte(self):
        self.assertEqual(colors.make_transparent("ff0000ff"), "4f0000ff")
        self.assertEqual(colors.make_transparent("FF00FF00", "80"), "8000ff00")

    def test_six_digit_input_is_treated_as_opaque_first(self):
        self.assertEqual(colors.make_transparent("0000ff"), "4f0000ff")

    def test_other_lengths_are_rejected(self):
        with self.assertRaises(ValueError):
            colors.make_transparent("fff")


if __name__ == "__main__":
    unittest.main()
