import unittest

from truthlens.services.slugs import slugify


class SlugifyTests(unittest.TestCase):
    def test_lowercases_and_joins_words(self) -> None:
        self.assertEqual(slugify("The Importance of Salah in Daily Life"), "the-importance-of-salah-in-daily-life")

    def test_strips_punctuation_and_accents(self) -> None:
        self.assertEqual(slugify("  Qur'an: Tafsîr & Context!  "), "quran-tafsir-context")

    def test_collapses_separators(self) -> None:
        self.assertEqual(slugify("a -- b__c"), "a-b-c")
        self.assertEqual(slugify("a b", separator="_"), "a_b")

    def test_empty_or_symbol_only_input_gives_empty_slug(self) -> None:
        self.assertEqual(slugify(""), "")
        self.assertEqual(slugify("!!!"), "")


if __name__ == "__main__":
    unittest.main()
