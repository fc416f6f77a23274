import unittest

from catalog_meta.match_utils import (
    author_similarity,
    combine_similarity,
    normalize_match_text,
    normalize_title_for_match,
    split_people,
    title_similarity,
)


class TestMatchUtils(unittest.TestCase):
    def test_normalize_match_text_strips_diacritics_and_punctuation(self) -> None:
        self.assertEqual(normalize_match_text("Dune: Messiah!"), "dune messiah")
        self.assertEqual(normalize_match_text("Café  Noir"), "cafe noir")

    def test_normalize_title_for_match_drops_edition_noise(self) -> None:
        self.assertEqual(normalize_title_for_match("Dune (Unabridged)"), "dune")
        self.assertEqual(normalize_title_for_match("Dune [Dramatized Adaptation]"), "dune")
        self.assertEqual(normalize_title_for_match("Dune Messiah, Book 2"), "dune messiah")
        self.assertEqual(normalize_title_for_match("Shogun: A Novel"), "shogun")

    def test_split_people_handles_inverted_names_and_separators(self) -> None:
        self.assertEqual(split_people("Herbert, Frank"), ["frank herbert"])
        self.assertEqual(
            split_people("Brian Herbert & Kevin J. Anderson; Alexander Dumas"),
            ["brian herbert", "kevin j anderson", "alexander dumas"],
        )

    def test_title_similarity_ignores_missing_values(self) -> None:
        self.assertIsNone(title_similarity(None, "Dune"))
        self.assertIsNone(title_similarity("!!!", "Dune"))
        self.assertEqual(title_similarity("DUNE (Unabridged)", "dune"), 1.0)

    def test_author_similarity_ignores_name_order(self) -> None:
        self.assertEqual(author_similarity("Herbert, Frank", "Frank Herbert"), 1.0)
        self.assertEqual(author_similarity("Brian Herbert and Kevin J. Anderson", "Kevin J. Anderson"), 1.0)
        self.assertIsNone(author_similarity("", "Frank Herbert"))

    def test_combine_similarity_weights_title_over_author(self) -> None:
        self.assertIsNone(combine_similarity(None, None))
        self.assertAlmostEqual(combine_similarity(0.5, None), 0.5)
        self.assertAlmostEqual(combine_similarity(1.0, 0.0), 0.7)


if __name__ == "__main__":
    unittest.main()
