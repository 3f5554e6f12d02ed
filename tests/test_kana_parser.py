import unittest

from koesynth.errors import InvalidPhoneticNotation
from koesynth.text.kana_parser import create_kana, parse_kana


class TestParseKana(unittest.TestCase):
    def test_single_mora_with_accent(self):
        phrases = parse_kana("ア'")
        self.assertEqual(len(phrases), 1)
        self.assertEqual(phrases[0].accent, 1)
        self.assertEqual(len(phrases[0].moras), 1)
        mora = phrases[0].moras[0]
        self.assertEqual((mora.text, mora.consonant, mora.vowel), ("ア", None, "a"))
        self.assertEqual(mora.vowel_length, 0.0)
        self.assertEqual(mora.pitch, 0.0)

    def test_longest_match_prefers_digraphs(self):
        phrases = parse_kana("キャ'ット")
        moras = phrases[0].moras
        self.assertEqual([m.text for m in moras], ["キャ", "ッ", "ト"])
        self.assertEqual(moras[0].consonant, "ky")
        self.assertEqual(moras[1].vowel, "cl")
        self.assertEqual(moras[0].consonant_length, 0.0)
        self.assertIsNone(moras[1].consonant_length)

    def test_delimiters_and_pause(self):
        phrases = parse_kana("コンニチワ'、ゲ'ンキ/デ'_スカ？")
        self.assertEqual(len(phrases), 3)
        self.assertIsNotNone(phrases[0].pause_mora)
        self.assertEqual(phrases[0].pause_mora.vowel, "pau")
        self.assertIsNone(phrases[1].pause_mora)
        self.assertEqual(phrases[0].accent, 5)
        self.assertTrue(phrases[2].is_interrogative)
        self.assertFalse(phrases[1].is_interrogative)

    def test_unvoiced_marker_uppercases_vowel(self):
        moras = parse_kana("デ'_スカ")[0].moras
        self.assertEqual(moras[1].vowel, "U")
        self.assertEqual(moras[1].text, "ス")

    def test_round_trip_through_create_kana(self):
        text = "コンニチワ'、ゲ'ンキ/デ'_スカ？"
        self.assertEqual(create_kana(parse_kana(text)), text)

    def test_errors(self):
        cases = [
            "",
            "ア'/",
            "/ア'",
            "'ア",
            "ア''イ",
            "アイ",
            "ア'X",
            "ア？イ'",
        ]
        for text in cases:
            with self.subTest(text=text):
                with self.assertRaises(InvalidPhoneticNotation) as ctx:
                    parse_kana(text)
                self.assertEqual(ctx.exception.text, text)


if __name__ == "__main__":
    unittest.main()
