from pathlib import Path
import json
import tempfile
import unittest
from unittest.mock import patch

from namegender import (
    get_first_name_male_prob,
    get_gender_by_name,
    load_name_table,
    strip_diacritics,
)

TABLE = {
    'john': 0.98,
    'maria': 0.02,
    'anne': 0.01,
    'luc': 0.97,
    'zoë': 0.05,
    'kim': 0.0,
}


class TestStripDiacritics(unittest.TestCase):

    def test_strips(self):
        self.assertEqual(strip_diacritics('maría'), 'maria')
        self.assertEqual(strip_diacritics('françois'), 'francois')
        self.assertEqual(strip_diacritics('john'), 'john')


class TestGetGenderByName(unittest.TestCase):

    def test_exact(self):
        self.assertEqual(get_gender_by_name('John', TABLE), 0.98)

    def test_accented_form_found_directly(self):
        self.assertEqual(get_gender_by_name('Zoë', TABLE), 0.05)

    def test_accented_falls_back_to_plain(self):
        self.assertEqual(get_gender_by_name('María', TABLE), 0.02)

    def test_zero_is_a_signal(self):
        self.assertEqual(get_gender_by_name('Kim', TABLE), 0.0)

    def test_hyphenated_mean(self):
        self.assertAlmostEqual(
            get_gender_by_name('Anne-Maria', TABLE), (0.01 + 0.02) / 2)

    def test_spaced_mean_ignores_unknown_tokens(self):
        self.assertAlmostEqual(get_gender_by_name('Jean Luc', TABLE), 0.97)

    def test_tokens_with_zero_count(self):
        self.assertAlmostEqual(get_gender_by_name('Kim-John', TABLE), 0.49)

    def test_accented_tokens(self):
        self.assertAlmostEqual(
            get_gender_by_name('Ánne María', TABLE), (0.01 + 0.02) / 2)

    def test_unknown(self):
        self.assertIsNone(get_gender_by_name('Xyzzy', TABLE))
        self.assertIsNone(get_gender_by_name('', TABLE))
        self.assertIsNone(get_gender_by_name('-', TABLE))


class TestLoadNameTable(unittest.TestCase):

    def test_load(self):
        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / 'names.json'
            path.write_text(json.dumps({'John': 0.98, 'maria': 0.02}))

            self.assertEqual(
                load_name_table(path), {'john': 0.98, 'maria': 0.02})

    def test_missing_table_is_empty(self):
        with self.assertLogs('namegender', level='ERROR'):
            self.assertEqual(
                load_name_table(Path('/nonexistent/names.json')), {})


class TestGetFirstNameMaleProb(unittest.TestCase):

    @patch('namegender.load_name_table', return_value=TABLE)
    def test_exact_lookup(self, mock_load_name_table):
        self.assertEqual(get_first_name_male_prob('john'), 0.98)
        self.assertEqual(get_first_name_male_prob('kim'), 0.0)

    @patch('namegender.load_name_table', return_value=TABLE)
    def test_no_normalisation(self, mock_load_name_table):
        self.assertIsNone(get_first_name_male_prob('John'))
        self.assertIsNone(get_first_name_male_prob('jean-luc'))
        self.assertIsNone(get_first_name_male_prob('nobody'))


if __name__ == '__main__':
    unittest.main()
